"""JSON-RPC client for the base-chain ledger (XRPL)."""

import time
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import structlog
from xrpl.clients import JsonRpcClient
from xrpl.models.requests import AccountTx, Ledger, Request, Tx
from xrpl.models.transactions import Memo, Payment
from xrpl.transaction import autofill_and_sign, submit
from xrpl.wallet import Wallet

from config import get_settings
from xrpflr.services._helpers import JsonDict, xrp_to_drops
from xrpflr.services._types import MemoFields
from xrpflr.services.errors import (
    LedgerConnectionError,
    LedgerError,
    LedgerRPCError,
    TransactionNotFoundError,
)
from xrpflr.services.schemas.results import SubmissionResult

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# account_tx caps a single page at 400 entries.
_MAX_PAGE = 400

# Preliminary results after which the transaction may still make it into a validated ledger.
_PENDING_PREFIXES = ("tes", "ter", "tec")


def normalize_entry(entry: Mapping[str, Any]) -> JsonDict:
    """Flatten an account_tx / tx result into a single transaction dict.

    Handles both API v1 (`tx` + `meta`) and v2 (`tx_json` + `hash` + `meta`)
    shapes. The result always carries `hash`, `date`, `ledger_index`,
    `validated` and `TransactionResult`, and `Amount` even when the server
    reports it as `DeliverMax`.
    """
    raw_tx: object = entry.get("tx_json") or entry.get("tx")
    tx: Mapping[str, Any] = raw_tx if isinstance(raw_tx, Mapping) else entry

    flat: JsonDict = {k: v for k, v in tx.items() if k not in ("meta", "metaData")}
    flat["hash"] = entry.get("hash") or tx.get("hash")
    if "Amount" not in flat and "DeliverMax" in flat:
        flat["Amount"] = flat["DeliverMax"]
    flat["ledger_index"] = entry.get("ledger_index") or tx.get("ledger_index")
    flat["validated"] = bool(entry.get("validated", tx.get("validated", False)))
    flat["date"] = tx.get("date", entry.get("date"))

    meta: object = entry.get("meta") or tx.get("meta") or tx.get("metaData")
    flat["TransactionResult"] = meta.get("TransactionResult") if isinstance(meta, Mapping) else None
    return flat


class LedgerClient:
    """Reads account history and submits custodial payments over JSON-RPC."""

    def __init__(
        self,
        rpc_url: str | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        confirm_poll_initial: float | None = None,
        confirm_poll_max: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = get_settings().ledger
        self.rpc_url: str = rpc_url or settings.rpc_url
        self.retry_attempts: int = retry_attempts or settings.retry_attempts
        self.retry_delay: float = retry_delay if retry_delay is not None else settings.retry_delay
        self.confirm_poll_initial: float = confirm_poll_initial or settings.confirm_poll_initial
        self.confirm_poll_max: float = confirm_poll_max or settings.confirm_poll_max
        self._sleep = sleep
        self._client: JsonRpcClient | None = None

    def connect(self) -> JsonRpcClient:
        if self._client is None:
            self._client = JsonRpcClient(self.rpc_url)
            logger.info("Ledger client ready", rpc_url=self.rpc_url[:50])
        return self._client

    def _retry_call(self, func: Callable[[], T], attempts: int | None = None) -> T:
        tries: int = attempts or self.retry_attempts
        last_error: Exception | None = None
        for attempt in range(tries):
            try:
                return func()
            except TransactionNotFoundError:
                raise
            except LedgerRPCError as e:
                # The server answered; asking again will not change its mind.
                if e.extra.get("permanent"):
                    raise
                last_error = e
            except Exception as e:
                last_error = e
            logger.warning(
                "Ledger call failed, retrying",
                attempt=attempt + 1,
                error=str(last_error)[:100],
            )
            if attempt < tries - 1:
                self._sleep(self.retry_delay * (attempt + 1))
        if isinstance(last_error, LedgerError):
            raise last_error
        raise LedgerConnectionError(
            f"Ledger call failed after {tries} attempts: {last_error}",
            rpc_url=self.rpc_url,
        )

    def _request(self, request: Request, attempts: int | None = None) -> JsonDict:
        client: JsonRpcClient = self.connect()

        def _call() -> JsonDict:
            response = client.request(request)
            if response.is_successful():
                return dict(response.result)
            error: str = str(response.result.get("error", "unknown"))
            if error == "txnNotFound":
                raise TransactionNotFoundError("Transaction not found on ledger")
            raise LedgerRPCError(
                f"{request.method.value} failed: {error}",
                permanent=error in ("actMalformed", "invalidParams"),
            )

        return self._retry_call(_call, attempts)

    def fetch_transactions(
        self,
        address: str,
        limit: int = 200,
        forward: bool = False,
    ) -> list[JsonDict]:
        """Return up to `limit` flattened transactions for an address.

        Newest first unless `forward` is set. Follows pagination markers.
        """
        collected: list[JsonDict] = []
        marker: object = None
        while len(collected) < limit:
            page_size: int = min(limit - len(collected), _MAX_PAGE)
            result: JsonDict = self._request(
                AccountTx(account=address, limit=page_size, forward=forward, marker=marker)
            )
            entries: object = result.get("transactions") or []
            if isinstance(entries, list):
                collected.extend(normalize_entry(e) for e in entries if isinstance(e, Mapping))
            marker = result.get("marker")
            if not marker or not entries:
                break

        logger.debug("Fetched account history", address=address, count=len(collected))
        return collected[:limit]

    def get_transaction(self, tx_hash: str, attempts: int | None = None) -> JsonDict:
        return normalize_entry(self._request(Tx(transaction=tx_hash), attempts))

    def validated_ledger_index(self, attempts: int | None = None) -> int:
        result: JsonDict = self._request(Ledger(ledger_index="validated"), attempts)
        index: object = result.get("ledger_index")
        if index is None:
            raise LedgerRPCError("Validated ledger index missing from response")
        return int(index)  # type: ignore[arg-type]

    def submit_payment(
        self,
        wallet: Wallet,
        destination: str,
        amount: float,
        memos: list[MemoFields],
        deadline: float,
    ) -> SubmissionResult:
        """Sign, submit and wait for a definite outcome.

        `deadline` is a time.monotonic() instant. Raises LedgerError only when
        nothing was submitted; once the blob is on the wire the outcome is
        always returned as a SubmissionResult.
        """
        client: JsonRpcClient = self.connect()
        payment = Payment(
            account=wallet.classic_address,
            destination=destination,
            amount=xrp_to_drops(amount),
            memos=[
                Memo(
                    memo_type=m["MemoType"],
                    memo_data=m["MemoData"],
                    memo_format=m["MemoFormat"],
                )
                for m in memos
            ],
        )
        try:
            signed = autofill_and_sign(payment, client=client, wallet=wallet)
        except Exception as e:
            raise LedgerConnectionError(f"Could not prepare payment: {e}") from e

        tx_hash: str = signed.get_hash()
        last_ledger: int | None = signed.last_ledger_sequence
        try:
            response = submit(signed, client)
        except Exception as e:
            # The blob may have reached a server anyway; fall through to polling.
            logger.warning("Submit call failed", tx_hash=tx_hash, error=str(e)[:100])
            engine_result = "submit_error"
        else:
            engine_result = str(response.result.get("engine_result", "unknown"))
            logger.info("Payment submitted", tx_hash=tx_hash, engine_result=engine_result)
            if not engine_result.startswith(_PENDING_PREFIXES):
                return SubmissionResult(
                    tx_hash=tx_hash,
                    engine_result=engine_result,
                    validated=False,
                    reason=str(response.result.get("engine_result_message") or engine_result),
                )

        return self.wait_for_validation(tx_hash, engine_result, last_ledger, deadline)

    def wait_for_validation(
        self,
        tx_hash: str,
        engine_result: str,
        last_ledger: int | None,
        deadline: float,
    ) -> SubmissionResult:
        """Poll with exponential backoff until validated, expired or out of time."""
        delay: float = self.confirm_poll_initial
        while True:
            try:
                tx: JsonDict | None = self.get_transaction(tx_hash, attempts=1)
            except TransactionNotFoundError:
                tx = None
            except LedgerError as e:
                logger.warning("Confirmation poll failed", tx_hash=tx_hash, error=e.message[:100])
                tx = None

            if tx is not None and tx.get("validated"):
                final: str = str(tx.get("TransactionResult") or engine_result)
                ledger_index: object = tx.get("ledger_index")
                return SubmissionResult(
                    tx_hash=tx_hash,
                    engine_result=final,
                    validated=True,
                    ledger_index=int(ledger_index) if ledger_index is not None else None,  # type: ignore[arg-type]
                    reason=None if final == "tesSUCCESS" else final,
                )

            if last_ledger is not None:
                try:
                    current: int | None = self.validated_ledger_index(attempts=1)
                except LedgerError:
                    current = None
                if current is not None and current > last_ledger:
                    return SubmissionResult(
                        tx_hash=tx_hash,
                        engine_result=engine_result,
                        validated=False,
                        reason=f"Not validated by ledger {last_ledger}",
                    )

            remaining: float = deadline - time.monotonic()
            if remaining <= 0:
                return SubmissionResult(
                    tx_hash=tx_hash,
                    engine_result=engine_result,
                    validated=False,
                    reason="Confirmation deadline expired",
                )
            self._sleep(min(delay, remaining))
            delay = min(delay * 2, self.confirm_poll_max)
