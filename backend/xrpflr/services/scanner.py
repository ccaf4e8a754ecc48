"""Ledger history scans: per-owner history and pool-wide participant discovery."""

from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from time import monotonic

import structlog

from config import get_settings
from xrpflr.services._helpers import JsonDict
from xrpflr.services.errors import LedgerError
from xrpflr.services.ledger_client import LedgerClient
from xrpflr.services.schemas.positions import StakePosition
from xrpflr.services.schemas.results import ScanResult

logger = structlog.get_logger(__name__)

Reconcile = Callable[[list[JsonDict], str], dict[str, StakePosition]]


class LedgerScanner:
    def __init__(
        self,
        client: LedgerClient,
        pool_address: str | None = None,
        user_tx_limit: int | None = None,
        pool_tx_limit: int | None = None,
        workers: int | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings().ledger
        self.client = client
        self.pool_address: str = pool_address or settings.pool_address
        self.user_tx_limit: int = user_tx_limit or settings.user_tx_limit
        self.pool_tx_limit: int = pool_tx_limit or settings.pool_tx_limit
        self.workers: int = workers or settings.scan_workers
        self.timeout: float = timeout if timeout is not None else settings.scan_timeout

    def fetch_owner_transactions(self, owner: str) -> list[JsonDict]:
        """Newest-first history for one owner. Raises LedgerError on failure."""
        return self.client.fetch_transactions(owner, limit=self.user_tx_limit, forward=False)

    def discover_participants(self) -> list[str]:
        """Every distinct address the pool has successfully paid, in first-seen order."""
        history: list[JsonDict] = self.client.fetch_transactions(
            self.pool_address, limit=self.pool_tx_limit, forward=False
        )
        seen: dict[str, None] = {}
        for tx in history:
            if tx.get("TransactionType") != "Payment" or tx.get("Account") != self.pool_address:
                continue
            if tx.get("TransactionResult") != "tesSUCCESS":
                continue
            destination: object = tx.get("Destination")
            if isinstance(destination, str) and destination != self.pool_address:
                seen.setdefault(destination, None)
        logger.info("Discovered pool participants", count=len(seen))
        return list(seen)

    def scan_all(self, reconcile: Reconcile) -> ScanResult:
        """Scan every participant in parallel and reconcile each one.

        A failing or slow owner contributes nothing; the scan itself only fails
        when participant discovery does. Results are merged on this thread.
        """
        owners: list[str] = self.discover_participants()
        positions_by_owner: dict[str, dict[str, StakePosition]] = {}
        failed: list[str] = []
        if not owners:
            return ScanResult(positions_by_owner, owners_discovered=0)

        deadline: float = monotonic() + self.timeout
        pool = ThreadPoolExecutor(max_workers=min(self.workers, len(owners)))
        try:
            futures: dict[Future[list[JsonDict]], str] = {
                pool.submit(self.fetch_owner_transactions, owner): owner for owner in owners
            }
            pending: set[Future[list[JsonDict]]] = set(futures)
            while pending:
                remaining: float = deadline - monotonic()
                if remaining <= 0:
                    break
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    owner = futures[future]
                    try:
                        transactions: list[JsonDict] = future.result()
                    except LedgerError as e:
                        logger.warning("Owner scan failed", owner=owner, error=e.message[:100])
                        failed.append(owner)
                        continue
                    try:
                        active = reconcile(transactions, owner)
                    except Exception:
                        logger.exception("Owner reconcile failed", owner=owner)
                        failed.append(owner)
                        continue
                    if active:
                        positions_by_owner[owner] = active

            for future in pending:
                future.cancel()
                failed.append(futures[future])
            if pending:
                logger.warning(
                    "Global scan deadline reached",
                    unfinished=len(pending),
                    timeout=self.timeout,
                )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        logger.info(
            "Global scan complete",
            owners=len(owners),
            with_positions=len(positions_by_owner),
            failed=len(failed),
        )
        return ScanResult(positions_by_owner, owners_discovered=len(owners), owners_failed=failed)
