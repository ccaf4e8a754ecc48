"""Penalty-aware automatic withdrawal from the custodial pool wallet.

requested -> processing -> completed | failed. Terminal states are never
revived; a failed request leaves the position active so a new request can be
issued. At most one request per stake is processing at any time.
"""

import hashlib
from collections.abc import Callable
from datetime import datetime
from time import monotonic

import structlog
from sqlalchemy.orm import Session
from xrpl.constants import XRPLException
from xrpl.wallet import Wallet

from config import get_settings
from db.enums import EventAction, UnstakeStatus
from xrpflr.services import memo_codec
from xrpflr.services._helpers import now_ms, to_iso, utc_now
from xrpflr.services._types import UnstakeResultDict, UnstakeStatusDict
from xrpflr.services.errors import (
    InvalidRequestError,
    LedgerConnectionError,
    LedgerError,
    UnstakeConflictError,
    UnstakeRequestNotFoundError,
)
from xrpflr.services.ledger_client import LedgerClient
from xrpflr.services.locks import InFlightRegistry, KeyedLocks, inflight_unstakes, owner_locks
from xrpflr.services.position_service import PositionService, require_address
from xrpflr.services.schemas.events import ClosePositionEvent
from xrpflr.services.schemas.positions import StakePosition
from xrpflr.services.schemas.results import PenaltyQuote, SubmissionResult, UnstakeOutcome
from xrpflr.services.store import BookkeepingStore

logger = structlog.get_logger(__name__)

CLOSE_MEMO_VERSION = "v1_with_early_unstake_penalty"


def unstake_request_id(owner: str, stake_id: str, submitted_ms: int) -> str:
    return hashlib.sha256(f"{owner}:{stake_id}:{submitted_ms}".encode()).hexdigest()


def quote_penalty(position: StakePosition, now: datetime, penalty_pct: float) -> PenaltyQuote:
    """Early exit (strictly before the end date) forfeits `penalty_pct` percent."""
    early: bool = now < position.end_date
    rate: float = penalty_pct / 100 if early else 0.0
    return PenaltyQuote(
        original_amount=position.amount,
        penalty_applied=early,
        penalty_percentage=penalty_pct if early else 0.0,
        penalty_amount=position.amount * rate,
        amount_to_return=position.amount * (1 - rate),
    )


def _result_message(quote: PenaltyQuote) -> str:
    if quote.penalty_applied:
        return (
            f"Unstaking successful. {quote.penalty_percentage:g}% penalty applied "
            f"({quote.penalty_amount} XRP). {quote.amount_to_return} XRP returned."
        )
    return "Unstaking successful. Full amount returned."


_STATUS_MESSAGES: dict[UnstakeStatus, str] = {
    UnstakeStatus.PROCESSING: "Unstaking request is processing.",
    UnstakeStatus.COMPLETED: "Unstaking processed successfully.",
    UnstakeStatus.FAILED: "Unstaking failed. The stake is still active and can be unstaked again.",
}


class UnstakeProcessor:
    def __init__(
        self,
        session: Session,
        ledger: LedgerClient,
        positions: PositionService,
        wallet: Wallet | None = None,
        locks: KeyedLocks = owner_locks,
        inflight: InFlightRegistry = inflight_unstakes,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        settings = get_settings()
        self.store = BookkeepingStore(session)
        self.ledger = ledger
        self.positions = positions
        self.locks = locks
        self.inflight = inflight
        self.clock = clock
        self.penalty_pct: float = settings.staking.early_exit_penalty_pct
        self.confirm_timeout: float = settings.ledger.confirm_timeout
        self.pool_address: str = positions.pool_address
        self._seed: str | None = settings.ledger.pool_seed
        self._wallet: Wallet | None = wallet

    def _pool_wallet(self) -> Wallet:
        if self._wallet is None:
            if not self._seed:
                raise LedgerConnectionError("Pool wallet seed is not configured")
            try:
                self._wallet = Wallet.from_seed(self._seed)
            except (ValueError, XRPLException) as e:
                raise LedgerConnectionError(f"Pool wallet seed is invalid: {e}") from e
            if self._wallet.classic_address != self.pool_address:
                logger.warning(
                    "Pool seed does not match the pool address",
                    wallet=self._wallet.classic_address,
                    pool_address=self.pool_address,
                )
        return self._wallet

    def _close_event(self, position: StakePosition, quote: PenaltyQuote) -> ClosePositionEvent:
        return ClosePositionEvent(
            position_id=position.id,
            action=EventAction.UNSTAKE_PROCESSED,
            original_amount=quote.original_amount,
            returned_amount=quote.amount_to_return,
            penalty_applied=quote.penalty_applied,
            penalty_percentage=quote.penalty_percentage,
            penalty_amount=quote.penalty_amount,
            is_early_unstake=quote.penalty_applied,
            stake_end_date=to_iso(position.end_date),
            timestamp=now_ms(),
            version=CLOSE_MEMO_VERSION,
        )

    def _remove_position(self, owner: str, stake_id: str) -> None:
        with self.locks.hold(owner):
            stored = self.store.get_positions(owner)
            if stored.pop(stake_id, None) is None:
                logger.warning("Unstaked position was not in the stored view", owner=owner, stake_id=stake_id)
                return
            if stored:
                self.store.put_positions(owner, stored)
            else:
                self.store.delete_positions(owner)

    def request_unstake(self, owner: str, stake_id: str) -> UnstakeOutcome:
        """Run one unstake to a terminal state.

        Rejections (bad input, unknown or non-active stake, concurrent request)
        raise before anything is recorded. Once the request is recorded the
        outcome is always returned, completed or failed.
        """
        owner = require_address(owner)
        if not stake_id:
            raise InvalidRequestError("stakeId is required", field="stakeId")
        if not self.inflight.try_acquire(stake_id):
            raise UnstakeConflictError(
                f"An unstake for stake {stake_id} is already processing", stakeId=stake_id
            )
        try:
            position: StakePosition = self.positions.find_active_position(owner, stake_id)
            return self._process(owner, position)
        finally:
            self.inflight.release(stake_id)

    def _process(self, owner: str, position: StakePosition) -> UnstakeOutcome:
        now: datetime = self.clock()
        quote: PenaltyQuote = quote_penalty(position, now, self.penalty_pct)
        outcome = UnstakeOutcome(
            request_id=unstake_request_id(owner, position.id, int(now.timestamp() * 1000)),
            stake_id=position.id,
            owner=owner,
            status=UnstakeStatus.PROCESSING,
        )
        self.store.add_unstake_request(outcome, position.amount)
        logger.info(
            "Unstake processing",
            owner=owner,
            stake_id=position.id,
            request_id=outcome.request_id,
            early=quote.penalty_applied,
            amount_to_return=quote.amount_to_return,
        )

        try:
            memo = memo_codec.encode_event(self._close_event(position, quote))
            submission: SubmissionResult = self.ledger.submit_payment(
                self._pool_wallet(),
                owner,
                quote.amount_to_return,
                [memo],
                deadline=monotonic() + self.confirm_timeout,
            )
        except LedgerError as e:
            return self._fail(outcome, e.message)
        except XRPLException as e:
            return self._fail(outcome, f"Payment rejected before submission: {e}")

        outcome.tx_hash = submission.tx_hash
        if not submission.succeeded:
            return self._fail(
                outcome,
                f"Unstake transaction failed: {submission.reason or submission.engine_result}",
            )

        self._remove_position(owner, position.id)
        outcome.status = UnstakeStatus.COMPLETED
        outcome.result = UnstakeResultDict(
            txHash=submission.tx_hash,
            message=_result_message(quote),
            amountReturned=quote.amount_to_return,
            originalAmount=quote.original_amount,
            penaltyApplied=quote.penalty_applied,
            penaltyPercentage=quote.penalty_percentage,
            penaltyAmount=quote.penalty_amount,
            isEarlyUnstake=quote.penalty_applied,
            stakeEndDate=to_iso(position.end_date),
        )
        self.store.update_unstake_request(outcome)
        logger.info(
            "Unstake completed",
            owner=owner,
            stake_id=position.id,
            tx_hash=submission.tx_hash,
        )
        return outcome

    def _fail(self, outcome: UnstakeOutcome, error: str) -> UnstakeOutcome:
        outcome.status = UnstakeStatus.FAILED
        outcome.error = error
        self.store.update_unstake_request(outcome)
        logger.warning(
            "Unstake failed",
            owner=outcome.owner,
            stake_id=outcome.stake_id,
            tx_hash=outcome.tx_hash,
            error=error,
        )
        return outcome

    def status(self, stake_id: str) -> UnstakeStatusDict:
        latest = self.store.latest_unstake_request(stake_id)
        if latest is None:
            raise UnstakeRequestNotFoundError(
                "Unstaking request not found.", stakeId=stake_id
            )
        outcome, updated_at = latest
        response = UnstakeStatusDict(
            requestId=outcome.request_id,
            stakeId=outcome.stake_id,
            owner=outcome.owner,
            status=outcome.status.value,
            message=_STATUS_MESSAGES[outcome.status],
            txHash=outcome.tx_hash,
            error=outcome.error,
            timestamp=updated_at,
        )
        if outcome.result:
            response["message"] = outcome.result.get("message", response["message"])
            for key in (
                "amountReturned",
                "originalAmount",
                "penaltyApplied",
                "penaltyPercentage",
                "penaltyAmount",
                "isEarlyUnstake",
            ):
                if key in outcome.result:
                    response[key] = outcome.result[key]  # type: ignore[literal-required]
        return response
