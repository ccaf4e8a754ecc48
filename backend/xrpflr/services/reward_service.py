"""Reward reads and claim settlement with cross-chain payout."""

from collections.abc import Iterable
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from db.enums import ClaimStatus
from xrpflr.services._helpers import now_ms, to_iso, utc_now
from xrpflr.services._types import ClaimRecordDict, ClaimResultDict, RewardsDict
from xrpflr.services.accrual import RewardAccrualEngine
from xrpflr.services.errors import InvalidRequestError, NoRewardsError, PayoutError
from xrpflr.services.locks import KeyedLocks, owner_locks
from xrpflr.services.payout_client import PayoutClient
from xrpflr.services.position_service import PositionService, require_address
from xrpflr.services.schemas.positions import StakePosition
from xrpflr.services.schemas.rewards import RewardLedgerEntry
from xrpflr.services.store import BookkeepingStore

logger = structlog.get_logger(__name__)


class RewardService:
    def __init__(
        self,
        session: Session,
        positions: PositionService,
        payout: PayoutClient,
        engine: RewardAccrualEngine | None = None,
        locks: KeyedLocks = owner_locks,
    ) -> None:
        self.store = BookkeepingStore(session)
        self.positions = positions
        self.payout = payout
        self.engine = engine or RewardAccrualEngine()
        self.locks = locks

    def _refreshed_entry(
        self, owner: str, active: Iterable[StakePosition], now: datetime
    ) -> RewardLedgerEntry:
        entry: RewardLedgerEntry = self.store.get_reward_entry(owner)
        return self.engine.refresh(entry, active, now)

    def get_rewards(self, owner: str) -> RewardsDict:
        """Recompute from current positions and persist the refreshed entry."""
        owner = require_address(owner)
        active, _ = self.positions.get_active_positions(owner)
        with self.locks.hold(owner):
            entry = self._refreshed_entry(owner, active, utc_now())
            if active or entry.claimed or entry.history:
                self.store.put_reward_entry(entry)
        return entry.to_response()

    def claim(self, owner: str, payout_address: str) -> ClaimResultDict:
        """Settle everything available now and pay it out on the reward chain.

        Bookkeeping is settled whether or not the payout succeeds; a failed
        payout is reported with status "failed" and recorded in history.
        """
        owner = require_address(owner)
        if not self.payout.is_valid_recipient(payout_address):
            raise InvalidRequestError(
                "payoutAddress is not a valid reward-chain address", field="payoutAddress"
            )
        active, _ = self.positions.get_active_positions(owner)

        with self.locks.hold(owner):
            now: datetime = utc_now()
            entry = self._refreshed_entry(owner, active, now)
            amount: float = entry.available
            if amount <= 0:
                raise NoRewardsError("No rewards available to claim", owner=owner)

            tx_hash: str | None = None
            error: str | None = None
            status = ClaimStatus.CONFIRMED
            try:
                receipt = self.payout.send(payout_address, amount)
                tx_hash = receipt.tx_hash
            except PayoutError as e:
                status = ClaimStatus.FAILED
                error = str(e)
                logger.warning("Reward payout failed", owner=owner, amount=amount, error=error)

            record = ClaimRecordDict(
                id=f"claim-{now_ms()}",
                amount=amount,
                timestamp=to_iso(now),
                txHash=tx_hash,
                status=status.value,
                error=error,
                payoutAddress=payout_address,
            )
            self.engine.settle_claim(entry, amount, record, now)
            self.store.put_reward_entry(entry)
            self.store.put_last_claim_time(owner, now)

        return ClaimResultDict(
            success=status == ClaimStatus.CONFIRMED,
            amount=amount,
            txHash=tx_hash,
            status=status.value,
            error=error,
            timestamp=to_iso(now),
        )
