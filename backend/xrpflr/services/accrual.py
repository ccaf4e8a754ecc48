"""Time-weighted reward accrual with a per-owner claim checkpoint.

Per active position:
    effective_start = last_claim if last_claim >= start else start
    elapsed         = max(0, min(now, end) - effective_start)        seconds
    available_i     = amount * apy/100 * elapsed / SECONDS_PER_YEAR
    potential_i     = amount * apy/100 * (end - start) / SECONDS_PER_YEAR
    pending_i       = max(0, potential_i - claimed / n_active)

Lifetime claims are split evenly across the currently active positions. That
split is a policy, not per-position attribution.
"""

from collections.abc import Iterable
from datetime import datetime

import structlog

from xrpflr.services._helpers import SECONDS_PER_YEAR, to_iso, utc_now
from xrpflr.services._types import ClaimRecordDict
from xrpflr.services.schemas.positions import StakePosition
from xrpflr.services.schemas.rewards import RewardFigures, RewardLedgerEntry

logger = structlog.get_logger(__name__)


class RewardAccrualEngine:
    """Pure reward arithmetic plus the claim-settlement state transition."""

    def accrued(
        self,
        position: StakePosition,
        now: datetime,
        last_claim_time: datetime | None = None,
    ) -> float:
        if not position.is_active or now < position.start_date:
            return 0.0
        effective_start: datetime = position.start_date
        if last_claim_time is not None and last_claim_time >= position.start_date:
            effective_start = last_claim_time
        elapsed: float = max(0.0, (min(now, position.end_date) - effective_start).total_seconds())
        return position.amount * (position.apy / 100) * (elapsed / SECONDS_PER_YEAR)

    def potential(self, position: StakePosition, claimed_share: float = 0.0) -> float:
        if not position.is_active:
            return 0.0
        duration: float = max(0.0, (position.end_date - position.start_date).total_seconds())
        total: float = position.amount * (position.apy / 100) * (duration / SECONDS_PER_YEAR)
        return max(0.0, total - claimed_share)

    def compute_rewards(
        self,
        positions: Iterable[StakePosition],
        last_claim_time: datetime | None,
        already_claimed: float,
        now: datetime | None = None,
    ) -> RewardFigures:
        now = now or utc_now()
        active: list[StakePosition] = [p for p in positions if p.is_active]
        if not active:
            return RewardFigures(available=0.0, pending=0.0)

        claimed_share: float = max(0.0, already_claimed) / len(active)
        available: float = sum(self.accrued(p, now, last_claim_time) for p in active)
        pending: float = sum(self.potential(p, claimed_share) for p in active)
        return RewardFigures(available=max(0.0, available), pending=max(0.0, pending))

    def refresh(
        self,
        entry: RewardLedgerEntry,
        positions: Iterable[StakePosition],
        now: datetime | None = None,
    ) -> RewardLedgerEntry:
        """Recompute an entry's figures in place from its own checkpoint and claims."""
        figures: RewardFigures = self.compute_rewards(
            positions, entry.last_claim_time, entry.claimed, now
        )
        entry.available = figures.available
        entry.pending = figures.pending
        return entry

    def settle_claim(
        self,
        entry: RewardLedgerEntry,
        amount: float,
        record: ClaimRecordDict,
        now: datetime,
    ) -> RewardLedgerEntry:
        """Move `amount` from available into claimed and checkpoint the accrual clock.

        `pending` is left alone; the next compute picks the claim up through the
        claimed share.
        """
        entry.claimed += amount
        entry.available = 0.0
        entry.history.append(record)
        entry.last_claim_time = now
        logger.info(
            "Claim settled",
            owner=entry.owner,
            amount=round(amount, 6),
            status=record["status"],
            at=to_iso(now),
        )
        return entry
