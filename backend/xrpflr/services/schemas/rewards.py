"""Reward bookkeeping objects."""

from dataclasses import dataclass, field
from datetime import datetime

from xrpflr.services._types import ClaimRecordDict, RewardsDict


@dataclass(frozen=True)
class RewardFigures:
    available: float
    pending: float


@dataclass
class RewardLedgerEntry:
    """Per-owner reward ledger. Created lazily, never deleted."""

    owner: str
    available: float = 0.0
    pending: float = 0.0
    claimed: float = 0.0
    history: list[ClaimRecordDict] = field(default_factory=list)
    last_claim_time: datetime | None = None

    def to_response(self) -> RewardsDict:
        return RewardsDict(
            availableRewards=self.available,
            pendingRewards=self.pending,
            totalClaimed=self.claimed,
            history=list(self.history),
        )
