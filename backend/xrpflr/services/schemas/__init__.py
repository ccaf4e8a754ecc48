"""Shared dataclasses for staking services."""

from xrpflr.services.schemas.events import ClosePositionEvent, OpenPositionEvent, StakingEvent
from xrpflr.services.schemas.positions import CloseEvent, StakePosition
from xrpflr.services.schemas.results import (
    PayoutReceipt,
    PenaltyQuote,
    ScanResult,
    SubmissionResult,
    UnstakeOutcome,
    UpdateResult,
)
from xrpflr.services.schemas.rewards import RewardFigures, RewardLedgerEntry

__all__ = [
    # Memo events
    "ClosePositionEvent",
    "OpenPositionEvent",
    "StakingEvent",
    # Positions
    "CloseEvent",
    "StakePosition",
    # Rewards
    "RewardFigures",
    "RewardLedgerEntry",
    # Result schemas
    "PayoutReceipt",
    "PenaltyQuote",
    "ScanResult",
    "SubmissionResult",
    "UnstakeOutcome",
    "UpdateResult",
]
