"""Enumeration types for the XRP→FLR staking backend."""

from enum import Enum


class PositionStatus(str, Enum):
    """Lifecycle of a stake position.

    PENDING_SIGNATURE only exists in the local view; the ledger view only ever
    yields ACTIVE (inferred) or nothing (closed).
    """

    PENDING_SIGNATURE = "pending_signature"
    ACTIVE = "active"
    CLOSED = "closed"


class UnstakeStatus(str, Enum):
    """Unstake request state. COMPLETED and FAILED are terminal."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ClaimStatus(str, Enum):
    """Outcome of a reward-chain payout for a claim."""

    CONFIRMED = "confirmed"
    FAILED = "failed"


class EventAction(str, Enum):
    """`action` field of a staking memo payload."""

    OPEN_POSITION = "open_position"
    CLOSE_POSITION = "close_position"
    UNSTAKE_PROCESSED = "unstake_processed"


class MemoType(str, Enum):
    """MemoType carried by staking payments (hex-encoded on the wire)."""

    STAKING = "XrpFlrStaking"
    UNSTAKING = "XrpFlrUnstaking"
    AUTO_UNSTAKE = "XrpFlrAutoUnstake"


class ErrorCategory(str, Enum):
    """Lets API clients tell bad input apart from ledger trouble."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    LEDGER = "ledger"
    PAYOUT = "payout"
