"""Shared exception hierarchy for staking services.

Every request-facing error carries an HTTP status and a category so the API can
tell "your input was invalid" apart from "the ledger operation could not complete".
"""

from db.enums import ErrorCategory

# ── Ledger ────────────────────────────────────────────────────────────────────


class LedgerError(Exception):
    """Base exception for ledger client errors."""

    http_status: int = 503
    category: ErrorCategory = ErrorCategory.LEDGER

    def __init__(self, message: str, **extra: object) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra


class LedgerRPCError(LedgerError):
    """RPC call failed."""


class LedgerConnectionError(LedgerError):
    """Cannot reach the RPC endpoint."""


class TransactionNotFoundError(LedgerError):
    """Requested transaction is not on the ledger."""

    http_status = 404
    category = ErrorCategory.NOT_FOUND


# ── Requests ──────────────────────────────────────────────────────────────────


class StakingError(Exception):
    """Base exception for request-level staking errors."""

    http_status: int = 400
    category: ErrorCategory = ErrorCategory.VALIDATION

    def __init__(self, message: str, **extra: object) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra


class InvalidRequestError(StakingError):
    """Missing or out-of-range request fields."""


class UnknownPoolError(InvalidRequestError):
    """Pool id is not in the catalogue and no pool details were supplied."""


class PositionNotFoundError(StakingError):
    http_status = 404
    category = ErrorCategory.NOT_FOUND


class PositionNotActiveError(StakingError):
    """Only active positions can be unstaked."""


class UnstakeRequestNotFoundError(StakingError):
    """No unstake request has been recorded for the stake."""

    http_status = 404
    category = ErrorCategory.NOT_FOUND


class UnstakeConflictError(StakingError):
    """Another unstake for the same position is in flight."""

    http_status = 409
    category = ErrorCategory.CONFLICT


class UnstakeFailedError(StakingError):
    """Payout transaction was rejected or never confirmed."""

    http_status = 502
    category = ErrorCategory.LEDGER


# ── Rewards ───────────────────────────────────────────────────────────────────


class NoRewardsError(StakingError):
    """Nothing is claimable right now."""


class PayoutError(Exception):
    """Reward-chain transfer failed."""

    http_status: int = 502
    category: ErrorCategory = ErrorCategory.PAYOUT


class PayoutNotConfiguredError(PayoutError):
    """No admin key configured for the reward chain."""
