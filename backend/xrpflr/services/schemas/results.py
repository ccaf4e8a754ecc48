"""Result dataclasses returned by service operations."""

from dataclasses import dataclass, field
from datetime import datetime

from db.enums import UnstakeStatus
from xrpflr.services._types import UnstakeResultDict
from xrpflr.services.schemas.positions import StakePosition


@dataclass(frozen=True)
class SubmissionResult:
    """Definite outcome of a signed payment: validated or not, with the engine code."""

    tx_hash: str
    engine_result: str
    validated: bool
    ledger_index: int | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.validated and self.engine_result == "tesSUCCESS"


@dataclass(frozen=True)
class PenaltyQuote:
    original_amount: float
    penalty_applied: bool
    penalty_percentage: float
    penalty_amount: float
    amount_to_return: float


@dataclass
class UnstakeOutcome:
    request_id: str
    stake_id: str
    owner: str
    status: UnstakeStatus
    tx_hash: str | None = None
    result: UnstakeResultDict | None = None
    error: str | None = None


@dataclass
class ScanResult:
    """Global discovery output: active positions keyed by owner."""

    positions_by_owner: dict[str, dict[str, StakePosition]]
    owners_discovered: int
    owners_failed: list[str] = field(default_factory=list)


@dataclass
class UpdateResult:
    owners_processed: int
    started_at: datetime
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PayoutReceipt:
    tx_hash: str
    block_number: int | None
    sender: str
    recipient: str
    amount: float
    confirmed: bool
