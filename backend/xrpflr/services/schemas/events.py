"""Staking events carried in payment memos."""

from dataclasses import dataclass

from db.enums import EventAction


@dataclass(frozen=True)
class OpenPositionEvent:
    position_id: str
    pool_id: str
    amount: float
    lock_period: int
    apy: float
    start_date: str | None = None
    end_date: str | None = None
    pool_name: str | None = None
    version: str | None = None

    action = EventAction.OPEN_POSITION

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "action": self.action.value,
            "positionId": self.position_id,
            "poolId": self.pool_id,
            "amount": self.amount,
            "lockPeriod": self.lock_period,
            "apy": self.apy,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "poolName": self.pool_name,
            "version": self.version,
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass(frozen=True)
class ClosePositionEvent:
    position_id: str
    action: EventAction = EventAction.UNSTAKE_PROCESSED
    original_amount: float | None = None
    returned_amount: float | None = None
    penalty_applied: bool | None = None
    penalty_percentage: float | None = None
    penalty_amount: float | None = None
    is_early_unstake: bool | None = None
    stake_end_date: str | None = None
    timestamp: int | None = None
    version: str | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "action": self.action.value,
            "positionId": self.position_id,
            "originalAmount": self.original_amount,
            "returnedAmount": self.returned_amount,
            "penaltyApplied": self.penalty_applied,
            "penaltyPercentage": self.penalty_percentage,
            "penaltyAmount": self.penalty_amount,
            "isEarlyUnstake": self.is_early_unstake,
            "stakeEndDate": self.stake_end_date,
            "timestamp": self.timestamp,
            "version": self.version,
        }
        return {k: v for k, v in payload.items() if v is not None}


StakingEvent = OpenPositionEvent | ClosePositionEvent
