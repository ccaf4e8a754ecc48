"""Stake positions and close events, as reconstructed from the ledger or the local store."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from db.enums import PositionStatus
from xrpflr.services._helpers import parse_iso, to_iso
from xrpflr.services._types import PositionDict


@dataclass
class StakePosition:
    id: str
    owner: str
    pool_id: str
    lock_period_days: int
    apy: float
    amount: float
    start_date: datetime
    end_date: datetime
    status: PositionStatus = PositionStatus.ACTIVE
    pool_name: str | None = None
    source_tx_hash: str | None = None

    @classmethod
    def opened(
        cls,
        position_id: str,
        owner: str,
        pool_id: str,
        lock_period_days: int,
        apy: float,
        amount: float,
        start_date: datetime,
        status: PositionStatus = PositionStatus.ACTIVE,
        pool_name: str | None = None,
        source_tx_hash: str | None = None,
    ) -> "StakePosition":
        """Build a position whose end date is derived from the lock period."""
        return cls(
            id=position_id,
            owner=owner,
            pool_id=pool_id,
            lock_period_days=lock_period_days,
            apy=apy,
            amount=amount,
            start_date=start_date,
            end_date=start_date + timedelta(days=lock_period_days),
            status=status,
            pool_name=pool_name,
            source_tx_hash=source_tx_hash,
        )

    @property
    def is_active(self) -> bool:
        return self.status == PositionStatus.ACTIVE

    def to_dict(self) -> PositionDict:
        return PositionDict(
            id=self.id,
            owner=self.owner,
            poolId=self.pool_id,
            poolName=self.pool_name,
            lockPeriod=self.lock_period_days,
            apy=self.apy,
            amount=self.amount,
            startDate=to_iso(self.start_date),
            endDate=to_iso(self.end_date),
            status=self.status.value,
            sourceTxHash=self.source_tx_hash,
        )

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "StakePosition | None":
        """Rebuild from a store snapshot. Unreadable entries yield None."""
        start: datetime | None = parse_iso(str(data.get("startDate") or ""))
        if start is None or not data.get("id"):
            return None
        lock_days: int = int(data.get("lockPeriod") or 0)
        end: datetime = parse_iso(str(data.get("endDate") or "")) or start + timedelta(
            days=lock_days
        )
        try:
            status: PositionStatus = PositionStatus(str(data.get("status") or "active"))
        except ValueError:
            return None
        return cls(
            id=str(data["id"]),
            owner=str(data.get("owner") or ""),
            pool_id=str(data.get("poolId") or "default"),
            lock_period_days=lock_days,
            apy=float(data.get("apy") or 0),
            amount=float(data.get("amount") or 0),
            start_date=start,
            end_date=end,
            status=status,
            pool_name=str(data["poolName"]) if data.get("poolName") else None,
            source_tx_hash=str(data["sourceTxHash"]) if data.get("sourceTxHash") else None,
        )


@dataclass(frozen=True)
class CloseEvent:
    position_id: str
    returned_amount: float
    penalty_applied: bool
    timestamp: datetime
    source_tx_hash: str | None
