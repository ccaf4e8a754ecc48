"""Derive the active-position set from scanned ledger history.

A position is active iff an open_position memo for its id was paid to the pool
by the owner and no close memo for that id was paid from the pool back to the
owner. The computation is a set difference, so event order does not matter
except for the duplicate-id tie-break (last one scanned wins).
"""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta

import structlog
from xrpl.utils import XRPLTimeRangeException, ripple_time_to_datetime

from config import get_settings
from db.enums import PositionStatus
from xrpflr.services import memo_codec
from xrpflr.services._helpers import drops_to_xrp, parse_iso
from xrpflr.services.pools import POOLS
from xrpflr.services.schemas.events import ClosePositionEvent, OpenPositionEvent
from xrpflr.services.schemas.positions import CloseEvent, StakePosition

logger = structlog.get_logger(__name__)

Transaction = Mapping[str, object]


def _succeeded(tx: Transaction) -> bool:
    result: object = tx.get("TransactionResult")
    return result is None or result == "tesSUCCESS"


def _is_payment(tx: Transaction) -> bool:
    return tx.get("TransactionType") == "Payment" and _succeeded(tx)


def _ledger_time(tx: Transaction) -> datetime | None:
    raw: object = tx.get("date")
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        return None
    try:
        return ripple_time_to_datetime(int(raw)).astimezone(UTC)
    except XRPLTimeRangeException:
        return None


def _delivered_xrp(tx: Transaction) -> float | None:
    raw: object = tx.get("Amount")
    if isinstance(raw, str) and raw.isdigit():
        return drops_to_xrp(raw)
    # Issued-currency amounts are objects; those are not XRP stakes.
    return None


class PositionReconciler:
    def __init__(self, pool_address: str | None = None) -> None:
        self.pool_address: str = pool_address or get_settings().ledger.pool_address

    def _is_open_payment(self, tx: Transaction, owner: str) -> bool:
        return (
            _is_payment(tx)
            and tx.get("Destination") == self.pool_address
            and tx.get("Account") == owner
        )

    def _is_close_payment(self, tx: Transaction, owner: str) -> bool:
        return (
            _is_payment(tx)
            and tx.get("Account") == self.pool_address
            and tx.get("Destination") == owner
        )

    def _position_from(
        self, tx: Transaction, event: OpenPositionEvent, owner: str
    ) -> StakePosition | None:
        amount: float = _delivered_xrp(tx) or event.amount
        start: datetime | None = _ledger_time(tx) or parse_iso(event.start_date)
        if amount <= 0 or not event.pool_id or start is None:
            return None
        try:
            end: datetime = start + timedelta(days=event.lock_period)
        except OverflowError:
            return None
        pool = POOLS.get(event.pool_id)
        return StakePosition(
            id=event.position_id,
            owner=owner,
            pool_id=event.pool_id,
            lock_period_days=event.lock_period,
            apy=event.apy,
            amount=amount,
            start_date=start,
            end_date=end,
            status=PositionStatus.ACTIVE,
            pool_name=event.pool_name or (pool.name if pool else None),
            source_tx_hash=str(tx["hash"]) if tx.get("hash") else None,
        )

    def _candidates(self, transactions: Iterable[Transaction], owner: str) -> dict[str, StakePosition]:
        candidates: dict[str, StakePosition] = {}
        for tx in transactions:
            if not self._is_open_payment(tx, owner):
                continue
            event = memo_codec.decode(tx)
            if not isinstance(event, OpenPositionEvent):
                continue
            position: StakePosition | None = self._position_from(tx, event, owner)
            if position is None:
                continue
            if position.id in candidates:
                logger.warning(
                    "Duplicate open event for position; keeping the later one",
                    owner=owner,
                    position_id=position.id,
                    kept_tx=position.source_tx_hash,
                    dropped_tx=candidates[position.id].source_tx_hash,
                )
            candidates[position.id] = position
        return candidates

    def closed_events(self, transactions: Iterable[Transaction], owner: str) -> list[CloseEvent]:
        events: list[CloseEvent] = []
        for tx in transactions:
            if not self._is_close_payment(tx, owner):
                continue
            event = memo_codec.decode(tx)
            if not isinstance(event, ClosePositionEvent):
                continue
            when: datetime | None = _ledger_time(tx)
            if when is None and event.timestamp is not None:
                when = datetime.fromtimestamp(event.timestamp / 1000, tz=UTC)
            events.append(
                CloseEvent(
                    position_id=event.position_id,
                    returned_amount=(
                        event.returned_amount
                        if event.returned_amount is not None
                        else (_delivered_xrp(tx) or 0.0)
                    ),
                    penalty_applied=bool(event.penalty_applied),
                    timestamp=when or datetime.fromtimestamp(0, tz=UTC),
                    source_tx_hash=str(tx["hash"]) if tx.get("hash") else None,
                )
            )
        return events

    def reconcile(self, transactions: Iterable[Transaction], owner: str) -> dict[str, StakePosition]:
        """Active positions for `owner`, keyed by position id."""
        scanned: list[Transaction] = list(transactions)
        candidates: dict[str, StakePosition] = self._candidates(scanned, owner)
        closed: set[str] = {e.position_id for e in self.closed_events(scanned, owner)}
        return {pid: pos for pid, pos in candidates.items() if pid not in closed}

    def reconcile_all(
        self, transactions_by_owner: Mapping[str, Iterable[Transaction]]
    ) -> dict[str, dict[str, StakePosition]]:
        """Per-owner reconcile; owners with nothing active are left out."""
        result: dict[str, dict[str, StakePosition]] = {}
        for owner, transactions in transactions_by_owner.items():
            active = self.reconcile(transactions, owner)
            if active:
                result[owner] = active
        return result
