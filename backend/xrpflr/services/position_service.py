"""Owner-facing position reads and the stake / confirm write paths."""

import secrets
from datetime import timedelta

import structlog
from sqlalchemy.orm import Session
from xrpl.core.addresscodec import is_valid_classic_address

from config import get_settings
from db.enums import PositionStatus
from xrpflr.services import memo_codec
from xrpflr.services._helpers import JsonDict, now_ms, to_iso, utc_now, xrp_to_drops
from xrpflr.services._types import PaymentTxJson, PositionDict, StakePayloadDict
from xrpflr.services.errors import (
    InvalidRequestError,
    LedgerError,
    PositionNotActiveError,
    PositionNotFoundError,
)
from xrpflr.services.ledger_client import LedgerClient
from xrpflr.services.locks import KeyedLocks, owner_locks
from xrpflr.services.pools import Pool, resolve_pool
from xrpflr.services.reconciler import PositionReconciler
from xrpflr.services.scanner import LedgerScanner
from xrpflr.services.schemas.events import OpenPositionEvent
from xrpflr.services.schemas.positions import StakePosition
from xrpflr.services.store import BookkeepingStore

logger = structlog.get_logger(__name__)

ACCOUNT_TX_PROXY_LIMIT = 50


def require_address(address: str, field: str = "owner") -> str:
    address = (address or "").strip()
    if not address:
        raise InvalidRequestError(f"{field} is required", field=field)
    if not is_valid_classic_address(address):
        raise InvalidRequestError(f"{field} is not a valid XRPL address", field=field)
    return address


def new_position_id() -> str:
    return f"{now_ms()}-{secrets.token_hex(5)}"


class PositionService:
    """Ledger-first position lookups with the bookkeeping store as fallback."""

    def __init__(
        self,
        session: Session,
        ledger: LedgerClient,
        scanner: LedgerScanner | None = None,
        reconciler: PositionReconciler | None = None,
        locks: KeyedLocks = owner_locks,
    ) -> None:
        settings = get_settings()
        self.store = BookkeepingStore(session)
        self.ledger = ledger
        self.scanner = scanner or LedgerScanner(ledger)
        self.reconciler = reconciler or PositionReconciler(self.scanner.pool_address)
        self.locks = locks
        self.pool_address: str = self.scanner.pool_address
        self.pending_ttl = timedelta(seconds=settings.staking.pending_stake_ttl)

    def _rebuild_snapshot(self, owner: str, active: dict[str, StakePosition]) -> None:
        """Replace the stored view with the ledger view, keeping fresh unsigned stakes."""
        cutoff = utc_now() - self.pending_ttl
        with self.locks.hold(owner):
            stored: dict[str, StakePosition] = self.store.get_positions(owner)
            snapshot: dict[str, StakePosition] = dict(active)
            for pid, position in stored.items():
                if pid in snapshot or position.status != PositionStatus.PENDING_SIGNATURE:
                    continue
                if position.start_date >= cutoff:
                    snapshot[pid] = position
            if snapshot:
                self.store.put_positions(owner, snapshot)
            elif stored:
                self.store.delete_positions(owner)

    def stored_active(self, owner: str) -> dict[str, StakePosition]:
        return {pid: p for pid, p in self.store.get_positions(owner).items() if p.is_active}

    def get_active_positions(self, owner: str) -> tuple[list[StakePosition], str]:
        """Active positions and where they came from ("ledger" or "store")."""
        owner = require_address(owner)
        try:
            transactions = self.scanner.fetch_owner_transactions(owner)
        except LedgerError as e:
            logger.warning("Ledger read failed, using stored positions", owner=owner, error=e.message)
            return list(self.stored_active(owner).values()), "store"

        active = self.reconciler.reconcile(transactions, owner)
        self._rebuild_snapshot(owner, active)
        return list(active.values()), "ledger"

    def find_active_position(self, owner: str, stake_id: str) -> StakePosition:
        """Resolve one position for unstaking. Rejects unknown and non-active ids."""
        positions, source = self.get_active_positions(owner)
        for position in positions:
            if position.id == stake_id:
                return position

        stored: StakePosition | None = self.store.get_positions(owner).get(stake_id)
        if stored is not None and not stored.is_active:
            raise PositionNotActiveError(
                f"Cannot unstake stake with status {stored.status.value}. "
                "Only active stakes can be unstaked.",
                stakeId=stake_id,
                status=stored.status.value,
            )
        raise PositionNotFoundError(f"Stake with ID {stake_id} not found.", stakeId=stake_id, source=source)

    def create_stake_payload(
        self,
        owner: str,
        pool_id: str,
        amount: float,
        pool_details: dict[str, object] | None = None,
    ) -> StakePayloadDict:
        """Unsigned payment carrying an open_position memo, plus a pending local position."""
        owner = require_address(owner)
        pool: Pool = resolve_pool(pool_id, pool_details)
        pool.validate_amount(amount)

        position = StakePosition.opened(
            position_id=new_position_id(),
            owner=owner,
            pool_id=pool.id,
            lock_period_days=pool.lock_period_days,
            apy=pool.apy,
            amount=amount,
            start_date=utc_now(),
            status=PositionStatus.PENDING_SIGNATURE,
            pool_name=pool.name,
        )
        event = OpenPositionEvent(
            position_id=position.id,
            pool_id=pool.id,
            amount=amount,
            lock_period=pool.lock_period_days,
            apy=pool.apy,
            start_date=to_iso(position.start_date),
            end_date=to_iso(position.end_date),
            pool_name=pool.name,
        )
        tx_json = PaymentTxJson(
            TransactionType="Payment",
            Destination=self.pool_address,
            Amount=xrp_to_drops(amount),
            Memos=[memo_codec.wrap(memo_codec.encode_event(event))],
        )

        with self.locks.hold(owner):
            positions = self.store.get_positions(owner)
            positions[position.id] = position
            self.store.put_positions(owner, positions)

        logger.info(
            "Stake payload created",
            owner=owner,
            position_id=position.id,
            pool_id=pool.id,
            amount=amount,
        )
        return StakePayloadDict(positionId=position.id, txJson=tx_json, position=position.to_dict())

    def confirm_stake(self, owner: str, position_id: str, tx_hash: str) -> PositionDict:
        """Promote a pending position once its signed payment is validated on the ledger."""
        owner = require_address(owner)
        if not position_id or not tx_hash:
            raise InvalidRequestError("positionId and txHash are required")

        tx: JsonDict = self.ledger.get_transaction(tx_hash)
        if not tx.get("validated"):
            raise InvalidRequestError("Transaction is not validated yet", txHash=tx_hash)

        confirmed: StakePosition | None = self.reconciler.reconcile([tx], owner).get(position_id)
        if confirmed is None:
            raise InvalidRequestError(
                "Transaction is not a successful stake payment for this position",
                txHash=tx_hash,
                positionId=position_id,
            )

        with self.locks.hold(owner):
            positions = self.store.get_positions(owner)
            positions[position_id] = confirmed
            self.store.put_positions(owner, positions)

        logger.info("Stake confirmed", owner=owner, position_id=position_id, tx_hash=tx_hash)
        return confirmed.to_dict()

    def account_transactions(self, address: str) -> list[JsonDict]:
        address = require_address(address, field="address")
        return self.ledger.fetch_transactions(address, limit=ACCOUNT_TX_PROXY_LIMIT)
