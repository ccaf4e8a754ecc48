"""Tests for xrpflr.services.position_service."""

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from db.enums import PositionStatus
from factories import POOL, FakeLedgerClient, close_payment, days_ago, make_position, open_payment
from xrpflr.services import memo_codec
from xrpflr.services._helpers import utc_now
from xrpflr.services.errors import (
    InvalidRequestError,
    PositionNotActiveError,
    PositionNotFoundError,
    TransactionNotFoundError,
    UnknownPoolError,
)
from xrpflr.services.locks import KeyedLocks
from xrpflr.services.position_service import PositionService, new_position_id, require_address
from xrpflr.services.schemas.events import OpenPositionEvent
from xrpflr.services.store import BookkeepingStore


@pytest.fixture()
def service(session: Session, ledger: FakeLedgerClient, locks: KeyedLocks) -> PositionService:
    return PositionService(session, ledger, locks=locks)  # type: ignore[arg-type]


def test_require_address(owner: str) -> None:
    assert require_address(f"  {owner} ") == owner
    with pytest.raises(InvalidRequestError):
        require_address("")
    with pytest.raises(InvalidRequestError):
        require_address("not-an-address")


def test_position_ids_are_unique() -> None:
    assert len({new_position_id() for _ in range(50)}) == 50


class TestReads:
    def test_active_positions_come_from_ledger(
        self, service: PositionService, ledger: FakeLedgerClient, session: Session, owner: str
    ) -> None:
        ledger.record(open_payment(owner, "p1"), open_payment(owner, "p2"), close_payment(owner, "p1"))

        positions, source = service.get_active_positions(owner)

        assert source == "ledger"
        assert [p.id for p in positions] == ["p2"]
        assert set(BookkeepingStore(session).get_positions(owner)) == {"p2"}

    def test_ledger_failure_falls_back_to_store(
        self, service: PositionService, ledger: FakeLedgerClient, session: Session, owner: str
    ) -> None:
        BookkeepingStore(session).put_positions(
            owner,
            {
                "kept": make_position(owner, "kept"),
                "unsigned": make_position(owner, "unsigned", status=PositionStatus.PENDING_SIGNATURE),
            },
        )
        ledger.failing.add(owner)

        positions, source = service.get_active_positions(owner)

        assert source == "store"
        assert [p.id for p in positions] == ["kept"]

    def test_snapshot_rebuild_drops_closed_and_stale_pending(
        self, service: PositionService, ledger: FakeLedgerClient, session: Session, owner: str
    ) -> None:
        store = BookkeepingStore(session)
        stale = make_position(
            owner, "stale", start=utc_now() - timedelta(days=2), status=PositionStatus.PENDING_SIGNATURE
        )
        fresh = make_position(owner, "fresh", status=PositionStatus.PENDING_SIGNATURE)
        store.put_positions(owner, {"old": make_position(owner, "old"), "stale": stale, "fresh": fresh})

        positions, _ = service.get_active_positions(owner)

        assert positions == []
        assert set(store.get_positions(owner)) == {"fresh"}

    def test_empty_ledger_view_clears_snapshot(
        self, service: PositionService, session: Session, owner: str
    ) -> None:
        store = BookkeepingStore(session)
        store.put_positions(owner, {"old": make_position(owner, "old")})
        service.get_active_positions(owner)
        assert store.list_position_owners() == []

    def test_find_active_position(self, service: PositionService, ledger: FakeLedgerClient, owner: str) -> None:
        ledger.record(open_payment(owner, "p1", when=days_ago(3)))
        assert service.find_active_position(owner, "p1").id == "p1"
        with pytest.raises(PositionNotFoundError):
            service.find_active_position(owner, "p2")

    def test_find_rejects_pending_position(
        self, service: PositionService, session: Session, owner: str
    ) -> None:
        BookkeepingStore(session).put_positions(
            owner, {"p1": make_position(owner, "p1", status=PositionStatus.PENDING_SIGNATURE)}
        )
        with pytest.raises(PositionNotActiveError):
            service.find_active_position(owner, "p1")


class TestStakePayload:
    def test_stake_payload_carries_open_memo(
        self, service: PositionService, session: Session, owner: str
    ) -> None:
        payload = service.create_stake_payload(owner, "pool2", 250.0)

        tx = payload["txJson"]
        assert tx["TransactionType"] == "Payment"
        assert tx["Destination"] == POOL
        assert tx["Amount"] == "250000000"
        event = memo_codec.decode_memo(tx["Memos"][0]["Memo"])
        assert isinstance(event, OpenPositionEvent)
        assert event.position_id == payload["positionId"]
        assert (event.pool_id, event.lock_period, event.apy, event.amount) == ("pool2", 120, 15.6, 250.0)

        assert payload["position"]["status"] == "pending_signature"
        stored = BookkeepingStore(session).get_positions(owner)[payload["positionId"]]
        assert stored.status == PositionStatus.PENDING_SIGNATURE

    def test_stake_payload_with_custom_pool(self, service: PositionService, owner: str) -> None:
        payload = service.create_stake_payload(
            owner, "promo", 50.0, {"name": "Promo", "lockPeriodDays": 14, "rewardRate": 7.5}
        )
        assert payload["position"]["poolName"] == "Promo"
        assert payload["position"]["lockPeriod"] == 14
        assert payload["position"]["apy"] == 7.5

    def test_stake_payload_validation(self, service: PositionService, owner: str) -> None:
        with pytest.raises(UnknownPoolError):
            service.create_stake_payload(owner, "nope", 50.0)
        with pytest.raises(InvalidRequestError):
            service.create_stake_payload(owner, "pool1", 0)
        with pytest.raises(InvalidRequestError):
            service.create_stake_payload("bogus", "pool1", 50.0)


class TestConfirm:
    def test_confirm_promotes_pending_position(
        self, service: PositionService, ledger: FakeLedgerClient, session: Session, owner: str
    ) -> None:
        payload = service.create_stake_payload(owner, "pool1", 100.0)
        tx = open_payment(owner, payload["positionId"], amount=100.0)
        ledger.record(tx)

        confirmed = service.confirm_stake(owner, payload["positionId"], str(tx["hash"]))

        assert confirmed["status"] == "active"
        assert confirmed["sourceTxHash"] == tx["hash"]
        stored = BookkeepingStore(session).get_positions(owner)[payload["positionId"]]
        assert stored.is_active

    def test_confirm_rejects_unvalidated_tx(
        self, service: PositionService, ledger: FakeLedgerClient, owner: str
    ) -> None:
        tx = open_payment(owner, "p1")
        tx["validated"] = False
        ledger.record(tx)
        with pytest.raises(InvalidRequestError):
            service.confirm_stake(owner, "p1", str(tx["hash"]))

    def test_confirm_rejects_tx_for_other_position(
        self, service: PositionService, ledger: FakeLedgerClient, owner: str
    ) -> None:
        tx = open_payment(owner, "p1")
        ledger.record(tx)
        with pytest.raises(InvalidRequestError):
            service.confirm_stake(owner, "p2", str(tx["hash"]))

    def test_confirm_unknown_hash(self, service: PositionService, owner: str) -> None:
        with pytest.raises(TransactionNotFoundError):
            service.confirm_stake(owner, "p1", "F" * 64)

    def test_account_transactions_proxy(
        self, service: PositionService, ledger: FakeLedgerClient, owner: str
    ) -> None:
        ledger.record(*(open_payment(owner, f"p{i}") for i in range(60)))
        assert len(service.account_transactions(owner)) == 50
        with pytest.raises(InvalidRequestError):
            service.account_transactions("")
