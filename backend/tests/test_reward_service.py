"""Tests for xrpflr.services.reward_service."""

import pytest
from sqlalchemy.orm import Session

from factories import PAYOUT_ADDRESS, FakeLedgerClient, FakePayoutClient, days_ago, open_payment
from xrpflr.services.errors import InvalidRequestError, NoRewardsError
from xrpflr.services.locks import KeyedLocks
from xrpflr.services.position_service import PositionService
from xrpflr.services.reward_service import RewardService
from xrpflr.services.store import BookkeepingStore


def _service(
    session: Session, ledger: FakeLedgerClient, payout: FakePayoutClient, locks: KeyedLocks
) -> RewardService:
    positions = PositionService(session, ledger, locks=locks)  # type: ignore[arg-type]
    return RewardService(session, positions, payout, locks=locks)  # type: ignore[arg-type]


def test_rewards_for_owner_without_positions(
    session: Session, ledger: FakeLedgerClient, payout: FakePayoutClient, locks: KeyedLocks, owner: str
) -> None:
    rewards = _service(session, ledger, payout, locks).get_rewards(owner)
    assert rewards == {"availableRewards": 0.0, "pendingRewards": 0.0, "totalClaimed": 0.0, "history": []}


def test_rewards_accrue_from_ledger_positions(
    session: Session, ledger: FakeLedgerClient, payout: FakePayoutClient, locks: KeyedLocks, owner: str
) -> None:
    ledger.record(open_payment(owner, "p1", amount=1000, lock_period=60, apy=10.4, when=days_ago(30)))
    rewards = _service(session, ledger, payout, locks).get_rewards(owner)
    assert rewards["availableRewards"] == pytest.approx(8.5479, abs=1e-3)
    assert rewards["pendingRewards"] == pytest.approx(1000 * 0.104 * 60 / 365, abs=1e-3)
    assert BookkeepingStore(session).get_reward_entry(owner).available > 0


def test_claim_pays_out_and_checkpoints(
    session: Session, ledger: FakeLedgerClient, payout: FakePayoutClient, locks: KeyedLocks, owner: str
) -> None:
    ledger.record(open_payment(owner, "p1", amount=1000, when=days_ago(30)))
    service = _service(session, ledger, payout, locks)

    result = service.claim(owner, PAYOUT_ADDRESS)

    assert result["success"] is True
    assert result["status"] == "confirmed"
    assert result["amount"] == pytest.approx(8.5479, abs=1e-3)
    assert result["txHash"] == "0x" + "ab" * 32
    assert payout.sent == [(PAYOUT_ADDRESS, result["amount"])]

    rewards = service.get_rewards(owner)
    assert rewards["totalClaimed"] == pytest.approx(result["amount"])
    assert rewards["availableRewards"] < 0.01
    assert [h["status"] for h in rewards["history"]] == ["confirmed"]
    assert BookkeepingStore(session).get_last_claim_time(owner) is not None


def test_failed_payout_is_recorded(
    session: Session, ledger: FakeLedgerClient, locks: KeyedLocks, owner: str
) -> None:
    ledger.record(open_payment(owner, "p1", amount=1000, when=days_ago(30)))
    service = _service(session, ledger, FakePayoutClient(error="Insufficient balance"), locks)

    result = service.claim(owner, PAYOUT_ADDRESS)

    assert result["success"] is False
    assert result["status"] == "failed"
    assert result["txHash"] is None
    assert result["error"] == "Insufficient balance"
    entry = BookkeepingStore(session).get_reward_entry(owner)
    assert entry.history[-1]["status"] == "failed"
    assert entry.claimed == pytest.approx(result["amount"])


def test_claim_with_nothing_available(
    session: Session, ledger: FakeLedgerClient, payout: FakePayoutClient, locks: KeyedLocks, owner: str
) -> None:
    with pytest.raises(NoRewardsError):
        _service(session, ledger, payout, locks).claim(owner, PAYOUT_ADDRESS)
    assert payout.sent == []


def test_claim_rejects_bad_payout_address(
    session: Session, ledger: FakeLedgerClient, payout: FakePayoutClient, locks: KeyedLocks, owner: str
) -> None:
    with pytest.raises(InvalidRequestError) as exc:
        _service(session, ledger, payout, locks).claim(owner, "0x123")
    assert exc.value.extra["field"] == "payoutAddress"


def test_history_is_chronological(
    session: Session, ledger: FakeLedgerClient, payout: FakePayoutClient, locks: KeyedLocks, owner: str
) -> None:
    ledger.record(open_payment(owner, "p1", amount=100_000, when=days_ago(30)))
    service = _service(session, ledger, payout, locks)
    first = service.claim(owner, PAYOUT_ADDRESS)
    second = service.claim(owner, PAYOUT_ADDRESS)

    history = service.get_rewards(owner)["history"]
    assert [h["amount"] for h in history] == [first["amount"], second["amount"]]
