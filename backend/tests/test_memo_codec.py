"""Tests for xrpflr.services.memo_codec."""

import json

import pytest

from db.enums import EventAction, MemoType
from factories import open_memo_json, raw_memo
from xrpflr.services import memo_codec
from xrpflr.services._helpers import hex_to_utf8, utf8_to_hex
from xrpflr.services.errors import InvalidRequestError
from xrpflr.services.schemas.events import ClosePositionEvent, OpenPositionEvent


def test_encode_uses_uppercase_hex_fields() -> None:
    memo = memo_codec.encode("open_position", {"positionId": "p1", "amount": 100})
    assert hex_to_utf8(memo["MemoType"]) == "XrpFlrStaking"
    assert hex_to_utf8(memo["MemoFormat"]) == "application/json"
    assert memo["MemoData"] == memo["MemoData"].upper()
    body = json.loads(hex_to_utf8(memo["MemoData"]) or "")
    assert body == {"positionId": "p1", "amount": 100, "action": "open_position"}


def test_encode_close_defaults_memo_type_by_action() -> None:
    closing = memo_codec.encode("close_position", {"positionId": "p1"})
    processed = memo_codec.encode("unstake_processed", {"positionId": "p1"})
    assert hex_to_utf8(closing["MemoType"]) == MemoType.UNSTAKING.value
    assert hex_to_utf8(processed["MemoType"]) == MemoType.AUTO_UNSTAKE.value


def test_encode_rejects_unknown_event_type() -> None:
    with pytest.raises(InvalidRequestError):
        memo_codec.encode("withdraw_everything", {"positionId": "p1"})


def test_encode_requires_position_id() -> None:
    with pytest.raises(InvalidRequestError):
        memo_codec.encode("open_position", {"amount": 10})


def test_encode_rejects_action_under_wrong_memo_type() -> None:
    with pytest.raises(InvalidRequestError):
        memo_codec.encode("open_position", {"positionId": "p1"}, MemoType.UNSTAKING)


def test_open_event_round_trip() -> None:
    event = OpenPositionEvent(
        position_id="1700000000000-abc",
        pool_id="pool2",
        amount=250.5,
        lock_period=120,
        apy=15.6,
        pool_name="120-Day Lock",
    )
    decoded = memo_codec.decode_memo(memo_codec.encode_event(event))
    assert decoded == event


def test_close_event_round_trip() -> None:
    event = ClosePositionEvent(
        position_id="p9",
        action=EventAction.UNSTAKE_PROCESSED,
        original_amount=1000.0,
        returned_amount=950.0,
        penalty_applied=True,
        penalty_percentage=5.0,
        penalty_amount=50.0,
        is_early_unstake=True,
        timestamp=1700000000000,
        version="v1_with_early_unstake_penalty",
    )
    assert memo_codec.decode_memo(memo_codec.encode_event(event)) == event


def test_decode_applies_open_defaults() -> None:
    memo = raw_memo(MemoType.STAKING.value, json.dumps({"action": "open_position", "positionId": "p1"}))
    event = memo_codec.decode_memo(memo)
    assert isinstance(event, OpenPositionEvent)
    assert event.pool_id == "default"
    assert event.lock_period == 30
    assert event.apy == 12.0


def test_decode_falls_back_to_reward_rate() -> None:
    memo = raw_memo(
        MemoType.STAKING.value,
        json.dumps({"action": "open_position", "positionId": "p1", "rewardRate": 9.5}),
    )
    event = memo_codec.decode_memo(memo)
    assert isinstance(event, OpenPositionEvent)
    assert event.apy == 9.5


@pytest.mark.parametrize(
    "memo",
    [
        raw_memo("SomethingElse", json.dumps({"action": "open_position", "positionId": "p1"})),
        raw_memo(MemoType.STAKING.value, "{not json"),
        raw_memo(MemoType.STAKING.value, json.dumps({"action": "open_position"})),
        raw_memo(MemoType.STAKING.value, json.dumps(["open_position", "p1"])),
        raw_memo(MemoType.STAKING.value, json.dumps({"action": "close_position", "positionId": "p1"})),
        raw_memo(MemoType.UNSTAKING.value, json.dumps({"action": "open_position", "positionId": "p1"})),
        {"MemoType": "ZZZZ", "MemoData": utf8_to_hex("{}")},
        {"MemoType": utf8_to_hex(MemoType.STAKING.value), "MemoData": "XYZ"},
        {"MemoData": utf8_to_hex("{}")},
    ],
)
def test_decode_filters_foreign_or_malformed_memos(memo: dict[str, str]) -> None:
    assert memo_codec.decode_memo(memo) is None


def test_decode_transaction_returns_first_staking_event() -> None:
    ours = memo_codec.encode("open_position", {"positionId": "p2", "poolId": "pool1"})
    tx = {
        "Memos": [
            {"Memo": raw_memo("invoice", "12345")},
            "garbage",
            {"Memo": ours},
        ]
    }
    event = memo_codec.decode(tx)
    assert isinstance(event, OpenPositionEvent)
    assert event.position_id == "p2"


def test_decode_transaction_without_memos() -> None:
    assert memo_codec.decode({"TransactionType": "Payment"}) is None
    assert memo_codec.decode({"Memos": "nope"}) is None


def test_wrap_nests_under_memo_key() -> None:
    memo = memo_codec.encode("open_position", {"positionId": "p1"})
    assert memo_codec.wrap(memo) == {"Memo": memo}


@pytest.mark.parametrize(
    "terms",
    [
        {"lockPeriod": 1e10},
        {"lockPeriod": float("inf")},
        {"lockPeriod": float("nan")},
        {"lockPeriod": 0},
        {"lockPeriod": -30},
        {"apy": float("inf")},
        {"apy": -1},
        {"amount": float("inf")},
    ],
)
def test_open_memo_with_out_of_range_terms_is_skipped(terms: dict[str, float]) -> None:
    memo = raw_memo(MemoType.STAKING.value, open_memo_json("p1", **terms))
    assert memo_codec.decode_memo(memo) is None


def test_close_memo_with_infinite_timestamp_keeps_the_event() -> None:
    memo = raw_memo(
        MemoType.AUTO_UNSTAKE.value,
        json.dumps({"action": "unstake_processed", "positionId": "p1", "timestamp": float("inf")}),
    )
    event = memo_codec.decode_memo(memo)
    assert isinstance(event, ClosePositionEvent)
    assert event.timestamp is None


def test_explicit_zero_apy_is_not_replaced_by_default() -> None:
    event = OpenPositionEvent(position_id="p1", pool_id="promo", amount=10, lock_period=1, apy=0.0)
    assert memo_codec.decode_memo(memo_codec.encode_event(event)) == event
