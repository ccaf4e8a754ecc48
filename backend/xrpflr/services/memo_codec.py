"""Staking protocol carried in the hex memo fields of ordinary payments.

Wire format (each field hex-encoded UTF-8, uppercase):
  MemoType   XrpFlrStaking | XrpFlrUnstaking | XrpFlrAutoUnstake
  MemoData   JSON payload
  MemoFormat application/json

A memo that is not ours, is not valid hex/JSON, lacks a positionId or carries
out-of-range open terms decodes to None. That is a filter, never an error.
"""

import json
import math
from collections.abc import Mapping

import structlog

from db.enums import EventAction, MemoType
from xrpflr.services._helpers import hex_to_utf8, utf8_to_hex
from xrpflr.services._types import MemoFields, MemoWrapper
from xrpflr.services.errors import InvalidRequestError
from xrpflr.services.schemas.events import ClosePositionEvent, OpenPositionEvent, StakingEvent

logger = structlog.get_logger(__name__)

MEMO_FORMAT = "application/json"
DEFAULT_LOCK_PERIOD_DAYS = 30
DEFAULT_APY = 12.0
DEFAULT_POOL_ID = "default"
MAX_LOCK_PERIOD_DAYS = 3650
MAX_APY = 1000.0

# Memo types each action may travel under.
_ACTIONS_BY_MEMO_TYPE: dict[MemoType, frozenset[EventAction]] = {
    MemoType.STAKING: frozenset({EventAction.OPEN_POSITION}),
    MemoType.UNSTAKING: frozenset({EventAction.CLOSE_POSITION, EventAction.UNSTAKE_PROCESSED}),
    MemoType.AUTO_UNSTAKE: frozenset({EventAction.CLOSE_POSITION, EventAction.UNSTAKE_PROCESSED}),
}

_DEFAULT_MEMO_TYPE: dict[EventAction, MemoType] = {
    EventAction.OPEN_POSITION: MemoType.STAKING,
    EventAction.CLOSE_POSITION: MemoType.UNSTAKING,
    EventAction.UNSTAKE_PROCESSED: MemoType.AUTO_UNSTAKE,
}


def memo_type_for(action: EventAction) -> MemoType:
    return _DEFAULT_MEMO_TYPE[action]


def encode(
    event_type: EventAction | str,
    payload: Mapping[str, object],
    memo_type: MemoType | None = None,
) -> MemoFields:
    """Encode a staking payload into the three hex memo fields."""
    try:
        action: EventAction = EventAction(event_type)
    except ValueError as exc:
        raise InvalidRequestError(f"Unknown staking event type: {event_type}") from exc
    if not payload.get("positionId"):
        raise InvalidRequestError("Staking memo payload requires a positionId")

    body: dict[str, object] = dict(payload)
    body["action"] = action.value
    chosen: MemoType = memo_type or memo_type_for(action)
    if action not in _ACTIONS_BY_MEMO_TYPE[chosen]:
        raise InvalidRequestError(f"{action.value} cannot travel under memo type {chosen.value}")

    return MemoFields(
        MemoType=utf8_to_hex(chosen.value),
        MemoData=utf8_to_hex(json.dumps(body, separators=(",", ":"))),
        MemoFormat=utf8_to_hex(MEMO_FORMAT),
    )


def encode_event(event: StakingEvent, memo_type: MemoType | None = None) -> MemoFields:
    return encode(event.action, event.to_payload(), memo_type)


def wrap(memo: MemoFields) -> MemoWrapper:
    """Shape a memo the way it sits in a transaction's Memos array."""
    return MemoWrapper(Memo=memo)


def _as_float(value: object, default: float | None = None) -> float | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _as_bool(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def _or_default(value: float | None, default: float) -> float:
    return default if value is None else value


def _open_event(data: Mapping[str, object]) -> OpenPositionEvent | None:
    apy: float = _or_default(
        _as_float(data.get("apy")), _or_default(_as_float(data.get("rewardRate")), DEFAULT_APY)
    )
    lock: float = _or_default(_as_float(data.get("lockPeriod")), DEFAULT_LOCK_PERIOD_DAYS)
    amount: float = _or_default(_as_float(data.get("amount")), 0.0)
    # NaN fails every comparison, so it is rejected with the out-of-range values.
    if not (1 <= lock <= MAX_LOCK_PERIOD_DAYS and 0 <= apy <= MAX_APY and 0 <= amount < math.inf):
        logger.debug(
            "Open memo terms out of range",
            position_id=str(data["positionId"]),
            lock_period=lock,
            apy=apy,
        )
        return None
    return OpenPositionEvent(
        position_id=str(data["positionId"]),
        pool_id=str(data.get("poolId") or DEFAULT_POOL_ID),
        amount=amount,
        lock_period=int(lock),
        apy=apy,
        start_date=str(data["startDate"]) if data.get("startDate") else None,
        end_date=str(data["endDate"]) if data.get("endDate") else None,
        pool_name=str(data["poolName"]) if data.get("poolName") else None,
        version=str(data["version"]) if data.get("version") else None,
    )


def _close_event(action: EventAction, data: Mapping[str, object]) -> ClosePositionEvent:
    timestamp: float | None = _as_float(data.get("timestamp"))
    return ClosePositionEvent(
        position_id=str(data["positionId"]),
        action=action,
        original_amount=_as_float(data.get("originalAmount")),
        returned_amount=_as_float(data.get("returnedAmount")),
        penalty_applied=_as_bool(data.get("penaltyApplied")),
        penalty_percentage=_as_float(data.get("penaltyPercentage")),
        penalty_amount=_as_float(data.get("penaltyAmount")),
        is_early_unstake=_as_bool(data.get("isEarlyUnstake")),
        stake_end_date=str(data["stakeEndDate"]) if data.get("stakeEndDate") else None,
        timestamp=int(timestamp) if timestamp is not None and math.isfinite(timestamp) else None,
        version=str(data["version"]) if data.get("version") else None,
    )


def decode_memo(memo: Mapping[str, object]) -> StakingEvent | None:
    """Decode a single {MemoType, MemoData, MemoFormat} mapping."""
    raw_type: object = memo.get("MemoType")
    raw_data: object = memo.get("MemoData")
    if not isinstance(raw_type, str) or not isinstance(raw_data, str):
        return None

    try:
        memo_type: MemoType = MemoType(hex_to_utf8(raw_type) or "")
    except ValueError:
        return None

    text: str | None = hex_to_utf8(raw_data)
    if text is None:
        logger.debug("Memo data is not valid hex", memo_type=memo_type.value)
        return None
    try:
        data: object = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Memo data is not valid JSON", memo_type=memo_type.value)
        return None
    if not isinstance(data, dict) or not data.get("positionId"):
        return None

    try:
        action: EventAction = EventAction(data.get("action"))
    except ValueError:
        return None
    if action not in _ACTIONS_BY_MEMO_TYPE[memo_type]:
        return None

    if action == EventAction.OPEN_POSITION:
        return _open_event(data)
    return _close_event(action, data)


def decode(transaction: Mapping[str, object]) -> StakingEvent | None:
    """Return the first staking event carried by a transaction, or None."""
    memos: object = transaction.get("Memos")
    if not isinstance(memos, list):
        return None
    for wrapper in memos:
        memo: object = wrapper.get("Memo") if isinstance(wrapper, dict) else None
        if not isinstance(memo, dict):
            continue
        event: StakingEvent | None = decode_memo(memo)
        if event is not None:
            return event
    return None
