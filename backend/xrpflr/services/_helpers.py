"""Shared utilities for the service layer."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import ROUND_DOWN, Decimal

from xrpl import utils as xrpl_utils

# Every JSON TEXT column stores a dict or a list of dicts.
JsonDict = dict[str, object]
Serializable = Mapping[str, object] | list[Mapping[str, object]]

ONE_DROP = Decimal("0.000001")
SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY


def utc_now() -> datetime:
    return datetime.now(UTC)


def now_iso() -> str:
    return utc_now().isoformat()


def now_ms() -> int:
    return int(utc_now().timestamp() * 1000)


def parse_iso(raw: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (accepts a trailing Z). Naive values are taken as UTC."""
    if not raw:
        return None
    try:
        parsed: datetime = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def to_iso(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def load_json(raw: str | None) -> object | None:
    if not raw:
        return None
    return json.loads(raw)


def dump_json(obj: Serializable) -> str:
    return json.dumps(obj, default=str)


def xrp_to_drops(amount: float) -> str:
    """XRP amount to an integer drops string, truncated to whole drops like the wallet UI does."""
    whole_drops: Decimal = Decimal(str(amount)).quantize(ONE_DROP, rounding=ROUND_DOWN)
    return xrpl_utils.xrp_to_drops(whole_drops)


def drops_to_xrp(drops: str | int) -> float:
    return float(xrpl_utils.drops_to_xrp(str(drops)))


def utf8_to_hex(value: str) -> str:
    # Memo fields are compared and stored uppercase.
    return xrpl_utils.str_to_hex(value).upper()


def hex_to_utf8(value: str) -> str | None:
    try:
        return xrpl_utils.hex_to_str(value)
    except ValueError:
        return None
