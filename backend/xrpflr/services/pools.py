"""Pool catalogue: named lock period / APY combinations a position opens against."""

from collections.abc import Mapping
from dataclasses import dataclass, replace

from xrpflr.services.errors import InvalidRequestError, UnknownPoolError


@dataclass(frozen=True)
class Pool:
    id: str
    name: str
    lock_period_days: int
    apy: float
    min_stake: float = 0.0
    max_stake: float | None = None

    def validate_amount(self, amount: float) -> None:
        if amount <= 0:
            raise InvalidRequestError("amount must be greater than 0", field="amount")
        if amount < self.min_stake:
            raise InvalidRequestError(
                f"Minimum stake amount for {self.name} is {self.min_stake:g} XRP",
                field="amount",
            )
        if self.max_stake is not None and amount > self.max_stake:
            raise InvalidRequestError(
                f"Maximum stake amount for {self.name} is {self.max_stake:g} XRP",
                field="amount",
            )


POOLS: dict[str, Pool] = {
    "pool1": Pool("pool1", "60-Day Lock", 60, 10.4, min_stake=10, max_stake=100_000),
    "pool2": Pool("pool2", "120-Day Lock", 120, 15.6, min_stake=20, max_stake=500_000),
    "pool3": Pool("pool3", "240-Day Lock", 240, 21.0, min_stake=40, max_stake=1_000_000),
}

# Positions whose poolId is not in the catalogue are reported under this pool.
DEFAULT_STATS_POOL = "pool1"


def _positive(details: Mapping[str, object], key: str) -> float | None:
    value: object = details.get(key)
    if value is None:
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise InvalidRequestError(f"poolDetails.{key} must be a number", field=key) from None
    if number <= 0:
        raise InvalidRequestError(f"poolDetails.{key} must be greater than 0", field=key)
    return number


def _lock_days(details: Mapping[str, object]) -> int | None:
    lock: float | None = _positive(details, "lockPeriodDays")
    if lock is None:
        return None
    if lock < 1 or not lock.is_integer():
        raise InvalidRequestError(
            "poolDetails.lockPeriodDays must be a whole number of days", field="lockPeriodDays"
        )
    return int(lock)


def resolve_pool(pool_id: str, details: Mapping[str, object] | None = None) -> Pool:
    """Look a pool up, letting caller-supplied details override the catalogue entry.

    An id outside the catalogue is accepted only when the details carry both a
    lock period and a reward rate.
    """
    if not pool_id:
        raise InvalidRequestError("poolId is required", field="poolId")

    base: Pool | None = POOLS.get(pool_id)
    if not details:
        if base is None:
            raise UnknownPoolError(f"Unknown pool: {pool_id}", poolId=pool_id)
        return base

    lock: int | None = _lock_days(details)
    rate: float | None = _positive(details, "rewardRate")
    name: object = details.get("name")

    if base is None:
        if lock is None or rate is None:
            raise UnknownPoolError(
                f"Unknown pool: {pool_id} (poolDetails needs lockPeriodDays and rewardRate)",
                poolId=pool_id,
            )
        return Pool(pool_id, str(name or pool_id), lock, rate)

    return replace(
        base,
        name=str(name) if name else base.name,
        lock_period_days=lock if lock is not None else base.lock_period_days,
        apy=rate if rate is not None else base.apy,
    )
