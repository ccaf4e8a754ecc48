"""Platform-wide staking statistics from a global ledger scan."""

from collections.abc import Mapping

import structlog
from sqlalchemy.orm import Session

from xrpflr.services._types import PlatformStatsDict, PoolRefDict, PoolStatsDict
from xrpflr.services.errors import LedgerError
from xrpflr.services.pools import DEFAULT_STATS_POOL, POOLS
from xrpflr.services.reconciler import PositionReconciler
from xrpflr.services.scanner import LedgerScanner
from xrpflr.services.schemas.positions import StakePosition
from xrpflr.services.store import BookkeepingStore

logger = structlog.get_logger(__name__)


def _pool_ref(pool_id: str, stats: PoolStatsDict) -> PoolRefDict:
    return PoolRefDict(id=pool_id, name=stats["name"], apy=stats["apy"])


def build_platform_stats(
    positions_by_owner: Mapping[str, Mapping[str, StakePosition]],
    source: str,
) -> PlatformStatsDict:
    distribution: dict[str, PoolStatsDict] = {
        pool.id: PoolStatsDict(name=pool.name, amount=0.0, count=0, apy=pool.apy, percentage=0.0)
        for pool in POOLS.values()
    }
    total: float = 0.0
    apy_sum: float = 0.0
    count: int = 0
    stakers: set[str] = set()

    for owner, positions in positions_by_owner.items():
        for position in positions.values():
            if not position.is_active or position.amount <= 0:
                continue
            stakers.add(owner)
            total += position.amount
            apy_sum += position.apy
            count += 1
            bucket = distribution.get(position.pool_id) or distribution[DEFAULT_STATS_POOL]
            bucket["amount"] += position.amount
            bucket["count"] += 1

    if count == 0:
        return PlatformStatsDict(
            totalXrpStaked=0.0,
            averageApy=0.0,
            totalStakers=0,
            poolDistribution=distribution,
            mostPopularPool=None,
            highestYieldPool=None,
            source=source,
        )

    for stats in distribution.values():
        stats["percentage"] = stats["amount"] / total * 100

    # Ties keep the first pool in catalogue order.
    popular: str = max(distribution, key=lambda pid: distribution[pid]["count"])
    highest: str = max(distribution, key=lambda pid: distribution[pid]["apy"])
    return PlatformStatsDict(
        totalXrpStaked=total,
        averageApy=apy_sum / count,
        totalStakers=len(stakers),
        poolDistribution=distribution,
        mostPopularPool=_pool_ref(popular, distribution[popular]),
        highestYieldPool=_pool_ref(highest, distribution[highest]),
        source=source,
    )


class PlatformStatsService:
    def __init__(
        self,
        session: Session,
        scanner: LedgerScanner,
        reconciler: PositionReconciler | None = None,
    ) -> None:
        self.store = BookkeepingStore(session)
        self.scanner = scanner
        self.reconciler = reconciler or PositionReconciler(scanner.pool_address)

    def platform_stats(self) -> PlatformStatsDict:
        try:
            scan = self.scanner.scan_all(self.reconciler.reconcile)
        except LedgerError as e:
            logger.warning("Global scan failed, using stored positions", error=e.message)
            return build_platform_stats(self.store.all_positions(), source="store")
        return build_platform_stats(scan.positions_by_owner, source="ledger")
