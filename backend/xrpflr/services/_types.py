"""Typed dicts for service-layer return values.

Keeps route-facing methods explicit about their shape instead of returning bare dicts.
Keys are camelCase because these shapes go straight to the dashboard.
"""

import sys

if sys.version_info >= (3, 12):
    from typing import TypedDict
else:
    from typing_extensions import TypedDict


# -- Ledger wire -------------------------------------------------------------


class MemoFields(TypedDict):
    MemoType: str
    MemoData: str
    MemoFormat: str


class MemoWrapper(TypedDict):
    Memo: MemoFields


class PaymentTxJson(TypedDict):
    TransactionType: str
    Destination: str
    Amount: str
    Memos: list[MemoWrapper]


# -- Positions ---------------------------------------------------------------


class PositionDict(TypedDict):
    id: str
    owner: str
    poolId: str
    poolName: str | None
    lockPeriod: int
    apy: float
    amount: float
    startDate: str
    endDate: str
    status: str
    sourceTxHash: str | None


class StakePayloadDict(TypedDict):
    positionId: str
    txJson: PaymentTxJson
    position: PositionDict


# -- Rewards -----------------------------------------------------------------


class ClaimRecordDict(TypedDict):
    id: str
    amount: float
    timestamp: str
    txHash: str | None
    status: str
    error: str | None
    payoutAddress: str


class RewardsDict(TypedDict):
    availableRewards: float
    pendingRewards: float
    totalClaimed: float
    history: list[ClaimRecordDict]


class ClaimResultDict(TypedDict):
    success: bool
    amount: float
    txHash: str | None
    status: str
    error: str | None
    timestamp: str


# -- Unstaking ---------------------------------------------------------------


class UnstakeResultDict(TypedDict, total=False):
    txHash: str
    message: str
    amountReturned: float
    originalAmount: float
    penaltyApplied: bool
    penaltyPercentage: float
    penaltyAmount: float
    isEarlyUnstake: bool
    stakeEndDate: str


class UnstakeStatusDict(TypedDict, total=False):
    requestId: str
    stakeId: str
    owner: str
    status: str
    message: str
    txHash: str | None
    error: str | None
    timestamp: str
    amountReturned: float
    originalAmount: float
    penaltyApplied: bool
    penaltyPercentage: float
    penaltyAmount: float
    isEarlyUnstake: bool


# -- Platform stats ----------------------------------------------------------


class PoolStatsDict(TypedDict):
    name: str
    amount: float
    count: int
    apy: float
    percentage: float


class PoolRefDict(TypedDict):
    id: str
    name: str
    apy: float


class PlatformStatsDict(TypedDict):
    totalXrpStaked: float
    averageApy: float
    totalStakers: int
    poolDistribution: dict[str, PoolStatsDict]
    mostPopularPool: PoolRefDict | None
    highestYieldPool: PoolRefDict | None
    source: str


# -- Health ------------------------------------------------------------------


class DbInfoDict(TypedDict, total=False):
    backend_type: str
    database_url_or_path: str | None
    tables_present: list[str]
    schema_initialized: bool
    pid: int
    error: str


class LedgerInfoDict(TypedDict, total=False):
    rpc_url: str
    pool_address: str
    reachable: bool
    validated_ledger_index: int | None
    error: str
