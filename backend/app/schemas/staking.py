"""Stake / unstake request schemas."""

from pydantic import Field

from app.schemas.common import CamelModel


class PoolDetails(CamelModel):
    name: str | None = Field(None, max_length=64)
    lock_period_days: int | None = Field(None, ge=1)
    reward_rate: float | None = None


class StakeRequest(CamelModel):
    owner: str = Field(..., min_length=1, max_length=64)
    pool_id: str = Field(..., min_length=1, max_length=64)
    amount: float
    pool_details: PoolDetails | None = None


class ConfirmStakeRequest(CamelModel):
    owner: str = Field(..., min_length=1, max_length=64)
    position_id: str = Field(..., min_length=1, max_length=128)
    tx_hash: str = Field(..., min_length=1, max_length=128)


class UnstakeRequest(CamelModel):
    owner: str = Field(..., min_length=1, max_length=64)
    stake_id: str = Field(..., min_length=1, max_length=128)
