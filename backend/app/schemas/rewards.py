"""Reward claim schemas."""

from pydantic import Field

from app.schemas.common import CamelModel


class ClaimRequest(CamelModel):
    owner: str = Field(..., min_length=1, max_length=64)
    payout_address: str = Field(..., min_length=1, max_length=64)
