"""Reward figures and claims."""

from fastapi import APIRouter, Depends

from app.dependencies import get_api_key, get_reward_service
from app.schemas.rewards import ClaimRequest
from xrpflr.services.reward_service import RewardService

router = APIRouter(prefix="/api", tags=["rewards"])


@router.get("/rewards/{owner}")
def get_rewards(owner: str, svc: RewardService = Depends(get_reward_service)):
    return svc.get_rewards(owner)


@router.post("/rewards/claim")
def claim_rewards(
    body: ClaimRequest,
    svc: RewardService = Depends(get_reward_service),
    _key: str = Depends(get_api_key),
):
    return svc.claim(body.owner, body.payout_address)
