"""Stake, confirm and unstake endpoints."""

from fastapi import APIRouter, Depends

from app.dependencies import get_api_key, get_position_service, get_unstake_processor
from app.schemas.staking import ConfirmStakeRequest, StakeRequest, UnstakeRequest
from db.enums import UnstakeStatus
from xrpflr.services._helpers import now_ms
from xrpflr.services.errors import UnstakeFailedError
from xrpflr.services.position_service import PositionService
from xrpflr.services.unstake import UnstakeProcessor

router = APIRouter(prefix="/api", tags=["staking"])


@router.post("/stake")
def create_stake(
    body: StakeRequest,
    svc: PositionService = Depends(get_position_service),
    _key: str = Depends(get_api_key),
):
    details = body.pool_details.model_dump(by_alias=True, exclude_none=True) if body.pool_details else None
    return svc.create_stake_payload(body.owner, body.pool_id, body.amount, details)


@router.post("/stake/confirm")
def confirm_stake(
    body: ConfirmStakeRequest,
    svc: PositionService = Depends(get_position_service),
    _key: str = Depends(get_api_key),
):
    return {"position": svc.confirm_stake(body.owner, body.position_id, body.tx_hash)}


@router.post("/unstake")
def unstake(
    body: UnstakeRequest,
    processor: UnstakeProcessor = Depends(get_unstake_processor),
    _key: str = Depends(get_api_key),
):
    outcome = processor.request_unstake(body.owner, body.stake_id)
    if outcome.status == UnstakeStatus.FAILED:
        raise UnstakeFailedError(
            outcome.error or "Unstake failed",
            requestId=outcome.request_id,
            stakeId=outcome.stake_id,
            status=outcome.status.value,
            txHash=outcome.tx_hash,
        )
    return {
        "stakeId": outcome.stake_id,
        "status": outcome.status.value,
        "requestId": outcome.request_id,
        "txHash": outcome.tx_hash,
        "timestamp": now_ms(),
        **(outcome.result or {}),
    }


@router.get("/unstake/{stake_id}/status")
def unstake_status(stake_id: str, processor: UnstakeProcessor = Depends(get_unstake_processor)):
    return processor.status(stake_id)
