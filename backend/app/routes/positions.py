"""Active position endpoints."""

from fastapi import APIRouter, Depends

from app.dependencies import get_position_service
from xrpflr.services.position_service import PositionService

router = APIRouter(prefix="/api", tags=["positions"])


@router.get("/positions/{owner}")
def get_positions(owner: str, svc: PositionService = Depends(get_position_service)):
    positions, source = svc.get_active_positions(owner)
    return {
        "owner": owner,
        "positions": [p.to_dict() for p in positions],
        "source": source,
    }


@router.get("/account-transactions/{address}")
def get_account_transactions(address: str, svc: PositionService = Depends(get_position_service)):
    return {"address": address, "transactions": svc.account_transactions(address)}
