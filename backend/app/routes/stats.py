"""Platform statistics."""

from fastapi import APIRouter, Depends

from app.dependencies import get_stats_service
from xrpflr.services.stats import PlatformStatsService

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/platform-stats")
def platform_stats(svc: PlatformStatsService = Depends(get_stats_service)):
    return svc.platform_stats()
