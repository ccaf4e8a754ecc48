"""FastAPI dependencies: DB sessions, admin auth, chain clients and services."""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from config import get_settings
from db.connection import get_db as get_db  # noqa: F401 (re-exported for routes)
from xrpflr.services.ledger_client import LedgerClient
from xrpflr.services.payout_client import PayoutClient
from xrpflr.services.position_service import PositionService
from xrpflr.services.reward_service import RewardService
from xrpflr.services.scanner import LedgerScanner
from xrpflr.services.stats import PlatformStatsService
from xrpflr.services.unstake import UnstakeProcessor


def get_api_key(x_api_key: str = Header(default="")) -> str:
    """Validate API key on mutation endpoints."""
    expected: str | None = get_settings().api_key
    if not expected:
        return ""  # auth disabled when no key configured
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return x_api_key


@lru_cache
def get_ledger_client() -> LedgerClient:
    return LedgerClient()


@lru_cache
def get_payout_client() -> PayoutClient:
    return PayoutClient()


def get_position_service(
    db: Session = Depends(get_db),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> PositionService:
    return PositionService(db, ledger)


def get_reward_service(
    db: Session = Depends(get_db),
    positions: PositionService = Depends(get_position_service),
    payout: PayoutClient = Depends(get_payout_client),
) -> RewardService:
    return RewardService(db, positions, payout)


def get_unstake_processor(
    db: Session = Depends(get_db),
    ledger: LedgerClient = Depends(get_ledger_client),
    positions: PositionService = Depends(get_position_service),
) -> UnstakeProcessor:
    return UnstakeProcessor(db, ledger, positions)


def get_stats_service(
    db: Session = Depends(get_db),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> PlatformStatsService:
    return PlatformStatsService(db, LedgerScanner(ledger))
