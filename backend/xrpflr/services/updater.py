"""Recurring refresh of cached reward figures for every owner with stored positions.

No claims, no payouts: it only rewrites available/pending so the read API
serves increasing numbers between ledger reads.
"""

import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.connection import get_session
from xrpflr.services._helpers import utc_now
from xrpflr.services.accrual import RewardAccrualEngine
from xrpflr.services.locks import KeyedLocks, owner_locks
from xrpflr.services.schemas.results import UpdateResult
from xrpflr.services.store import BookkeepingStore

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


class RewardUpdater:
    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        engine: RewardAccrualEngine | None = None,
        locks: KeyedLocks = owner_locks,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.engine = engine or RewardAccrualEngine()
        self.locks = locks
        self.clock = clock

    def _refresh_owner(self, store: BookkeepingStore, owner: str, now: datetime) -> None:
        with self.locks.hold(owner):
            active = [p for p in store.get_positions(owner).values() if p.is_active]
            entry = self.engine.refresh(store.get_reward_entry(owner), active, now)
            store.put_reward_entry(entry)

    def run_once(self) -> UpdateResult:
        started: datetime = self.clock()
        result = UpdateResult(owners_processed=0, started_at=started)
        with self.session_factory() as session:
            store = BookkeepingStore(session)
            for owner in store.list_position_owners():
                try:
                    self._refresh_owner(store, owner, self.clock())
                except SQLAlchemyError as e:
                    session.rollback()
                    result.errors.append(owner)
                    logger.warning("Reward refresh failed", owner=owner, error=str(e)[:200])
                    continue
                result.owners_processed += 1

        logger.info(
            "Reward update pass complete",
            owners=result.owners_processed,
            failed=len(result.errors),
        )
        return result

    def run_forever(self, interval: float, stop_event: threading.Event | None = None) -> None:
        """Run passes every `interval` seconds until `stop_event` is set."""
        stop = stop_event or threading.Event()
        logger.info("Reward updater started", interval=interval)
        while not stop.is_set():
            try:
                self.run_once()
            except SQLAlchemyError as e:
                logger.error("Reward update pass failed", error=str(e)[:200])
            stop.wait(interval)
        logger.info("Reward updater stopped")
