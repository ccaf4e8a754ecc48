"""Tests for the health checks, the domain error body and the background reward loop."""

import asyncio
import contextlib

from sqlalchemy.engine import Engine

from app.main import _reward_loop, error_body
from app.routes.health import get_db_info, get_ledger_info
from factories import POOL, FakeLedgerClient
from xrpflr.services.errors import PositionNotFoundError


def test_db_info_reports_schema(engine: Engine) -> None:
    info = get_db_info(engine)
    assert info["schema_initialized"] is True
    assert "unstake_requests" in info["tables_present"]
    assert "error" not in info


def test_ledger_info_reachable(ledger: FakeLedgerClient) -> None:
    info = get_ledger_info(ledger)  # type: ignore[arg-type]
    assert info["reachable"] is True
    assert info["validated_ledger_index"] == 1001
    assert info["pool_address"] == POOL


def test_ledger_info_unreachable(ledger: FakeLedgerClient) -> None:
    ledger.down = True
    info = get_ledger_info(ledger)  # type: ignore[arg-type]
    assert info["reachable"] is False
    assert info["validated_ledger_index"] is None
    assert info["error"] == "ledger unreachable"


def test_error_body_merges_extra_fields() -> None:
    body = error_body(PositionNotFoundError("Stake with ID p1 not found.", stakeId="p1"))
    assert body == {
        "detail": "Stake with ID p1 not found.",
        "type": "PositionNotFoundError",
        "category": "not_found",
        "stakeId": "p1",
    }


class _FlakyUpdater:
    def __init__(self) -> None:
        self.calls = 0

    def run_once(self) -> None:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("store offline")


def test_reward_loop_keeps_running_after_a_failed_pass() -> None:
    updater = _FlakyUpdater()

    async def _drive() -> None:
        task = asyncio.create_task(_reward_loop(updater, 0))  # type: ignore[arg-type]
        while updater.calls < 3:
            await asyncio.sleep(0.01)
        assert not task.done()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    asyncio.run(asyncio.wait_for(_drive(), timeout=5))
    assert updater.calls >= 3
