"""Tests for migrations.migrate."""

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from migrations.migrate import migrate, status


@pytest.fixture()
def empty_engine() -> Generator[Engine, None, None]:
    eng: Engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield eng
    eng.dispose()


def test_migrate_creates_schema(empty_engine: Engine) -> None:
    applied = migrate(engine=empty_engine)
    assert applied == ["001_initial.sql"]
    tables = set(inspect(empty_engine).get_table_names())
    assert {"owner_positions", "reward_ledgers", "claim_times", "unstake_requests"} <= tables


def test_migrate_is_idempotent(empty_engine: Engine) -> None:
    migrate(engine=empty_engine)
    assert migrate(engine=empty_engine) == []
    applied, pending = status(empty_engine)
    assert applied == ["001_initial.sql"]
    assert pending == []


def test_dry_run_changes_nothing(empty_engine: Engine) -> None:
    assert migrate(dry_run=True, engine=empty_engine) == ["001_initial.sql"]
    assert "owner_positions" not in inspect(empty_engine).get_table_names()
    _, pending = status(empty_engine)
    assert pending == ["001_initial.sql"]
