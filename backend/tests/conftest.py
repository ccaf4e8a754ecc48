"""Shared fixtures: an in-memory SQLite store with the schema applied, plus fake chain clients."""

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from xrpl.wallet import Wallet

from db.models import Base
from factories import FakeLedgerClient, FakePayoutClient
from xrpflr.services.locks import InFlightRegistry, KeyedLocks


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    """One shared connection so worker threads see the same in-memory DB."""
    eng: Engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    sess: Session = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture()
def ledger() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture()
def payout() -> FakePayoutClient:
    return FakePayoutClient()


@pytest.fixture()
def locks() -> KeyedLocks:
    return KeyedLocks()


@pytest.fixture()
def inflight() -> InFlightRegistry:
    return InFlightRegistry()


@pytest.fixture()
def owner() -> str:
    return Wallet.create().classic_address


@pytest.fixture()
def other_owner() -> str:
    return Wallet.create().classic_address
