"""SQLAlchemy ORM models for the bookkeeping store.

Each table is a keyed snapshot collection; JSON payloads live in TEXT columns.
Keep in sync with migrations/001_initial.sql.
"""

from sqlalchemy import Index, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class OwnerPositions(Base):
    __tablename__ = "owner_positions"

    owner: Mapped[str] = mapped_column(primary_key=True)
    positions: Mapped[str] = mapped_column(nullable=False, default="[]")
    updated_at: Mapped[str] = mapped_column(nullable=False)


class RewardLedgers(Base):
    __tablename__ = "reward_ledgers"

    owner: Mapped[str] = mapped_column(primary_key=True)
    available: Mapped[float] = mapped_column(nullable=False, default=0.0)
    pending: Mapped[float] = mapped_column(nullable=False, default=0.0)
    claimed: Mapped[float] = mapped_column(nullable=False, default=0.0)
    history: Mapped[str] = mapped_column(nullable=False, default="[]")
    updated_at: Mapped[str] = mapped_column(nullable=False)


class ClaimTimes(Base):
    __tablename__ = "claim_times"

    owner: Mapped[str] = mapped_column(primary_key=True)
    last_claim_time: Mapped[str] = mapped_column(nullable=False)
    updated_at: Mapped[str] = mapped_column(nullable=False)


class UnstakeRequests(Base):
    __tablename__ = "unstake_requests"

    request_id: Mapped[str] = mapped_column(primary_key=True)
    stake_id: Mapped[str] = mapped_column(nullable=False)
    owner: Mapped[str] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(nullable=False)
    amount: Mapped[float] = mapped_column(nullable=False, default=0.0)
    tx_hash: Mapped[str | None] = mapped_column()
    result: Mapped[str | None] = mapped_column()
    error: Mapped[str | None] = mapped_column()
    created_at: Mapped[str] = mapped_column(nullable=False)
    updated_at: Mapped[str] = mapped_column(nullable=False)

    __table_args__ = (Index("ix_unstake_requests_stake_id", "stake_id", "created_at"),)
