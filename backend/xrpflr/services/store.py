"""Bookkeeping store: durable per-owner snapshots and unstake requests.

Snapshot-on-write. Every put commits on its own so a later failure in the same
request cannot roll back what was already recorded.
"""

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from db.enums import UnstakeStatus
from db.models import ClaimTimes, OwnerPositions, RewardLedgers, UnstakeRequests
from xrpflr.services._helpers import dump_json, load_json, now_iso, parse_iso, to_iso
from xrpflr.services._types import ClaimRecordDict, UnstakeResultDict
from xrpflr.services.schemas.positions import StakePosition
from xrpflr.services.schemas.results import UnstakeOutcome
from xrpflr.services.schemas.rewards import RewardLedgerEntry

logger = structlog.get_logger(__name__)


class BookkeepingStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    # -- Positions ------------------------------------------------------------

    def get_positions(self, owner: str) -> dict[str, StakePosition]:
        row = self.session.get(OwnerPositions, owner)
        if row is None:
            return {}
        raw = load_json(row.positions) or []
        positions: dict[str, StakePosition] = {}
        for item in raw if isinstance(raw, list) else []:
            position = StakePosition.from_dict(item) if isinstance(item, dict) else None
            if position is None:
                logger.warning("Skipping unreadable stored position", owner=owner)
                continue
            positions[position.id] = position
        return positions

    def put_positions(self, owner: str, positions: dict[str, StakePosition]) -> None:
        payload: str = dump_json([p.to_dict() for p in positions.values()])
        row = self.session.get(OwnerPositions, owner)
        if row is None:
            self.session.add(OwnerPositions(owner=owner, positions=payload, updated_at=now_iso()))
        else:
            row.positions = payload
            row.updated_at = now_iso()
        self.session.commit()

    def delete_positions(self, owner: str) -> None:
        row = self.session.get(OwnerPositions, owner)
        if row is not None:
            self.session.delete(row)
            self.session.commit()

    def list_position_owners(self) -> list[str]:
        return list(
            self.session.execute(select(OwnerPositions.owner).order_by(OwnerPositions.owner))
            .scalars()
            .all()
        )

    def all_positions(self) -> dict[str, dict[str, StakePosition]]:
        return {owner: self.get_positions(owner) for owner in self.list_position_owners()}

    # -- Rewards --------------------------------------------------------------

    def get_reward_entry(self, owner: str) -> RewardLedgerEntry:
        """Stored entry for `owner`, or a fresh zeroed one (not persisted)."""
        row = self.session.get(RewardLedgers, owner)
        entry = RewardLedgerEntry(owner=owner, last_claim_time=self.get_last_claim_time(owner))
        if row is None:
            return entry
        history = load_json(row.history) or []
        entry.available = row.available
        entry.pending = row.pending
        entry.claimed = row.claimed
        entry.history = history if isinstance(history, list) else []
        return entry

    def put_reward_entry(self, entry: RewardLedgerEntry) -> None:
        history: list[ClaimRecordDict] = entry.history
        row = self.session.get(RewardLedgers, entry.owner)
        if row is None:
            row = RewardLedgers(owner=entry.owner)
            self.session.add(row)
        row.available = entry.available
        row.pending = entry.pending
        row.claimed = entry.claimed
        row.history = dump_json(history)
        row.updated_at = now_iso()
        self.session.commit()

    # -- Claim checkpoints ----------------------------------------------------

    def get_last_claim_time(self, owner: str) -> datetime | None:
        row = self.session.get(ClaimTimes, owner)
        return parse_iso(row.last_claim_time) if row is not None else None

    def put_last_claim_time(self, owner: str, when: datetime) -> None:
        row = self.session.get(ClaimTimes, owner)
        if row is None:
            self.session.add(
                ClaimTimes(owner=owner, last_claim_time=to_iso(when), updated_at=now_iso())
            )
        else:
            row.last_claim_time = to_iso(when)
            row.updated_at = now_iso()
        self.session.commit()

    # -- Unstake requests -----------------------------------------------------

    def add_unstake_request(self, outcome: UnstakeOutcome, amount: float) -> None:
        now: str = now_iso()
        self.session.add(
            UnstakeRequests(
                request_id=outcome.request_id,
                stake_id=outcome.stake_id,
                owner=outcome.owner,
                status=outcome.status.value,
                amount=amount,
                tx_hash=outcome.tx_hash,
                result=dump_json(outcome.result) if outcome.result else None,
                error=outcome.error,
                created_at=now,
                updated_at=now,
            )
        )
        self.session.commit()

    def update_unstake_request(self, outcome: UnstakeOutcome) -> None:
        row = self.session.get(UnstakeRequests, outcome.request_id)
        if row is None:
            raise KeyError(outcome.request_id)
        row.status = outcome.status.value
        row.tx_hash = outcome.tx_hash
        row.result = dump_json(outcome.result) if outcome.result else None
        row.error = outcome.error
        row.updated_at = now_iso()
        self.session.commit()

    def latest_unstake_request(self, stake_id: str) -> tuple[UnstakeOutcome, str] | None:
        """Most recent request for a stake, with its last-updated timestamp."""
        row = self.session.execute(
            select(UnstakeRequests)
            .where(UnstakeRequests.stake_id == stake_id)
            .order_by(UnstakeRequests.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        if row is None:
            return None
        result = load_json(row.result)
        outcome = UnstakeOutcome(
            request_id=row.request_id,
            stake_id=row.stake_id,
            owner=row.owner,
            status=UnstakeStatus(row.status),
            tx_hash=row.tx_hash,
            result=UnstakeResultDict(**result) if isinstance(result, dict) else None,
            error=row.error,
        )
        return outcome, row.updated_at
