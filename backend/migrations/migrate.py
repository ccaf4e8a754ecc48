"""Simple SQL migration runner.

Reads .sql files from the migrations/ directory in lexicographic order,
tracks applied migrations in a _migrations table, and skips already-applied ones.
Runs through the shared SQLAlchemy engine, so it works for SQLite and PostgreSQL.

Usage:
    python -m migrations.migrate                # apply pending migrations
    python -m migrations.migrate --dry-run      # show what would be applied
    python -m migrations.migrate --status       # show migration status
"""

import argparse
from datetime import UTC, datetime
from pathlib import Path

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from db.connection import get_engine

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR: Path = Path(__file__).resolve().parent


def _statements(sql: str) -> list[str]:
    """Split a migration file into statements. Files must not embed ';' in literals."""
    lines: list[str] = [ln for ln in sql.splitlines() if not ln.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def _ensure_tracking_table(conn: Connection) -> None:
    conn.execute(
        text(
            "CREATE TABLE IF NOT EXISTS _migrations ("
            "  filename TEXT PRIMARY KEY,"
            "  applied_at TEXT NOT NULL"
            ")"
        )
    )


def _get_applied(conn: Connection) -> set[str]:
    return {row[0] for row in conn.execute(text("SELECT filename FROM _migrations"))}


def _get_pending(applied: set[str]) -> list[Path]:
    sql_files: list[Path] = sorted(MIGRATIONS_DIR.glob("*.sql"))
    return [f for f in sql_files if f.name not in applied]


def migrate(dry_run: bool = False, engine: Engine | None = None) -> list[str]:
    """Apply pending migrations. Returns the filenames applied (or that would be)."""
    engine = engine or get_engine()
    with engine.begin() as conn:
        _ensure_tracking_table(conn)
        pending: list[Path] = _get_pending(_get_applied(conn))

    if not pending:
        logger.info("No pending migrations")
        return []

    applied_now: list[str] = []
    for migration in pending:
        logger.info("Applying migration", filename=migration.name, dry_run=dry_run)
        applied_now.append(migration.name)
        if dry_run:
            continue
        with engine.begin() as conn:
            for stmt in _statements(migration.read_text()):
                conn.exec_driver_sql(stmt)
            conn.execute(
                text("INSERT INTO _migrations (filename, applied_at) VALUES (:f, :t)"),
                {"f": migration.name, "t": datetime.now(UTC).isoformat()},
            )
    return applied_now


def status(engine: Engine | None = None) -> tuple[list[str], list[str]]:
    engine = engine or get_engine()
    with engine.begin() as conn:
        _ensure_tracking_table(conn)
        applied: set[str] = _get_applied(conn)
    pending: list[Path] = _get_pending(applied)
    return sorted(applied), [p.name for p in pending]


def main() -> None:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(description="SQL migration runner")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be applied")
    parser.add_argument("--status", action="store_true", help="Show migration status")
    args: argparse.Namespace = parser.parse_args()

    if args.status:
        applied, pending = status()
        print(f"Applied:  {len(applied)}")
        for name in applied:
            print(f"  [x] {name}")
        print(f"Pending:  {len(pending)}")
        for name in pending:
            print(f"  [ ] {name}")
    else:
        for name in migrate(dry_run=args.dry_run):
            print(f"{'[DRY RUN] ' if args.dry_run else ''}Applied {name}")


if __name__ == "__main__":
    main()
