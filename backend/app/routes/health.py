"""Health endpoints."""

import logging
import os

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from config import get_settings
from db.connection import get_engine
from db.models import Base
from xrpflr.services._types import DbInfoDict, LedgerInfoDict
from xrpflr.services.errors import LedgerError
from xrpflr.services.ledger_client import LedgerClient

logger: logging.Logger = logging.getLogger(__name__)

SCHEMA_TABLES: tuple[str, ...] = tuple(sorted(Base.metadata.tables))


def get_db_info(engine: Engine | None = None) -> DbInfoDict:
    """Describe the bookkeeping store for the health endpoint. Failures land in ``error``."""
    info = DbInfoDict(
        backend_type="unknown",
        database_url_or_path=None,
        tables_present=[],
        schema_initialized=False,
        pid=os.getpid(),
    )
    try:
        db = get_settings().database
        info["backend_type"] = db.backend
        info["database_url_or_path"] = db.redacted_url
        tables = sorted(inspect(engine or get_engine()).get_table_names())
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        info["error"] = str(e)
        return info
    info["tables_present"] = tables
    info["schema_initialized"] = all(name in tables for name in SCHEMA_TABLES)
    return info


def get_ledger_info(ledger: LedgerClient) -> LedgerInfoDict:
    """Ledger reachability. Never raises."""
    info = LedgerInfoDict(
        rpc_url=ledger.rpc_url,
        pool_address=get_settings().ledger.pool_address,
    )
    try:
        info["validated_ledger_index"] = ledger.validated_ledger_index(attempts=1)
        info["reachable"] = True
    except LedgerError as e:
        logger.warning("Ledger health check failed: %s", e.message)
        info["validated_ledger_index"] = None
        info["reachable"] = False
        info["error"] = e.message
    return info
