"""Application settings, grouped by concern and read from the environment.

DB selection:
  - DATABASE_URL set and non-empty -> PostgreSQL
  - DATABASE_URL absent/empty -> SQLite (DB_SQLITE_PATH, default data/xrpflr.db)

Ledger secrets:
  - XRPL_POOL_SEED (or FAMILY_SEED) -> custodial pool wallet used for payouts
  - FLARE_ADMIN_PRIVATE_KEY (or ADMIN_PRIVATE_KEY) -> reward-chain payout wallet
"""

import re
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _backend_root() -> Path:
    """Backend package root (backend/). config.py lives at backend/config.py."""
    return Path(__file__).resolve().parent


def _ensure_env_loaded() -> None:
    """Load .env from backend root (then project root). Idempotent."""
    root: Path = _backend_root()
    for candidate in (root / ".env", root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)


_ensure_env_loaded()

DEFAULT_SQLITE_PATH = "data/xrpflr.db"


def _env_files() -> tuple[str, str]:
    return (str(_backend_root() / ".env"), ".env")


class DatabaseSettings(BaseSettings):
    """Bookkeeping store location. Postgres when DATABASE_URL is set, else a local SQLite file."""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(default="", validation_alias="DATABASE_URL")
    sqlite_path: str = Field(default=DEFAULT_SQLITE_PATH)
    pool_size: int = Field(default=5)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)
    sqlite_busy_timeout_ms: int = Field(default=30000)

    @property
    def backend(self) -> str:
        return "postgres" if self.database_url.strip() else "sqlite"

    @property
    def sqlite_file(self) -> Path:
        path = Path(self.sqlite_path.strip() or DEFAULT_SQLITE_PATH)
        return path if path.is_absolute() else (_backend_root() / path).resolve()

    @property
    def redacted_url(self) -> str:
        """Connection target safe to log: DSN without its password, or the SQLite file."""
        if self.backend == "sqlite":
            return self.sqlite_file.as_posix()
        return re.sub(r":([^:@/]+)@", ":***@", self.database_url.strip())

    @property
    def url(self) -> str:
        if self.backend == "postgres":
            return self.database_url.strip()
        self.sqlite_file.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.sqlite_file.as_posix()}"

    def describe(self) -> str:
        return f"{self.backend} @ {self.redacted_url}"


class LedgerSettings(BaseSettings):
    """Base-chain (XRPL) access and the custodial pool wallet."""

    model_config = SettingsConfigDict(
        env_prefix="XRPL_",
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    rpc_url: str = Field(default="https://s.altnet.rippletest.net:51234/")
    pool_address: str = Field(default="rJoyoiwgogxk2bA3UBBfZthrb8LdUmocaF")
    pool_seed: str | None = Field(
        default=None,
        validation_alias=AliasChoices("XRPL_POOL_SEED", "FAMILY_SEED"),
    )
    user_tx_limit: int = Field(default=200)
    pool_tx_limit: int = Field(default=1000)
    retry_attempts: int = Field(default=3)
    retry_delay: float = Field(default=1.0)
    scan_workers: int = Field(default=8)
    scan_timeout: float = Field(default=20.0)
    confirm_timeout: float = Field(default=60.0)
    confirm_poll_initial: float = Field(default=1.0)
    confirm_poll_max: float = Field(default=8.0)


class RewardChainSettings(BaseSettings):
    """Reward-chain (Flare) payout wallet."""

    model_config = SettingsConfigDict(
        env_prefix="FLARE_",
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    rpc_url: str = Field(default="https://flare-api.flare.network/ext/C/rpc")
    admin_private_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FLARE_ADMIN_PRIVATE_KEY", "ADMIN_PRIVATE_KEY"),
    )
    gas_limit: int = Field(default=21000)
    receipt_timeout: int = Field(default=120)


class StakingSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STAKING_",
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    early_exit_penalty_pct: float = Field(default=5.0)
    reward_update_interval: float = Field(default=60.0)
    reward_updater_enabled: bool = Field(default=True)
    pending_stake_ttl: int = Field(default=3600)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="XRPFLR_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    api_key: str | None = Field(default=None, description="API key for admin endpoints")
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "https://flarexfi.xyz",
            "http://localhost:3000",
            "http://localhost:5173",
        ]
    )
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, validation_alias=AliasChoices("PORT", "XRPFLR_PORT"))
    reload: bool = Field(default=False)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    reward_chain: RewardChainSettings = Field(default_factory=RewardChainSettings)
    staking: StakingSettings = Field(default_factory=StakingSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
