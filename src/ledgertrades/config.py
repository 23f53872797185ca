"""Configuration for ledgertrades."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    """PostgreSQL connection settings."""

    host: str = "localhost"
    port: int = 5432
    database: str = "ledgertrades"
    user: str = "ledgertrades"
    password: str = ""

    @property
    def dsn(self) -> str:
        """PostgreSQL connection string."""
        pw = f":{self.password}" if self.password else ""
        return f"postgresql://{self.user}{pw}@{self.host}:{self.port}/{self.database}"

    @classmethod
    def from_env(cls, base: DatabaseConfig | None = None) -> DatabaseConfig:
        """Overlay LEDGERTRADES_DB_* environment variables on *base*."""
        base = base or cls()
        return cls(
            host=os.environ.get("LEDGERTRADES_DB_HOST", base.host),
            port=int(os.environ.get("LEDGERTRADES_DB_PORT", base.port)),
            database=os.environ.get("LEDGERTRADES_DB_NAME", base.database),
            user=os.environ.get("LEDGERTRADES_DB_USER", base.user),
            password=os.environ.get("LEDGERTRADES_DB_PASSWORD", base.password),
        )


class QueryConfig(BaseModel):
    """Paging and bucketing defaults applied to incoming queries."""

    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=200, ge=1)
    default_resolution: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _default_within_max(self) -> QueryConfig:
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"default_limit ({self.default_limit}) exceeds max_limit ({self.max_limit})"
            )
        return self


class LedgerTradesConfig(BaseModel):
    """Top-level configuration."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)

    @classmethod
    def from_toml(cls, path: Path | str) -> LedgerTradesConfig:
        """Load configuration from a TOML file."""
        path = Path(path)
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, explicit_path: str | None = None) -> LedgerTradesConfig | None:
        """Find and load config: explicit path > LEDGERTRADES_CONFIG env > ledgertrades.toml in cwd.

        Returns None if no config file is found.
        """
        if explicit_path:
            logger.info("Loading config from %s", explicit_path)
            return cls.from_toml(explicit_path)
        env_path = os.environ.get("LEDGERTRADES_CONFIG")
        if env_path:
            logger.info("Loading config from LEDGERTRADES_CONFIG=%s", env_path)
            return cls.from_toml(env_path)
        default = Path("ledgertrades.toml")
        if default.exists():
            logger.info("Loading config from %s", default)
            return cls.from_toml(default)
        return None
