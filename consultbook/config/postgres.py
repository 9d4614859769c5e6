"""
consultbook.config.postgres – where bookings and availability configs are stored.

Env vars: DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_POOL_TIMEOUT, DB_POOL_RECYCLE,
DB_ECHO, DB_APPLICATION_NAME.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields

_DEFAULT_URL = "postgresql://localhost/consultbook"
_URL_PREFIXES = ("postgresql://", "postgres://", "postgresql+asyncpg://")
_TRUTHY = ("1", "true", "yes")

# field -> (env var, minimum)
_INT_SETTINGS = {
    "pool_size": ("DB_POOL_SIZE", 1),
    "max_overflow": ("DB_MAX_OVERFLOW", 0),
    "pool_timeout": ("DB_POOL_TIMEOUT", 1),
    "pool_recycle": ("DB_POOL_RECYCLE", 1),
}


@dataclass(frozen=True)
class PostgresConfig:
    """
    Connection URL and pool sizing. Validated on construction; build it with
    load_postgres_config() to read the environment.
    """

    url: str = _DEFAULT_URL
    """postgresql:// or postgres://; the engine switches the driver to asyncpg."""

    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    echo: bool = False
    application_name: str = "consultbook"

    def __post_init__(self) -> None:
        url = (self.url or "").strip()
        if not url.startswith(_URL_PREFIXES):
            raise ValueError(
                f"DATABASE_URL must start with one of {', '.join(_URL_PREFIXES)}, got {self.url!r}"
            )
        for name, (env_name, minimum) in _INT_SETTINGS.items():
            value = getattr(self, name)
            if not isinstance(value, int) or value < minimum:
                raise ValueError(f"{name} ({env_name}) must be an integer >= {minimum}, got {value!r}")
        if not isinstance(self.echo, bool):
            raise ValueError("echo must be a boolean")
        if not self.application_name.strip():
            raise ValueError("application_name must be non-empty")

    @classmethod
    def from_env(cls, **overrides: object) -> PostgresConfig:
        """Read DATABASE_URL and DB_* variables; keyword overrides win over env."""
        env = os.environ
        values: dict = {
            "url": env.get("DATABASE_URL", _DEFAULT_URL).strip(),
            "echo": env.get("DB_ECHO", "").strip().lower() in _TRUTHY,
            "application_name": env.get("DB_APPLICATION_NAME", "consultbook"),
        }
        for name, (env_name, _) in _INT_SETTINGS.items():
            if env_name in env:
                values[name] = int(env[env_name])
        known = {f.name for f in fields(cls)}
        values.update({k: v for k, v in overrides.items() if k in known and v is not None})
        return cls(**values)


def load_postgres_config(**overrides: object) -> PostgresConfig:
    """Raises ValueError on invalid env values."""
    return PostgresConfig.from_env(**overrides)
