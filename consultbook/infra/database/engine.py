"""
consultbook.infra.database.engine – one async engine and session factory per process.

The booking conflict guard relies on PostgreSQL: partial unique indexes and
savepoints. init_db() creates the tables with those indexes; production
deployments should apply the same DDL through migrations.
"""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional

import asyncpg
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Importing the models package registers bookings and availability_configs on Base.metadata
import consultbook.infra.database.models  # noqa: F401
from consultbook.infra.database.models.base import Base

if TYPE_CHECKING:
    from consultbook.config import PostgresConfig

logger = logging.getLogger(__name__)

# CREATE DATABASE takes an identifier, not a parameter
_SAFE_DBNAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _config(config: Optional["PostgresConfig"]) -> "PostgresConfig":
    if config is not None:
        return config
    from consultbook.config import load_postgres_config
    return load_postgres_config()


def _async_url(url: str) -> str:
    """Force the asyncpg driver on a postgres:// or postgresql:// URL."""
    parsed = make_url(url)
    if parsed.drivername in ("postgres", "postgresql"):
        parsed = parsed.set(drivername="postgresql+asyncpg")
    return parsed.render_as_string(hide_password=False)


def _maintenance_target(url: str) -> tuple[str, str]:
    """(target database name, plain-asyncpg URL of the "postgres" maintenance db)."""
    parsed = make_url(url)
    dbname = parsed.database or "postgres"
    admin = parsed.set(drivername="postgresql", database="postgres")
    return dbname, admin.render_as_string(hide_password=False)


async def ensure_database_exists(config: Optional["PostgresConfig"] = None) -> None:
    """CREATE DATABASE on first run. Unreachable servers and odd names are skipped."""
    dbname, admin_url = _maintenance_target(_config(config).url)
    if dbname == "postgres":
        return
    if not _SAFE_DBNAME.match(dbname):
        logger.warning("ensure_database_exists: not creating %r (not a plain identifier)", dbname)
        return
    try:
        conn = await asyncpg.connect(admin_url)
    except (OSError, asyncpg.PostgresError) as exc:
        logger.debug("ensure_database_exists: postgres unreachable (%s), skipping", exc)
        return
    try:
        exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", dbname)
        if not exists:
            await conn.execute(f'CREATE DATABASE "{dbname}"')
            logger.info("Database created: %s", dbname)
    finally:
        await conn.close()


def build_engine(
    config: Optional["PostgresConfig"] = None,
    *,
    echo: Optional[bool] = None,
    use_null_pool: bool = False,
) -> AsyncEngine:
    """Create the process-wide AsyncEngine, or return the one already built.

    use_null_pool opens a fresh connection per checkout (scripts, tests).
    """
    global _engine
    if _engine is not None:
        return _engine

    cfg = _config(config)
    kwargs: dict = {
        "echo": cfg.echo if echo is None else echo,
        "connect_args": {
            "server_settings": {"application_name": cfg.application_name, "jit": "off"},
        },
    }
    if use_null_pool:
        kwargs["poolclass"] = NullPool
    else:
        kwargs.update(
            pool_size=cfg.pool_size,
            max_overflow=cfg.max_overflow,
            pool_timeout=cfg.pool_timeout,
            pool_recycle=cfg.pool_recycle,
            pool_pre_ping=True,
        )
    _engine = create_async_engine(_async_url(cfg.url), **kwargs)
    logger.info(
        "AsyncEngine created (%s)",
        "NullPool" if use_null_pool else f"pool_size={cfg.pool_size} max_overflow={cfg.max_overflow}",
    )
    return _engine


def build_session_factory(
    engine: Optional[AsyncEngine] = None,
) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded bookings usable after commit (expire_on_commit=False)."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            engine or build_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def init_db(
    config: Optional["PostgresConfig"] = None,
    *,
    drop_all: bool = False,
) -> None:
    """create_all() for bookings and availability_configs, including the partial unique indexes."""
    engine = build_engine(config)
    async with engine.begin() as conn:
        if drop_all:
            logger.warning("init_db: dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("init_db: tables ready (%s)", ", ".join(sorted(Base.metadata.tables)))


async def close_engine() -> None:
    """Dispose the pool on shutdown; the next build_engine() starts fresh."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("AsyncEngine disposed")
    _engine = None
    _session_factory = None
