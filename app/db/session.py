# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
import sqlite3
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from app.core.config import settings
from app.core.logging_config import get_logger
from app.db.base import metadata

"""
Sessão assíncrona do banco via SQLAlchemy 2.0.


- `build_engine()` aceita `postgresql+asyncpg://` (com pool) ou `sqlite+aiosqlite://`.
- No SQLite liga `PRAGMA foreign_keys` para os ON DELETE CASCADE valerem.
- Expõe `SessionLocal` (async_sessionmaker) para injeção via deps.
- `init_models()` cria as tabelas do `metadata` quando DB_CREATE_ALL=true.
"""

logger = get_logger(__name__)

ASYNC_PREFIXES = ("postgresql+asyncpg://", "sqlite+aiosqlite://")


def _adapt_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(sep=" ", timespec="microseconds")


def _sqlite_on_connect(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: Optional[str] = None, **kwargs: Any) -> AsyncEngine:
    url = url or settings.DATABASE_URL
    if not url.startswith(ASYNC_PREFIXES):
        raise RuntimeError(
            "DATABASE_URL deve usar o prefixo 'postgresql+asyncpg://' ou 'sqlite+aiosqlite://' para driver assíncrono."
        )

    if url.startswith("sqlite+aiosqlite://"):
        sqlite3.register_adapter(datetime, _adapt_datetime)
        eng = create_async_engine(url, echo=False, future=True, **kwargs)
        event.listen(eng.sync_engine, "connect", _sqlite_on_connect)
        return eng

    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        echo=False,
        future=True,
        **kwargs,
    )


engine = build_engine()

SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def init_models(bind: Optional[AsyncEngine] = None) -> None:
    async with (bind or engine).begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Database schema ensured (%d tables)", len(metadata.tables))
