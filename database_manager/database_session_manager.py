import os
import asyncio
import asyncpg

from sqlalchemy import text
from typing import Optional, Any
from sqlalchemy.orm import sessionmaker
from contextlib import asynccontextmanager
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession

from Shared_Utils.logger import get_component_logger


def normalize_dsn(dsn: str) -> str:
    """Map plain postgres/sqlite DSNs to their async drivers."""
    if dsn.startswith("postgres://"):
        return dsn.replace("postgres://", "postgresql+asyncpg://", 1)
    if dsn.startswith("postgresql://") and "+asyncpg" not in dsn:
        return dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
    if dsn.startswith("sqlite://") and "+aiosqlite" not in dsn:
        return dsn.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return dsn


class DatabaseSessionManager:
    """Creates the async engine, yields sessions, runs a one-time schema bootstrap."""

    def __init__(self, dsn: str, logger: Optional[Any] = None, **engine_kw):
        self.logger = logger or get_component_logger('database')
        self.dsn = normalize_dsn(dsn)
        self.is_sqlite = self.dsn.startswith("sqlite")

        # Defaults (caller can override via **engine_kw)
        if self.is_sqlite:
            defaults = dict(echo=False, future=True)
        else:
            defaults = dict(
                echo=False,
                pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
                max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "10")),
                pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "300")),  # 5m
                pool_pre_ping=True,
                future=True,
                connect_args={
                    "timeout": float(os.getenv("DB_CONNECT_TIMEOUT", "5")),
                    "command_timeout": float(os.getenv("DB_COMMAND_TIMEOUT", "30")),
                    "server_settings": {
                        "application_name": os.getenv("DB_APP_NAME", "silo_ledger"),
                        "statement_timeout": os.getenv("DB_STATEMENT_TIMEOUT_MS", "60000"),
                    },
                },
            )
        for k, v in defaults.items():
            engine_kw.setdefault(k, v)

        # Engine + session factory
        self.engine = create_async_engine(self.dsn, **engine_kw)
        self._async_session_factory = sessionmaker(
            bind=self.engine, expire_on_commit=False, class_=AsyncSession
        )

        # One-time bootstrap guards
        self._schema_lock = asyncio.Lock()
        self._schema_ready = False

    # ---------- bootstrap / session ----------

    async def _ensure_schema_once(self):
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            from .bootstrap_schema import ensure_inventory_schema
            await ensure_inventory_schema(self.engine)
            self.logger.debug("Inventory schema ensured")
            self._schema_ready = True

    @asynccontextmanager
    async def async_session(self):
        await self._ensure_schema_once()
        async with self._async_session_factory() as session:
            yield session

    # ---------- light engine warm-up ----------

    async def initialize(self) -> None:
        """Warm the pool and verify connectivity (single retry)."""
        last_exc = None
        for attempt in (1, 2):
            try:
                async with self.async_session() as s:
                    await s.execute(text("SELECT 1"))
                return
            except (OSError, ConnectionError, OperationalError, DBAPIError, asyncpg.PostgresError) as e:
                last_exc = e
                self.logger.warning("⚠️ Database warm-up attempt %s failed: %s", attempt, e)
                await self.engine.dispose()
                if attempt == 1:
                    await asyncio.sleep(0.75)
                    continue
                break
        raise last_exc  # surface the original error

    async def disconnect(self):
        """Close the SQLAlchemy database engine (optional for graceful shutdown)."""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("✅ SQLAlchemy engine disposed successfully.")
