import pytest

from database_manager.database_session_manager import DatabaseSessionManager, normalize_dsn


@pytest.mark.parametrize("dsn, expected", [
    ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
    ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
    ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
    ("sqlite:///silos.db", "sqlite+aiosqlite:///silos.db"),
    ("sqlite+aiosqlite:///silos.db", "sqlite+aiosqlite:///silos.db"),
])
def test_normalize_dsn(dsn, expected):
    assert normalize_dsn(dsn) == expected


def test_sqlite_engine_skips_pool_settings(tmp_path):
    manager = DatabaseSessionManager(f"sqlite:///{tmp_path / 'x.db'}")

    assert manager.is_sqlite
    assert manager.engine.url.drivername == "sqlite+aiosqlite"


@pytest.mark.asyncio
async def test_schema_bootstrap_runs_once(tmp_path):
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
    try:
        await manager.initialize()
        assert manager._schema_ready
        async with manager.async_session() as session:
            assert session.bind is manager.engine
    finally:
        await manager.disconnect()
