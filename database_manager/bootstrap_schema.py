import TableModels  # noqa: F401  (registers the mapped tables on Base.metadata)
from TableModels.base import Base


async def ensure_inventory_schema(async_engine) -> None:
    """
    Idempotent: safe to run on every startup.
    Creates the silo registry and the inbound/outbound movement tables, with
    their (silo_id, created_at, id) indexes, if missing.
    """
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
