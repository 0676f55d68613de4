"""
Database initialisation
"""

from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.base import Base
from app.core.logging import db_logger


async def create_tables(engine: AsyncEngine):
    """Create all tables"""
    # Register every model on the metadata
    from app import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(engine: AsyncEngine):
    """Drop all tables"""
    from app import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def init_database(engine: AsyncEngine = None):
    """Initialise the database schema"""
    if engine is None:
        from app.db.session import engine as default_engine
        engine = default_engine

    await create_tables(engine)
    db_logger.info("Database tables created")
