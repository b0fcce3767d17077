from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ragbot.config import settings
from ragbot.database.models import Base


DATABASE_URL = settings.database_url


engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    connect_args={
        "server_settings": {
            "timezone": "UTC"  # Set session timezone to UTC for consistent display
        }
    },
)

SessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def init_models(target: AsyncEngine = engine) -> None:
    """Create the pgvector extension and the passage table if missing."""
    async with target.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
