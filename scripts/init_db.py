"""Create all tables directly from metadata, for local SQLite development.

PostgreSQL deployments should use ``scripts/migrate.py`` instead.
"""

import asyncio

from carequeue.config import get_settings
from carequeue.database import Database
from carequeue.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    database = Database(get_settings())
    try:
        async with database.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        print("✓ Database initialized successfully!")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
