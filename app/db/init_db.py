"""Database initialization script"""

import asyncio

from app.config import settings
from app.db.database import Database


async def main():
    print("Creating database tables...")
    db = Database(settings.database_url)
    try:
        await db.create_all()
    finally:
        await db.dispose()
    print("Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(main())
