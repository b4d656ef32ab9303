"""
Create any missing tables for the registered models.

Run once against a fresh database (safe to re-run; existing tables are left alone):
  python -m app.db.schema_check
"""
import asyncio

from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  (registers every table on Base.metadata)
from app.db.session import Base, engine


async def ensure_schema(target: AsyncEngine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    await ensure_schema(engine)
    print("Schema check done:", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    asyncio.run(main())
