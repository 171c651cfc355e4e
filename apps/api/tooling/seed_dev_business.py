"""Seed a development business and its prize ladder into the API database."""

from __future__ import annotations

import asyncio
import os
from typing import TypedDict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from business_api.core.settings import settings
from business_api.db.base import Base
from business_api.models import Business, Prize


class SeedPrize(TypedDict):
    name: str
    points_required: int
    description: str


DEV_BUSINESS_ID = UUID(os.getenv("DEV_BUSINESS_ID", "af941888-ec4c-458e-b905-21673241af3e"))
DEV_BUSINESS_NAME = os.getenv("DEV_BUSINESS_NAME", "Returnacy Dev Cafe")

DEV_PRIZES: list[SeedPrize] = [
    {"name": "Free espresso", "points_required": 10, "description": "Any espresso-based drink"},
    {"name": "Pastry and coffee", "points_required": 25, "description": "One pastry plus a drink"},
    {"name": "Breakfast for two", "points_required": 50, "description": "Two breakfast menus"},
]


async def seed_business(session: AsyncSession) -> None:
    business = await session.get(Business, DEV_BUSINESS_ID)
    if business is None:
        business = Business(id=DEV_BUSINESS_ID, name=DEV_BUSINESS_NAME)
        session.add(business)
    else:
        business.name = DEV_BUSINESS_NAME

    existing = await session.execute(select(Prize).where(Prize.business_id == DEV_BUSINESS_ID))
    by_name = {prize.name: prize for prize in existing.scalars()}
    for prize in DEV_PRIZES:
        record = by_name.get(prize["name"])
        if record:
            record.points_required = prize["points_required"]
            record.description = prize["description"]
        else:
            session.add(
                Prize(
                    business_id=DEV_BUSINESS_ID,
                    name=prize["name"],
                    points_required=prize["points_required"],
                    description=prize["description"],
                )
            )
    await session.commit()


async def main() -> None:
    engine = create_async_engine(settings.database_url, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        if settings.database_url.startswith("sqlite"):
            async with engine.begin() as connection:
                await connection.run_sync(Base.metadata.create_all)
        async with session_factory() as session:
            await seed_business(session)
        print(f"Development business {DEV_BUSINESS_ID} ready")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
