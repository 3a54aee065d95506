from datetime import date
from typing import AsyncIterator, Optional

from fastapi import Query
from sqlalchemy.ext.asyncio import AsyncSession

from .database import studio_session
from .utils.time import studio_today


async def get_session() -> AsyncIterator[AsyncSession]:
    async with studio_session() as session:
        yield session


async def get_reference_date(
    on: Optional[date] = Query(default=None, alias="date", description="Calendar date (YYYY-MM-DD); defaults to today"),
) -> date:
    return on if on is not None else studio_today()
