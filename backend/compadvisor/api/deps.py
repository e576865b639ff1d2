from contextlib import asynccontextmanager
from typing import AsyncGenerator

from compadvisor.db.session import AsyncSessionLocal


async def get_db() -> AsyncGenerator:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_db_session():
    """
    Context manager version of get_db for scripts and background jobs.

    Usage:
        async with get_db_session() as db:
            # use db session
    """
    async with AsyncSessionLocal() as session:
        yield session
