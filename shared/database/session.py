"""Database sessions"""
from shared.database.connection import get_db
from sqlalchemy import text


async def ping(session):
    """Run a trivial query to check the connection is alive"""
    await session.execute(text("SELECT 1"))

__all__ = ["get_db", "ping"]
