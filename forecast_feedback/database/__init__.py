from sqlalchemy.ext.asyncio import AsyncEngine

from .models import Base, User, Location, Feedback, AISummary


async def init_models(engine: AsyncEngine) -> None:
    """Create tables (and their unique constraints) if they do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = ["Base", "User", "Location", "Feedback", "AISummary", "init_models"]
