"""Create the lead, conversation-log and coaching-tip tables (LEAD_STORE=database)."""

import asyncio
import pathlib

from showroom_bot.config import settings
from showroom_bot.database import create_tables, get_engine


async def init_db():
    """Create missing tables."""
    pathlib.Path("data").mkdir(exist_ok=True)
    engine = get_engine(settings.database_url)
    await create_tables(engine)
    await engine.dispose()
    print(f"Tables ready at {settings.database_url}")


if __name__ == "__main__":
    asyncio.run(init_db())
