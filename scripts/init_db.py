"""Script to initialize the country databases."""

import asyncio

from medsync.constants import SUPPORTED_COUNTRIES
from medsync.database import dispose_engines, get_engine
from medsync.models import metadata


async def init_db() -> None:
    """Create the enriched appointment tables in every country database."""
    try:
        for country in SUPPORTED_COUNTRIES:
            async with get_engine(country).begin() as conn:
                await conn.run_sync(metadata.create_all)

            print(f"✓ {country} database initialized successfully!")
    finally:
        await dispose_engines()


if __name__ == "__main__":
    asyncio.run(init_db())
