#!/usr/bin/env python3
"""Setup script for the Smart Darshan API: migrate and seed the temples."""

import asyncio
import logging
import sys
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

from darshan.core.database import async_session_factory  # noqa: E402
from darshan.models import ParkingData, Temple  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEMPLES = [
    {
        "slug": "somnath",
        "name": "Somnath Temple",
        "city": "Veraval",
        "address": "Prabhas Patan, Veraval, Gir Somnath",
        "description": "First among the twelve Jyotirlinga shrines of Shiva.",
        "opening_time": "05:00",
        "closing_time": "21:00",
        "capacity": 5000,
        "latitude": 20.8880,
        "longitude": 70.4015,
        "parking": [("Main Gate Lot", 400), ("Beach Road Lot", 250)],
    },
    {
        "slug": "dwarka",
        "name": "Dwarkadhish Temple",
        "city": "Dwarka",
        "address": "Dwarka, Devbhumi Dwarka",
        "description": "Krishna temple and one of the Char Dham pilgrimage sites.",
        "opening_time": "06:00",
        "closing_time": "21:30",
        "capacity": 4000,
        "latitude": 22.2394,
        "longitude": 68.9685,
        "parking": [("Gomti Ghat Lot", 300)],
    },
    {
        "slug": "ambaji",
        "name": "Ambaji Temple",
        "city": "Ambaji",
        "address": "Ambaji, Banaskantha",
        "description": "One of the 51 Shakti Peethas, dedicated to Goddess Amba.",
        "opening_time": "04:00",
        "closing_time": "23:30",
        "capacity": 6000,
        "latitude": 24.3305,
        "longitude": 72.8537,
        "parking": [("Gabbar Road Lot", 350), ("Bus Stand Lot", 200)],
    },
    {
        "slug": "pavagadh",
        "name": "Kalika Mata Temple, Pavagadh",
        "city": "Pavagadh",
        "address": "Pavagadh Hill, Panchmahal",
        "description": "Shakti Peetha on top of Pavagadh hill, reached by ropeway.",
        "opening_time": "05:00",
        "closing_time": "20:00",
        "capacity": 3000,
        "latitude": 22.4809,
        "longitude": 73.5319,
        "parking": [("Machi Ropeway Lot", 250)],
    },
]


def run_migrations() -> None:
    """Apply Alembic migrations up to head."""
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def seed_temples() -> None:
    """Insert the served temples and their parking areas unless already present."""
    async with async_session_factory() as db:
        existing = await db.execute(select(func.count()).select_from(Temple))
        if existing.scalar_one() > 0:
            logger.info("Temples already seeded, skipping")
            return

        for entry in TEMPLES:
            fields = {k: v for k, v in entry.items() if k != "parking"}
            temple = Temple(**fields)
            db.add(temple)
            await db.flush()

            for area_name, spots in entry["parking"]:
                db.add(ParkingData(
                    temple_id=temple.id,
                    area_name=area_name,
                    total_spots=spots,
                    available_spots=spots,
                ))

        await db.commit()
        logger.info("Seeded temples", extra={"count": len(TEMPLES)})


def main() -> None:
    logger.info("Starting Smart Darshan setup...")

    # Alembic's env.py runs its own event loop
    run_migrations()
    asyncio.run(seed_temples())

    logger.info("Setup completed successfully!")
    logger.info("Start the API with: cd server && uvicorn darshan.main:app --reload")


if __name__ == "__main__":
    main()
