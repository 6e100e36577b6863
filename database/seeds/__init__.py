"""
Seed data orchestration module.

Provides seed_all() function to execute all seed scripts in dependency order.
Can be run standalone: python -m database.seeds
"""

import asyncio

from database.seeds.branches import seed_branches
from database.seeds.calendar_entries import seed_calendar_entries


async def seed_all() -> None:
    """
    Execute all seed scripts in dependency order.

    Order:
    1. branches - independent
    2. calendar_entries - depends on branches
    """
    print("Starting database seeding...")
    print("-" * 50)

    await seed_branches()
    await seed_calendar_entries()

    print("-" * 50)
    print(" Database seeding complete!")


if __name__ == "__main__":
    asyncio.run(seed_all())
