"""
Seed script for branches table.

Creates the demo branch with its weekly operating hours:
- Monday-Friday: 09:00 - 17:00
- Saturday: 09:00 - 14:00
- Sunday: CLOSED
"""

import asyncio
from typing import Any

from sqlalchemy import select

from database.connection import AsyncSessionLocal
from database.models import Branch

WEEKDAY_HOURS = {"isOpen": True, "open": "09:00", "close": "17:00"}

BRANCHES_DATA: list[dict[str, Any]] = [
    {
        "id": "branch-makati",
        "name": "Makati Branch",
        "operating_hours": {
            "monday": dict(WEEKDAY_HOURS),
            "tuesday": dict(WEEKDAY_HOURS),
            "wednesday": dict(WEEKDAY_HOURS),
            "thursday": dict(WEEKDAY_HOURS),
            "friday": dict(WEEKDAY_HOURS),
            "saturday": {"isOpen": True, "open": "09:00", "close": "14:00"},
            "sunday": {"isOpen": False, "open": "", "close": ""},
        },
    },
]


async def seed_branches() -> None:
    """
    Seed the branches table.

    Existing branches get their name and operating hours overwritten.
    """
    async with AsyncSessionLocal() as session:
        async with session.begin():
            created_count = 0
            updated_count = 0

            for branch_data in BRANCHES_DATA:
                result = await session.execute(
                    select(Branch).where(Branch.id == branch_data["id"])
                )
                existing_branch = result.scalar_one_or_none()

                if existing_branch is None:
                    session.add(Branch(**branch_data))
                    created_count += 1
                    print(f"✓ Created: {branch_data['name']}")
                else:
                    existing_branch.name = branch_data["name"]
                    existing_branch.operating_hours = branch_data["operating_hours"]
                    updated_count += 1
                    print(f"⊙ Updated: {branch_data['name']}")

        print(f"\n✓ Seeding complete!")
        print(f"  Created: {created_count} branches")
        print(f"  Updated: {updated_count} branches")


if __name__ == "__main__":
    print("Seeding branches table...")
    print("=" * 60)
    asyncio.run(seed_branches())
