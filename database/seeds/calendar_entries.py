"""
Seed script for calendar_entries table.

Adds Philippine public holidays for the demo branch plus one example of
shortened special hours.
"""

import asyncio
from datetime import date
from typing import Any

from sqlalchemy import select

from database.connection import AsyncSessionLocal
from database.models import CalendarEntry, CalendarEntryType
from database.seeds.branches import BRANCHES_DATA

HOLIDAYS_2025: list[dict[str, Any]] = [
    {"date": date(2025, 1, 1), "title": "New Year's Day"},
    {"date": date(2025, 4, 9), "title": "Araw ng Kagitingan"},
    {"date": date(2025, 4, 17), "title": "Maundy Thursday"},
    {"date": date(2025, 4, 18), "title": "Good Friday"},
    {"date": date(2025, 5, 1), "title": "Labor Day"},
    {"date": date(2025, 6, 12), "title": "Independence Day"},
    {"date": date(2025, 8, 25), "title": "National Heroes Day"},
    {"date": date(2025, 11, 30), "title": "Bonifacio Day"},
    {"date": date(2025, 12, 25), "title": "Christmas Day"},
    {"date": date(2025, 12, 30), "title": "Rizal Day"},
]

SPECIAL_HOURS_2025: list[dict[str, Any]] = [
    {"date": date(2025, 12, 24), "title": "Christmas Eve", "special_hours": {"open": "09:00", "close": "13:00"}},
    {"date": date(2025, 12, 31), "title": "New Year's Eve", "special_hours": {"open": "09:00", "close": "13:00"}},
]


def _entries_for(branch_id: str) -> list[dict[str, Any]]:
    entries = [
        {"branch_id": branch_id, "type": CalendarEntryType.HOLIDAY, **holiday}
        for holiday in HOLIDAYS_2025
    ]
    entries += [
        {"branch_id": branch_id, "type": CalendarEntryType.SPECIAL_HOURS, **special}
        for special in SPECIAL_HOURS_2025
    ]
    return entries


async def seed_calendar_entries() -> None:
    """
    Seed calendar entries for every seeded branch.

    An entry is skipped when the branch already has one of the same type on that date.
    """
    async with AsyncSessionLocal() as session:
        async with session.begin():
            created_count = 0
            skipped_count = 0

            for branch in BRANCHES_DATA:
                for entry_data in _entries_for(branch["id"]):
                    result = await session.execute(
                        select(CalendarEntry).where(
                            CalendarEntry.branch_id == entry_data["branch_id"],
                            CalendarEntry.date == entry_data["date"],
                            CalendarEntry.type == entry_data["type"],
                        )
                    )
                    if result.scalar_one_or_none() is None:
                        session.add(CalendarEntry(**entry_data))
                        created_count += 1
                        print(f"✓ Created: {entry_data['date']} - {entry_data['title']}")
                    else:
                        skipped_count += 1
                        print(f"- Skipped: {entry_data['date']} - {entry_data['title']} (already exists)")

        print(f"\n✓ Seeding complete!")
        print(f"  Created: {created_count} entries")
        print(f"  Skipped: {skipped_count} entries (already exist)")


if __name__ == "__main__":
    print("Seeding calendar_entries table...")
    print("=" * 60)
    asyncio.run(seed_calendar_entries())
