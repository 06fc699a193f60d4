"""Seed demo assistance requests into the SQLite store for development.

Usage:
    python scripts/seed_requests.py

Skips seeding when the store already holds requests. Prints the created
request ids so they can be used against the REST and socket endpoints.
"""

import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nurse_call.config import Settings
from nurse_call.persistence.store import DomainStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


DEMO_REQUESTS = [
    {
        "patient_id": "patient-demo-1",
        "priority": "high",
        "description": "Chest tightness after walking to the bathroom",
        "department": "Cardiology",
        "room": "204",
    },
    {
        "patient_id": "patient-demo-1",
        "priority": "low",
        "description": "Extra blanket, room feels cold",
        "department": "Cardiology",
        "room": "204",
    },
    {
        "patient_id": "patient-demo-2",
        "priority": "medium",
        "description": "Needs help getting out of bed to walk",
        "department": "Orthopedics",
        "room": "318",
    },
]


async def main():
    settings = Settings()
    os.makedirs(os.path.dirname(settings.db_path) or ".", exist_ok=True)
    store = DomainStore(settings.db_path)

    try:
        await store.init_db()
        existing = await store.find_requests()
        if existing:
            logger.info("Store already has %d requests, not seeding", len(existing))
            return

        created = []
        for item in DEMO_REQUESTS:
            record = await store.create_request(**item)
            created.append({"id": record.id, "department": record.department})
        print(json.dumps(created, indent=2))
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
