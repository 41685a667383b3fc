"""
ERP Sessions - Seed Test Resources (dev/staging only)
Creates rooms, trainers and one demo deal with predictable ids.
Run: python scripts/seed_test_resources.py
Reset: python scripts/seed_test_resources.py --reset
"""

import asyncio
import os
import sys
from motor.motor_asyncio import AsyncIOMotorClient

MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "test_database")

TEST_PREFIX = "test-"

TEST_ROOMS = [
    {"id": "test-sala-1", "name": "Sala Madrid 1"},
    {"id": "test-sala-2", "name": "Sala Madrid 2"},
    {"id": "test-sala-3", "name": "Sala Sabadell"},
]

TEST_TRAINERS = [
    {"id": "test-trainer-ana",    "first_name": "Ana",     "last_name": "Pérez"},
    {"id": "test-trainer-jose",   "first_name": "José",    "last_name": "García López"},
    {"id": "test-trainer-marta",  "first_name": "Marta",   "last_name": "Sánchez"},
]

TEST_DEALS = [
    {
        "deal_id": "test-deal-1",
        "title": "Formación PRL demo",
        "pipeline_label": "Formación Empresa",
        "sede_label": "GEP Arganda",
        "training_address": "Calle Primavera 1, Arganda del Rey",
        "products": [{"id": "test-product-1", "name": "Extinción de incendios", "code": "form-ext-01"}],
    },
]


async def reset(db):
    """Delete all test- resources and their sessions"""
    rooms = await db.rooms.delete_many({"id": {"$regex": f"^{TEST_PREFIX}"}})
    trainers = await db.trainers.delete_many({"id": {"$regex": f"^{TEST_PREFIX}"}})
    deal_ids = [d["deal_id"] for d in TEST_DEALS]
    session_ids = [
        s["id"] async for s in db.sessions.find({"deal_id": {"$in": deal_ids}}, {"_id": 0, "id": 1})
    ]
    await db.session_trainers.delete_many({"session_id": {"$in": session_ids}})
    await db.session_units.delete_many({"session_id": {"$in": session_ids}})
    await db.sessions.delete_many({"deal_id": {"$in": deal_ids}})
    await db.deals.delete_many({"deal_id": {"$in": deal_ids}})
    print(f"Deleted {rooms.deleted_count} rooms, {trainers.deleted_count} trainers, {len(session_ids)} sessions")


async def seed(db):
    for room in TEST_ROOMS:
        await db.rooms.update_one({"id": room["id"]}, {"$set": {**room, "active": True}}, upsert=True)
        print(f"  Room: {room['name']}")
    for trainer in TEST_TRAINERS:
        await db.trainers.update_one({"id": trainer["id"]}, {"$set": {**trainer, "active": True}}, upsert=True)
        print(f"  Trainer: {trainer['first_name']} {trainer['last_name']}")
    for deal in TEST_DEALS:
        await db.deals.update_one({"deal_id": deal["deal_id"]}, {"$set": deal}, upsert=True)
        print(f"  Deal: {deal['deal_id']} ({deal['title']})")


async def main():
    client = AsyncIOMotorClient(MONGO_URL)
    db = client[DB_NAME]

    if "--reset" in sys.argv:
        await reset(db)
        print("Reset complete. Run without --reset to re-seed.")
    else:
        await reset(db)
        await seed(db)
        print("\nTest resources seeded.")
        print("Reset: python scripts/seed_test_resources.py --reset")

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
