# backend/skill_challenges/db/indexes.py
"""
Idempotent index creation for the challenge collections.

- `create_indexes` is a no-op server-side when an index with the same keys and options exists.
- Listing is sorted by deadline and filtered by status: compound (deadline, status).
- Statistics match on created_at; snapshots are looked up by (period_start, period_end).
"""

from __future__ import annotations

from pymongo import ASCENDING
from pymongo.operations import IndexModel
from motor.motor_asyncio import AsyncIOMotorDatabase

from skill_challenges.db.mongodb import CHALLENGE_STATS, CHALLENGES, USERS

INDEXES: dict[str, list[IndexModel]] = {
    CHALLENGES: [
        IndexModel([("deadline", ASCENDING), ("status", ASCENDING)], name="ix_challenges__deadline_status"),
        IndexModel([("created_at", ASCENDING)], name="ix_challenges__created_at"),
        IndexModel([("participants", ASCENDING)], name="ix_challenges__participants"),
    ],
    CHALLENGE_STATS: [
        IndexModel([("period_start", ASCENDING), ("period_end", ASCENDING)], name="ix_challenge_stats__period"),
    ],
    USERS: [
        IndexModel([("email", ASCENDING)], name="uniq_user_email", unique=True),
    ],
}


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    for coll_name, models in INDEXES.items():
        await db[coll_name].create_indexes(models)
