from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from .config import get_settings

_settings = get_settings()
_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

async def ensure_indexes(db) -> None:
    await db.bookings.create_index([("owner_id", 1), ("scheduled_date", 1)])
    await db.bookings.create_index([("provider_id", 1), ("scheduled_date", 1)])
    # Una reseña por participante y reserva, también bajo concurrencia
    await db.reviews.create_index([("booking_id", 1), ("reviewer_id", 1)], unique=True)
    await db.reviews.create_index([("reviewee_id", 1)])
    await db.booking_events.create_index([("delivered", 1), ("occurred_at", 1)])

async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(_settings.mongodb_uri, tz_aware=True)
        _db = _client[_settings.db_name]
        await ensure_indexes(_db)
    return _db
