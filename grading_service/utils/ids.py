from datetime import datetime, timezone

from bson import ObjectId


def new_id() -> str:
    """Generate a new string identifier (ObjectId hex)"""
    return str(ObjectId())


def utcnow() -> datetime:
    # Naive UTC, as pymongo returns it; Mongo stores millisecond precision,
    # so truncate to keep stored and returned values equal
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)
