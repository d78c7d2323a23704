from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError
import logging
from typing import Optional

from .config import settings

logger = logging.getLogger(__name__)

COLLECTIONS = ["quizzes", "quiz_versions", "quiz_attempts"]

# Global variables
client: Optional[MongoClient] = None
db: Optional[Database] = None


def init_db() -> Database:
    """Open the MongoDB connection and create the collections"""
    global client, db

    client = MongoClient(
        settings.MONGODB_URL,
        serverSelectionTimeoutMS=5000,
        maxPoolSize=50
    )

    try:
        client.admin.command('ping')
        db = client[settings.MONGODB_DB]

        existing = db.list_collection_names()
        for collection in COLLECTIONS:
            if collection not in existing:
                db.create_collection(collection)
                logger.info(f"Collection created: {collection}")
    except PyMongoError as e:
        logger.error(f"MongoDB connection failed: {e}")
        client.close()
        client = None
        raise

    logger.info(f"MongoDB initialized: {settings.MONGODB_DB}")
    return db


def get_db() -> Optional[Database]:
    return db


def ping() -> bool:
    if client is None:
        return False
    try:
        client.admin.command('ping')
        return True
    except PyMongoError:
        return False


def close_db():
    global client, db
    if client is not None:
        client.close()
    client = None
    db = None
