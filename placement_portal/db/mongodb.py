"""
MongoDB Connection Utility

MongoDB stores:
- Celery task results (configured as the result backend)
- Dead-lettered jobs: jobs that exhausted their retry budget and
  need an operator to look at them

WHY MongoDB for these?
- Schema-flexible: job payloads differ per job name
- Document-oriented: each failed job is self-contained
- Kept apart from PostgreSQL so a DB outage can still be recorded
"""
import logging

from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from placement_portal.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)
    return _client


def get_mongo_db() -> Database:
    """Get the placement_jobs database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """
    Get a specific collection.
    Collections we'll use:
    - dead_letter_jobs: jobs that failed on every attempt
    """
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except PyMongoError as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "dead_letters": "dead_letter_jobs",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    dead_letters = db[COLLECTIONS["dead_letters"]]
    # Celery task ids are unique per attempt chain
    dead_letters.create_index("task_id", unique=True)
    dead_letters.create_index([("status", ASCENDING), ("failed_at", DESCENDING)])
    dead_letters.create_index("payload.drive_id")

    logger.info("MongoDB indexes created")
