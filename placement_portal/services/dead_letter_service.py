"""
Dead-letter store - jobs that failed on every attempt.

Collection: dead_letter_jobs

A job lands here once its retry budget is spent. Nothing retries it
automatically; an operator lists the entries, fixes the cause and
re-dispatches (status goes open -> retried).

Document shape:
{
    "task_id": "...",          # Celery task id (unique)
    "job_name": "auto-publish",
    "payload": {...},
    "attempts": 3,
    "error": "ValueError: ...",
    "traceback": "...",
    "status": "open" | "retried",
    "failed_at": datetime,
    "retried_at": datetime | None,
    "retry_task_id": "..." | None
}
"""

from datetime import datetime
from typing import Optional, List
from bson import ObjectId
from bson.errors import InvalidId
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from placement_portal.core.exceptions import NotFound
from placement_portal.db.mongodb import get_collection, COLLECTIONS


def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


class DeadLetterService:
    """
    Handles dead-lettered job storage.
    """

    def __init__(self, collection: Optional[Collection] = None):
        self.collection: Collection = collection if collection is not None else get_collection(COLLECTIONS["dead_letters"])

    def record(
        self,
        task_id: str,
        job_name: str,
        payload: dict,
        attempts: int,
        error: str,
        traceback: Optional[str] = None
    ) -> str:
        """
        Store a failed job. Recording the same task twice keeps one document.

        Returns:
            MongoDB ObjectId as string
        """
        result = self.collection.find_one_and_update(
            {"task_id": task_id},
            {
                "$set": {
                    "job_name": job_name,
                    "payload": payload,
                    "attempts": attempts,
                    "error": error,
                    "traceback": traceback,
                    "failed_at": datetime.utcnow(),
                },
                "$setOnInsert": {"status": "open", "retried_at": None, "retry_task_id": None},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return str(result["_id"])

    def list_jobs(self, status: Optional[str] = "open", limit: int = 50) -> List[dict]:
        query = {"status": status} if status else {}
        docs = self.collection.find(query).sort("failed_at", DESCENDING).limit(limit)
        return [serialize_doc(doc) for doc in docs]

    def get(self, dead_letter_id: str) -> dict:
        try:
            doc = self.collection.find_one({"_id": ObjectId(dead_letter_id)})
        except InvalidId:
            doc = None
        if doc is None:
            raise NotFound("Dead-lettered job not found")
        return serialize_doc(doc)

    def mark_retried(self, dead_letter_id: str, retry_task_id: Optional[str]) -> bool:
        result = self.collection.update_one(
            {"_id": ObjectId(dead_letter_id)},
            {"$set": {"status": "retried", "retried_at": datetime.utcnow(), "retry_task_id": retry_task_id}}
        )
        return result.modified_count > 0


def get_dead_letter_service() -> DeadLetterService:
    return DeadLetterService()
