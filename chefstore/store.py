"""Thin wrappers around the MongoDB collections the API works with.

Each store owns one collection and exposes the handful of queries the flow
handlers need. Documents are returned as plain dicts, exactly as PyMongo hands
them back.
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


class _Store:
    collection_name = ""

    def __init__(self, db, logger):
        self.collection = db[self.collection_name]
        self.logger = logger

    def _ensure_index(self, keys, **options):
        try:
            self.collection.create_index(keys, **options)
        except PyMongoError as exc:
            self.logger.warning(
                "Unable to ensure index %s on %s: %s", keys, self.collection_name, exc
            )

    def ensure_indexes(self):
        pass

    def find_by_id(self, identifier) -> Optional[Dict]:
        object_id = to_object_id(identifier)
        if object_id is None:
            return None
        return self.collection.find_one({"_id": object_id})

    def find_by_email(self, email: str) -> Optional[Dict]:
        return self.collection.find_one({"email": email})

    def insert(self, document: Dict) -> Dict:
        timestamp = utcnow()
        document.setdefault("created_at", timestamp)
        document.setdefault("updated_at", timestamp)
        result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    def update(self, identifier, changes: Dict) -> Optional[Dict]:
        object_id = to_object_id(identifier)
        if object_id is None:
            return None
        changes = dict(changes)
        changes["updated_at"] = utcnow()
        return self.collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )


class UserStore(_Store):
    collection_name = "users"

    def ensure_indexes(self):
        self._ensure_index([("email", ASCENDING)], unique=True)

    def find_many_by_ids(self, identifiers: Iterable) -> Dict[ObjectId, Dict]:
        object_ids = {oid for oid in map(to_object_id, identifiers) if oid}
        if not object_ids:
            return {}
        return {
            document["_id"]: document
            for document in self.collection.find({"_id": {"$in": list(object_ids)}})
        }


class AdminStore(_Store):
    collection_name = "admins"

    def ensure_indexes(self):
        self._ensure_index([("email", ASCENDING)], unique=True)


class OrderStore(_Store):
    collection_name = "orders"

    def ensure_indexes(self):
        self._ensure_index([("payment_ref", ASCENDING)], unique=True)
        self._ensure_index([("user", ASCENDING), ("created_at", DESCENDING)])
        self._ensure_index([("email", ASCENDING), ("created_at", DESCENDING)])

    def find_by_payment_ref(self, payment_ref: str) -> Optional[Dict]:
        return self.collection.find_one({"payment_ref": payment_ref})

    def find(self, query: Optional[Dict] = None) -> List[Dict]:
        return list(self.collection.find(query or {}).sort(NEWEST_FIRST))

    def find_for_user(self, user_id) -> List[Dict]:
        return self.find({"user": to_object_id(user_id)})
