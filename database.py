"""
Database access

A single pymongo database handle shared by the services. When DATABASE_URL or
DATABASE_NAME is missing the handle stays None and every collection lookup
fails with a 500 so the API can still boot and report its state on /test.
"""

import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError
from pymongo.collection import Collection

from errors import BadRequestError, ConflictError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db = None
if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]

UNIQUE_INDEXES = {
    "admin": "email",
    "user": "email",
    "coupon": "code",
    "order": "order_id",
}


def get_collection(name: str) -> Collection:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db[name]


def ensure_indexes() -> None:
    if db is None:
        logger.warning("Database not configured, skipping index creation")
        return
    for collection, field in UNIQUE_INDEXES.items():
        db[collection].create_index([(field, ASCENDING)], unique=True)


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Union[str, ObjectId], label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(value or ""):
        raise BadRequestError(f"Invalid {label}")
    return ObjectId(value)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    doc["created_at"] = doc["updated_at"] = now()
    try:
        result = get_collection(collection_name).insert_one(doc)
    except DuplicateKeyError:
        raise ConflictError(f"{collection_name.capitalize()} already exists")
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, projection: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return list(get_collection(collection_name).find(filter_dict or {}, projection))


def get_next_sequence(seq_name: str) -> int:
    doc = get_collection("counters").find_one_and_update(
        {"_id": seq_name},
        {"$inc": {"value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(doc.get("value") or 1)


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert a Mongo document to JSON-friendly output, recursing into lists and sub-documents."""
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    for k, v in list(doc.items()):
        doc[k] = _serialize_value(v)
    return doc


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value
