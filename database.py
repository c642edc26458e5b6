"""
MongoDB access helpers.

`db` is the shared database handle (None when DATABASE_URL is not set).
Collection names are the lowercase schema class names: user, product, order.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from bson.objectid import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import config
from errors import Internal

logger = logging.getLogger(__name__)

client = None
db = None

if config.DATABASE_URL:
    client = MongoClient(config.DATABASE_URL)
    db = client[config.DATABASE_NAME]


def get_db():
    if db is None:
        raise Internal("Database not available")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value) -> Optional[ObjectId]:
    """Parse an id from a path or token; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = get_db()[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: dict = None, limit: int = None, sort=None):
    cursor = get_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes():
    get_db()["user"].create_index([("email", ASCENDING)], unique=True)
    logger.info("Database indexes ensured")


def serialize_doc(doc):
    """Make a Mongo document JSON friendly: _id -> id, ObjectId/datetime -> str."""
    if isinstance(doc, list):
        return [serialize_doc(d) for d in doc]
    if isinstance(doc, dict):
        out = {}
        for k, v in doc.items():
            if k == "_id":
                out["id"] = str(v)
            else:
                out[k] = serialize_doc(v)
        return out
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    return doc
