"""
Database connection for the Acoof store.

Reads DATABASE_URL / DATABASE_NAME from the environment (or a .env file)
and exposes a pymongo database handle as ``db``. When no URL is configured
``db`` is None and the API reports the database as unavailable.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "acoof")

db = None

if DATABASE_URL:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]
else:
    logger.warning("DATABASE_URL is not set; running without a database")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_db():
    if db is None:
        raise RuntimeError("Database is not configured. Set DATABASE_URL in the environment.")
    return db


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document with created/updated timestamps and return its id as a string."""
    handle = _require_db()
    payload = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    payload.setdefault("created_at", now)
    payload["updated_at"] = now
    result = handle[collection_name].insert_one(payload)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    handle = _require_db()
    cursor = handle[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
