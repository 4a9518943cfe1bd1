"""
MongoDB access for the three collections.

``get_database`` opens a client from settings; ``Gateway`` wraps explicit
collection handles and is the only code that reads or writes documents.
Every write is validated against ``validation.RULES`` and shaped by the
matching model in ``schemas.SCHEMAS`` before it reaches the driver. Driver
failures surface as ``StorageError``.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional

from pydantic import ValidationError as SchemaValidationError
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import get_settings
from errors import USERNAME_TAKEN, PreconditionError, StorageError, ValidationError
from schemas import SCHEMAS
from validation import BOOKINGS, CONTACTS, USERS, validate

logger = logging.getLogger(__name__)

COLLECTIONS = (USERS, BOOKINGS, CONTACTS)


def get_database(url: Optional[str] = None, name: Optional[str] = None) -> Database:
    """Create a client for ``url`` (or DATABASE_URL) and return database ``name``.

    The client connects lazily, so this never blocks on the server.
    """
    settings = get_settings()
    client: MongoClient = MongoClient(url or settings.database_url)
    return client[name or settings.database_name]


@contextmanager
def _driver_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        logger.exception("MongoDB %s failed", action)
        raise StorageError(str(e)) from e


def _serialize(document: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    data = dict(document)
    if "_id" in data:
        data["_id"] = str(data["_id"])
    return data


class Gateway:
    """Find, insert and upsert documents in the users, bookings and contacts collections."""

    def __init__(self, collections: Mapping[str, Collection]):
        missing = [name for name in COLLECTIONS if name not in collections]
        if missing:
            raise ValueError(f"Missing collection handles: {', '.join(missing)}")
        self._collections: Dict[str, Collection] = dict(collections)

    @classmethod
    def from_database(cls, db: Database) -> "Gateway":
        return cls({name: db[name] for name in COLLECTIONS})

    def collection(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise ValueError(f"Unknown collection: {name}") from None

    def _shape(self, name: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Validate ``record`` and return only the fields the caller supplied."""
        cleaned = validate(name, record)
        cleaned.pop("createdAt", None)
        try:
            model = SCHEMAS[name].model_validate(cleaned)
        except SchemaValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ValidationError(fields, [err["msg"] for err in e.errors()]) from e
        return model.model_dump(exclude_unset=True)

    def find_one(self, name: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        collection = self.collection(name)
        with _driver_errors(f"find_one on {name}"):
            document = collection.find_one(filter)
        return _serialize(document)

    def insert(self, name: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and insert a new document, stamping ``createdAt``."""
        collection = self.collection(name)
        document = self._shape(name, record)
        document["createdAt"] = datetime.now(timezone.utc)
        with _driver_errors(f"insert into {name}"):
            result = collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Inserted document %s into %s", result.inserted_id, name)
        return _serialize(document)

    def upsert(self, name: str, key_filter: Dict[str, Any], record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert ``record`` if nothing matches ``key_filter``, else overwrite the supplied fields.

        Concurrent upserts to the same key are last-writer-wins.
        """
        collection = self.collection(name)
        document = self._shape(name, record)
        with _driver_errors(f"upsert into {name}"):
            try:
                updated = collection.find_one_and_update(
                    key_filter,
                    {"$set": document},
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError as e:
                if name != USERS:
                    raise
                # username_unique index caught a write the pre-check missed
                logger.info("Username conflict rejected by index in %s", name)
                raise PreconditionError(USERNAME_TAKEN) from e
        logger.info("Upserted document in %s", name)
        return _serialize(updated)

    def ensure_indexes(self) -> None:
        """Create the username uniqueness index and the identity lookup index."""
        users = self.collection(USERS)
        with _driver_errors("index creation"):
            users.create_index([("username", ASCENDING)], unique=True, name="username_unique")
            users.create_index([("auth0Id", ASCENDING)], name="auth0Id")
        logger.info("Indexes ensured on %s", USERS)

    def collection_names(self) -> List[str]:
        db = self.collection(USERS).database
        with _driver_errors("list_collection_names"):
            return db.list_collection_names()

    def close(self) -> None:
        self.collection(USERS).database.client.close()
