"""
MongoDB persistence for per-identity app data.

One document per anonymous identity in the ``appdata`` collection, keyed by
``_id``. Writes that create data are upserts, so callers never need an existence check.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from calix.logic.errors import UpstreamFailure

logger = logging.getLogger(__name__)

COLLECTION_NAME = "appdata"
EARNED_FIELD = "achievementsEarned"
MINTED_FIELD = "achievementsMinted"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserStore:
    """Document store client with an explicit connect/close lifecycle"""

    def __init__(self, uri: str, db_name: str = "calix", timeout_ms: int = 10000):
        self.uri = uri
        self.db_name = db_name
        self.timeout_ms = timeout_ms
        self._client: Optional[MongoClient] = None
        self._collection: Optional[Collection] = None

    @classmethod
    def from_collection(cls, collection: Collection) -> "UserStore":
        """Wrap an existing collection (used when the client is managed elsewhere)."""
        store = cls(uri="")
        store._collection = collection
        return store

    @property
    def connected(self) -> bool:
        return self._collection is not None

    def connect(self) -> None:
        """Open the client and verify the server answers; raises UpstreamFailure otherwise."""
        client = MongoClient(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
        try:
            client.admin.command("ping")
        except PyMongoError as exc:
            client.close()
            logger.error(f"MongoDB connection failed: {exc}")
            raise UpstreamFailure("Could not connect to the document store.") from exc
        self._client = client
        self._collection = client.get_default_database(default=self.db_name)[COLLECTION_NAME]
        logger.info(f"MongoDB connected (database '{self._collection.database.name}').")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed.")
        self._client = None
        self._collection = None

    @property
    def collection(self) -> Collection:
        if self._collection is None:
            raise UpstreamFailure("Document store is not connected.")
        return self._collection

    # --- OPERATIONS ---
    def find_one(self, identity: str) -> Optional[Dict[str, Any]]:
        try:
            return self.collection.find_one({"_id": identity})
        except PyMongoError as exc:
            logger.error(f"Failed to load record: {exc}")
            raise UpstreamFailure("Failed to load data.") from exc

    def upsert(self, identity: str, fields: Dict[str, Any]) -> None:
        """Merge the named fields into the record, creating it if absent."""
        self._update(identity, {"$set": {**fields, "updatedAt": _now()}}, "Failed to save data.")

    def remove_field(self, identity: str, field: str) -> None:
        self._update(
            identity,
            {"$unset": {field: ""}, "$set": {"updatedAt": _now()}},
            "Failed to update data.",
            upsert=False,
        )

    def add_minted(self, identity: str, achievement_id: str) -> None:
        """Record a completed mint. Only this ID is added, other entries are left alone."""
        self._update(
            identity,
            {"$addToSet": {MINTED_FIELD: achievement_id}, "$set": {"updatedAt": _now()}},
            "Failed to record mint.",
        )

    def apply_reconciliation(self, identity: str, intent) -> None:
        """
        Persist a reconciliation snapshot.

        On backfill the minted list is written whole. Otherwise only the pruned
        IDs are pulled, so a mint recorded concurrently is not overwritten.
        """
        update: Dict[str, Any] = {"$set": {EARNED_FIELD: list(intent.earned), "updatedAt": _now()}}
        if intent.backfill:
            update["$set"][MINTED_FIELD] = list(intent.minted)
        elif intent.pruned:
            update["$pullAll"] = {MINTED_FIELD: list(intent.pruned)}
        self._update(identity, update, "Failed to save achievements.")

    def _update(self, identity: str, update: Dict[str, Any], failure: str, upsert: bool = True) -> None:
        try:
            self.collection.update_one({"_id": identity}, update, upsert=upsert)
        except PyMongoError as exc:
            logger.error(f"{failure} {exc}")
            raise UpstreamFailure(failure) from exc
