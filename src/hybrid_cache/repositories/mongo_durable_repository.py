"""MongoDB implementation of DurableStore.

The durable tier is the store of record for every cache entry. Documents
look like::

    {key, fingerprint, value, embedding, has_embedding, created_at, updated_at}

``key`` and ``fingerprint`` carry unique indexes. ``has_embedding`` is an
explicit flag so the semantic scan filters on a field every document carries
instead of probing for the presence of ``embedding``.

Write access is probed once on connect with a disposable insert/delete. If
the server rejects it for lack of authorization the repository switches to
read-only for the rest of its life and ``upsert`` becomes a no-op.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from hybrid_cache.config import get_mongo_client, settings
from hybrid_cache.entities import CacheEntryEntity
from hybrid_cache.exceptions import InfrastructureUnavailable
from hybrid_cache.utils.text import fingerprint as compute_fingerprint

logger = logging.getLogger(__name__)

UNAUTHORIZED_CODE = 13
PROBE_KEY_PREFIX = "__write_probe__:"


def is_unauthorized(error: PyMongoError) -> bool:
    """Whether a driver error means the user lacks permission for the operation."""
    if isinstance(error, OperationFailure) and error.code == UNAUTHORIZED_CODE:
        return True
    message = str(error).lower()
    return "not authorized" in message or "unauthorized" in message


def document_to_entity(doc: dict[str, Any]) -> CacheEntryEntity:
    """Convert a stored document to a CacheEntryEntity.

    Rows written before fingerprints existed get one derived from their key.
    """
    embedding = doc.get("embedding") or None
    return CacheEntryEntity(
        key=doc["key"],
        fingerprint=doc.get("fingerprint") or compute_fingerprint(doc["key"]),
        value=doc.get("value", ""),
        embedding=list(embedding) if embedding is not None else None,
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


class MongoDurableRepository:
    """MongoDB implementation of the DurableStore protocol.

    Driver errors are re-raised as ``InfrastructureUnavailable``. If the
    initial connect() failed, the next operation retries it; only one
    attempt runs at a time and concurrent callers fail fast meanwhile.
    """

    def __init__(
        self,
        client: AsyncMongoClient | None = None,
        db_name: str | None = None,
        collection_name: str | None = None,
    ) -> None:
        """Initialize the MongoDB repository.

        Args:
            client: MongoDB client instance. If None, one is created on connect().
            db_name: Database name. Defaults to settings.
            collection_name: Collection name. Defaults to settings.
        """
        self._client = client
        self._db_name = db_name or settings.mongo_db_name
        self._collection_name = collection_name or settings.mongo_collection_name
        self._collection = None
        self._connecting = False
        self._read_only = False

    @classmethod
    def create(
        cls,
        db_name: str | None = None,
        collection_name: str | None = None,
    ) -> "MongoDurableRepository":
        """Factory method to create MongoDurableRepository with defaults.

        Args:
            db_name: Database name. If None, uses settings.
            collection_name: Collection name. If None, uses settings.

        Returns:
            Configured, not yet connected MongoDurableRepository
        """
        return cls(db_name=db_name, collection_name=collection_name)

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def connected(self) -> bool:
        return self._collection is not None

    async def connect(self) -> None:
        """Ping the server, ensure indexes and probe write access.

        Raises:
            InfrastructureUnavailable: If the server cannot be reached
        """
        if self._connecting:
            raise InfrastructureUnavailable("MongoDB connection attempt already in progress")
        self._connecting = True
        try:
            if self._client is None:
                self._client = get_mongo_client()
            collection = self._client[self._db_name][self._collection_name]
            await self._client.admin.command("ping")
            await self._ensure_indexes(collection)
            if not self._read_only:
                await self._probe_write_access(collection)
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB connection failed: {e}") from e
        finally:
            self._connecting = False

        self._collection = collection
        logger.info(
            "Connected to MongoDB %s.%s%s",
            self._db_name,
            self._collection_name,
            " (read-only)" if self._read_only else "",
        )

    async def close(self) -> None:
        """Close the MongoDB client."""
        if self._client is not None:
            await self._client.close()
        self._collection = None

    async def _ensure_indexes(self, collection) -> None:
        try:
            await collection.create_index([("key", ASCENDING)], unique=True, name="key_unique")
            await collection.create_index(
                [("fingerprint", ASCENDING)],
                unique=True,
                name="fingerprint_unique",
                partialFilterExpression={"fingerprint": {"$exists": True}},
            )
            await collection.create_index([("has_embedding", ASCENDING)], name="has_embedding")
        except OperationFailure as e:
            if is_unauthorized(e):
                self._enter_read_only(e)
            else:
                # Conflicting pre-existing indexes still serve lookups
                logger.warning("Could not create MongoDB indexes: %s", e)

    async def _probe_write_access(self, collection) -> None:
        probe_key = f"{PROBE_KEY_PREFIX}{uuid.uuid4().hex}"
        try:
            await collection.insert_one({"key": probe_key, "probe": True})
            await collection.delete_one({"key": probe_key})
        except OperationFailure as e:
            if not is_unauthorized(e):
                raise
            self._enter_read_only(e)

    def _enter_read_only(self, error: PyMongoError) -> None:
        if not self._read_only:
            logger.warning(
                "MongoDB user lacks write permission, cache writes disabled: %s", error
            )
        self._read_only = True

    async def _get_collection(self):
        if self._collection is None:
            await self.connect()
        return self._collection

    async def get_by_fingerprint(self, fingerprint: str) -> CacheEntryEntity | None:
        """Find an entry by fingerprint.

        Args:
            fingerprint: SHA-256 fingerprint of the normalized request

        Returns:
            The entry, or None if absent
        """
        collection = await self._get_collection()
        try:
            doc = await collection.find_one({"fingerprint": fingerprint})
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB get_by_fingerprint failed: {e}") from e
        return document_to_entity(doc) if doc else None

    async def get_by_key(self, key: str) -> CacheEntryEntity | None:
        """Find an entry by normalized key.

        Args:
            key: Normalized request text

        Returns:
            The entry, or None if absent
        """
        collection = await self._get_collection()
        try:
            doc = await collection.find_one({"key": key})
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB get_by_key failed: {e}") from e
        return document_to_entity(doc) if doc else None

    async def scan_embedding_page(self, page_index: int, page_size: int) -> list[CacheEntryEntity]:
        """Fetch one page of entries that have an embedding.

        Pages are ordered by ``_id`` and cut with skip/limit.

        Args:
            page_index: Zero-based page number
            page_size: Entries per page

        Returns:
            Entries on the page; empty when the scan is exhausted
        """
        if page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {page_index}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        collection = await self._get_collection()
        try:
            cursor = (
                collection.find({"has_embedding": True})
                .sort("_id", ASCENDING)
                .skip(page_index * page_size)
                .limit(page_size)
            )
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB scan_embedding_page failed: {e}") from e
        return [document_to_entity(doc) for doc in docs]

    async def upsert(self, entry: CacheEntryEntity) -> bool:
        """Insert or replace an entry by key.

        A duplicate-key error means a concurrent writer inserted the same key
        first; the write is retried as a plain update (last write wins).

        Args:
            entry: The entry to persist

        Returns:
            True if persisted, False if skipped
        """
        if self._read_only:
            logger.debug("Read-only durable tier, skipping upsert for %r", entry.key)
            return False

        collection = await self._get_collection()
        now = datetime.now(timezone.utc)
        update = {
            "$set": {
                "fingerprint": entry.fingerprint,
                "value": entry.value,
                "embedding": entry.embedding,
                "has_embedding": entry.has_embedding,
                "updated_at": now,
            },
            "$setOnInsert": {"created_at": now},
        }
        try:
            try:
                await collection.update_one({"key": entry.key}, update, upsert=True)
            except DuplicateKeyError:
                result = await collection.update_one({"key": entry.key}, {"$set": update["$set"]})
                if result.matched_count == 0:
                    logger.warning("Upsert for %r conflicts with another key's fingerprint", entry.key)
                    return False
        except OperationFailure as e:
            if is_unauthorized(e):
                self._enter_read_only(e)
                return False
            raise InfrastructureUnavailable(f"MongoDB upsert failed: {e}") from e
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB upsert failed: {e}") from e
        return True

    async def count(self) -> int:
        """Count total entries in the collection."""
        collection = await self._get_collection()
        try:
            return await collection.count_documents({})
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB count failed: {e}") from e

    async def scan_for_backfill(
        self,
        after_key: str | None,
        limit: int,
        overwrite: bool = False,
    ) -> list[CacheEntryEntity]:
        """Fetch the next batch of entries for the embedding backfill.

        Keyset pagination on ``key`` so that updating a row (which removes it
        from the "missing fields" filter) never shifts later batches.

        Args:
            after_key: Last key of the previous batch, or None to start
            limit: Batch size
            overwrite: Return every entry instead of only incomplete ones

        Returns:
            Entries ordered by key
        """
        clauses: list[dict[str, Any]] = []
        if not overwrite:
            clauses.append(
                {"$or": [{"has_embedding": {"$ne": True}}, {"fingerprint": {"$exists": False}}]}
            )
        if after_key is not None:
            clauses.append({"key": {"$gt": after_key}})
        clauses.append({"probe": {"$ne": True}})
        query = {"$and": clauses}

        collection = await self._get_collection()
        try:
            cursor = collection.find(query).sort("key", ASCENDING).limit(limit)
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB scan_for_backfill failed: {e}") from e
        return [document_to_entity(doc) for doc in docs]

    async def set_derived_fields(
        self,
        key: str,
        fingerprint: str,
        embedding: list[float],
    ) -> bool:
        """Write fingerprint and embedding onto an existing entry.

        Returns:
            True if the entry was updated, False if skipped
        """
        if self._read_only:
            return False

        collection = await self._get_collection()
        try:
            result = await collection.update_one(
                {"key": key},
                {
                    "$set": {
                        "fingerprint": fingerprint,
                        "embedding": embedding,
                        "has_embedding": bool(embedding),
                        "updated_at": datetime.now(timezone.utc),
                    }
                },
            )
        except DuplicateKeyError as e:
            logger.warning("Fingerprint for %r already used by another entry: %s", key, e)
            return False
        except OperationFailure as e:
            if is_unauthorized(e):
                self._enter_read_only(e)
                return False
            raise InfrastructureUnavailable(f"MongoDB set_derived_fields failed: {e}") from e
        except PyMongoError as e:
            raise InfrastructureUnavailable(f"MongoDB set_derived_fields failed: {e}") from e
        return result.matched_count > 0

    async def health_check(self) -> bool:
        """Check if MongoDB is accessible.

        Returns:
            True if healthy, False otherwise
        """
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    async def get_stats(self) -> dict:
        """Get durable tier statistics.

        Returns:
            Dictionary with stats
        """
        stats: dict[str, Any] = {
            "database": self._db_name,
            "collection": self._collection_name,
            "connected": self.connected,
            "read_only": self._read_only,
            "total_entries": None,
            "embedded_entries": None,
        }
        if self._collection is None:
            return stats
        try:
            stats["total_entries"] = await self._collection.count_documents({})
            stats["embedded_entries"] = await self._collection.count_documents(
                {"has_embedding": True}
            )
        except PyMongoError as e:
            logger.warning("Could not collect MongoDB stats: %s", e)
        return stats

    @property
    def client(self) -> AsyncMongoClient | None:
        """Get the MongoDB client."""
        return self._client
