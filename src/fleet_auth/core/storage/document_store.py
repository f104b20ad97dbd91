"""Document store interface and implementations.

Provides a collection-scoped key/document interface with a transactional
read-modify-write primitive, backed by Redis when configured and an
in-memory store otherwise.
"""

from __future__ import annotations

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from loguru import logger
from redis.exceptions import RedisError, WatchError

from src.fleet_auth.runtime.context import get_config

R = TypeVar("R")

Document = dict[str, Any]


class _DeleteField:
    """Sentinel removing a field in a partial update."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


class DocumentNotFound(KeyError):
    """Partial update targeted a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class TransactionConflict(RuntimeError):
    """A concurrent writer touched a document read by the transaction."""


class StoreUnavailable(RuntimeError):
    """The storage backend could not be reached."""


def apply_update(current: Document, changes: Document) -> Document:
    """Merge ``changes`` into a copy of ``current``; DELETE_FIELD drops a key."""
    merged = copy.deepcopy(current)
    for key, value in changes.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class Transaction(ABC):
    """Reads first, then buffered writes applied atomically on commit."""

    def __init__(self) -> None:
        self._writes: list[tuple[str, str, str, Document | None]] = []

    @abstractmethod
    async def _read(self, collection: str, doc_id: str) -> Document | None:
        pass

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Read a document inside the transaction.

        Raises:
            RuntimeError: if a write has already been buffered
        """
        if self._writes:
            raise RuntimeError("Transaction reads must happen before writes")
        return await self._read(collection, doc_id)

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        self._writes.append(("set", collection, doc_id, copy.deepcopy(data)))

    def update(self, collection: str, doc_id: str, changes: Document) -> None:
        self._writes.append(("update", collection, doc_id, dict(changes)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(("delete", collection, doc_id, None))


class DocumentStore(ABC):
    """Abstract interface for document store backends."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Get a document by id.

        Returns:
            Document body or None if not found
        """
        pass

    @abstractmethod
    async def list_documents(self, collection: str) -> list[tuple[str, Document]]:
        """List every (id, document) pair in a collection."""
        pass

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        """Store a document, overwriting any existing one."""
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        """Merge ``changes`` into an existing document.

        Raises:
            DocumentNotFound: if the document does not exist
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is a no-op."""
        pass

    @abstractmethod
    def transaction(self) -> Any:
        """Async context manager yielding a Transaction committed on clean exit.

        Raises:
            TransactionConflict: if a concurrent write invalidated a read
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if storage backend is available."""
        pass

    async def find_by_field(
        self, collection: str, field: str, value: Any
    ) -> list[tuple[str, Document]]:
        """Return documents whose ``field`` equals ``value`` exactly."""
        return [
            (doc_id, data)
            for doc_id, data in await self.list_documents(collection)
            if data.get(field) == value
        ]

    async def run_transaction(
        self,
        fn: Callable[[Transaction], Awaitable[R]],
        max_attempts: int | None = None,
    ) -> R:
        """Run ``fn`` inside a transaction, re-running it on conflict.

        Each attempt re-reads, so ``fn`` always decides on fresh data.
        Exceptions raised by ``fn`` abort the transaction and propagate.
        """
        attempts = max_attempts or get_config().document_store.transaction_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with self.transaction() as tx:
                    result = await fn(tx)
                return result
            except TransactionConflict:
                logger.debug(f"Transaction conflict on attempt {attempt}/{attempts}")
                if attempt == attempts:
                    raise
        raise AssertionError("unreachable")


class _InMemoryTransaction(Transaction):
    def __init__(self, store: InMemoryDocumentStore):
        super().__init__()
        self._store = store

    async def _read(self, collection: str, doc_id: str) -> Document | None:
        return self._store._get_unlocked(collection, doc_id)

    def _commit(self) -> None:
        # Validate before applying anything so a failed update leaves no trace
        pending: dict[tuple[str, str], Document | None] = {}
        for op, collection, doc_id, data in self._writes:
            key = (collection, doc_id)
            current = pending[key] if key in pending else self._store._get_unlocked(collection, doc_id)
            if op == "set":
                pending[key] = data
            elif op == "update":
                if current is None:
                    raise DocumentNotFound(collection, doc_id)
                pending[key] = apply_update(current, data)
            else:
                pending[key] = None

        for (collection, doc_id), data in pending.items():
            if data is None:
                self._store._data.get(collection, {}).pop(doc_id, None)
            else:
                self._store._data.setdefault(collection, {})[doc_id] = data


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store.

    A single asyncio lock serialises transactions against every other
    operation, which makes each transaction atomic for cooperating tasks.
    """

    def __init__(self):
        self._data: dict[str, dict[str, Document]] = {}
        self._lock = asyncio.Lock()

    def _get_unlocked(self, collection: str, doc_id: str) -> Document | None:
        doc = self._data.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def get(self, collection: str, doc_id: str) -> Document | None:
        async with self._lock:
            return self._get_unlocked(collection, doc_id)

    async def list_documents(self, collection: str) -> list[tuple[str, Document]]:
        async with self._lock:
            return [
                (doc_id, copy.deepcopy(data))
                for doc_id, data in self._data.get(collection, {}).items()
            ]

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        async with self._lock:
            self._data.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        async with self._lock:
            current = self._data.get(collection, {}).get(doc_id)
            if current is None:
                raise DocumentNotFound(collection, doc_id)
            self._data[collection][doc_id] = apply_update(current, changes)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock:
            self._data.get(collection, {}).pop(doc_id, None)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        async with self._lock:
            tx = _InMemoryTransaction(self)
            yield tx
            tx._commit()

    def is_available(self) -> bool:
        """In-memory storage is always available."""
        return True


class _RedisTransaction(Transaction):
    def __init__(self, store: RedisDocumentStore, pipe):
        super().__init__()
        self._store = store
        self._pipe = pipe
        self._snapshot: dict[str, Document | None] = {}

    async def _watch_and_read(self, key: str) -> Document | None:
        if key not in self._snapshot:
            await self._pipe.watch(key)
            raw = await self._pipe.get(key)
            self._snapshot[key] = self._store._decode(raw)
        return copy.deepcopy(self._snapshot[key])

    async def _read(self, collection: str, doc_id: str) -> Document | None:
        return await self._watch_and_read(self._store._key(collection, doc_id))

    async def _commit(self) -> None:
        if not self._writes:
            return

        # Updates need the current body; read (and watch) anything not read yet
        pending: dict[str, Document | None] = {}
        for op, collection, doc_id, data in self._writes:
            key = self._store._key(collection, doc_id)
            if key in pending:
                current = pending[key]
            elif op == "update":
                current = await self._watch_and_read(key)
            else:
                current = None
            if op == "set":
                pending[key] = data
            elif op == "update":
                if current is None:
                    raise DocumentNotFound(collection, doc_id)
                pending[key] = apply_update(current, data)
            else:
                pending[key] = None

        self._pipe.multi()
        for key, data in pending.items():
            if data is None:
                self._pipe.delete(key)
            else:
                self._pipe.set(key, json.dumps(data))
        await self._pipe.execute()


class RedisDocumentStore(DocumentStore):
    """Redis-based document store with JSON serialization.

    Documents live under ``<prefix>:<collection>:<id>``; transactions use
    WATCH/MULTI/EXEC optimistic locking.
    """

    def __init__(self, redis_client, key_prefix: str = "docs"):
        self._redis = redis_client
        self._prefix = key_prefix
        self._available = True

    def _key(self, collection: str, doc_id: str) -> str:
        return f"{self._prefix}:{collection}:{doc_id}"

    @staticmethod
    def _decode(raw: Any) -> Document | None:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            raw = await self._redis.get(self._key(collection, doc_id))
            self._available = True
        except RedisError as e:
            self._available = False
            raise StoreUnavailable(f"Redis get failed: {e}") from e
        return self._decode(raw)

    async def list_documents(self, collection: str) -> list[tuple[str, Document]]:
        prefix = f"{self._prefix}:{collection}:"
        try:
            documents = []
            async for key in self._redis.scan_iter(match=f"{prefix}*", count=100):
                if isinstance(key, bytes):
                    key = key.decode("utf-8")
                data = self._decode(await self._redis.get(key))
                if data is not None:
                    documents.append((key[len(prefix):], data))
            self._available = True
            return documents
        except RedisError as e:
            self._available = False
            raise StoreUnavailable(f"Redis scan failed: {e}") from e

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        try:
            await self._redis.set(self._key(collection, doc_id), json.dumps(data))
            self._available = True
        except RedisError as e:
            self._available = False
            raise StoreUnavailable(f"Redis set failed: {e}") from e

    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        async def _update(tx: Transaction) -> None:
            tx.update(collection, doc_id, changes)

        await self.run_transaction(_update)

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._redis.delete(self._key(collection, doc_id))
            self._available = True
        except RedisError as e:
            self._available = False
            raise StoreUnavailable(f"Redis delete failed: {e}") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                tx = _RedisTransaction(self, pipe)
                yield tx
                await tx._commit()
            self._available = True
        except WatchError as e:
            raise TransactionConflict("Document changed during transaction") from e
        except RedisError as e:
            self._available = False
            raise StoreUnavailable(f"Redis transaction failed: {e}") from e

    def is_available(self) -> bool:
        """Check if Redis connection is healthy."""
        return self._available

    async def ping(self) -> bool:
        """Test Redis connection health."""
        try:
            await self._redis.ping()
            self._available = True
            return True
        except RedisError:
            self._available = False
            return False


# Global store instance
_store: DocumentStore | None = None


async def _detect_store_backend() -> DocumentStore:
    """Create the configured backend, falling back to in-memory."""
    config = get_config()
    if config.document_store.backend != "redis":
        logger.info("Document store: in-memory")
        return InMemoryDocumentStore()

    try:
        import redis.asyncio as redis

        if not config.redis.enabled or not config.redis.url:
            raise RuntimeError("Redis not configured")

        redis_client = redis.from_url(
            config.redis.connection_string,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=config.redis.socket_timeout,
            socket_timeout=config.redis.socket_timeout,
        )

        redis_store = RedisDocumentStore(redis_client, config.document_store.key_prefix)
        if await redis_store.ping():
            logger.info("Document store: Redis connected")
            return redis_store
        raise RuntimeError("Redis ping failed")

    except RuntimeError as e:
        if config.app.environment == "production":
            raise
        logger.warning(f"Redis unavailable ({e}), using in-memory document store")
        return InMemoryDocumentStore()


async def get_document_store() -> DocumentStore:
    """Get the configured document store instance."""
    global _store

    if _store is None:
        _store = await _detect_store_backend()

    return _store


def _reset_store() -> None:
    """Reset store instance (for testing)."""
    global _store
    _store = None
