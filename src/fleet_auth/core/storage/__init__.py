"""Document storage backends."""

from .document_store import (
    DELETE_FIELD,
    DocumentNotFound,
    DocumentStore,
    InMemoryDocumentStore,
    RedisDocumentStore,
    StoreUnavailable,
    Transaction,
    TransactionConflict,
    get_document_store,
)

__all__ = [
    "DELETE_FIELD",
    "DocumentNotFound",
    "DocumentStore",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
    "StoreUnavailable",
    "Transaction",
    "TransactionConflict",
    "get_document_store",
]
