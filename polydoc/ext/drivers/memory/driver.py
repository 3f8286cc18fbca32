import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from tramp.async_batch_iterator import AsyncBatchIterator

from polydoc.drivers import BaseDriver, BaseDriverSession, Document, SortSpec
from polydoc.drivers.ids import storage_filters, to_storage_id
from polydoc.drivers.exceptions import (
    DriverErrorInfo,
    DriverErrorKind,
    DriverOperationError,
    DuplicateKeyError,
    InvalidQueryError,
    TransactionError,
    UNCLASSIFIED,
    WriteConflictError,
)
from polydoc.ext.drivers.memory import query
from polydoc.ext.drivers.memory.session import MemorySession
from polydoc.ext.drivers.memory.store import MemoryStore, MemoryTransaction


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class MemorySettings:
    """Configuration settings for the in-memory driver.

    Attributes:
        database_name: Names the store in logs and reprs (default: "polydoc")
    """
    database_name: str = "polydoc"


class MemoryDriver(BaseDriver):
    """A driver that keeps every document in process memory.

    The memory driver implements the full driver interface, including transactions with write conflict detection and
    unique indexes, so repositories can be exercised without a database server. Every driver owns its own store,
    nothing is shared between driver instances.
    """
    def __init__(self, store: MemoryStore, database_name: str):
        super().__init__()
        self.store = store
        self.database_name = database_name
        self.connected = True

    def __repr__(self):
        return f"{type(self).__name__}(database_name={self.database_name!r})"

    @classmethod
    def connect(cls, settings: MemorySettings | None = None) -> "MemoryDriver":
        _settings = settings or MemorySettings()
        return cls(MemoryStore(), _settings.database_name)

    async def disconnect(self):
        self.connected = False

    async def start_session(self) -> MemorySession:
        self._ensure_connected()
        return MemorySession(self.store)

    # ---------------------------------------- #
    # Document Operations                      #
    # ---------------------------------------- #
    async def insert_one(self, collection: str, document: Document, *, session: MemorySession | None = None) -> Any:
        await self._yield()
        return self.store.insert(collection, document, self._transaction(session))

    async def find_one(self, collection: str, id: Any, *, session: MemorySession | None = None) -> Document | None:
        await self._yield()
        return self.store.get(collection, to_storage_id(id), self._transaction(session))

    def fetch(
        self,
        collection: str,
        filters: Document | None = None,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
        session: MemorySession | None = None,
    ) -> AsyncBatchIterator[Document]:
        async def fetch_batch(batch_index: int) -> list[Document]:
            await self._yield()
            documents = query.sort_documents(
                self.store.find(collection, storage_filters(filters), self._transaction(session)), sort
            )
            end = skip + limit if limit else len(documents)
            start = skip + batch_index * DEFAULT_BATCH_SIZE
            return documents[start:min(start + DEFAULT_BATCH_SIZE, end)]

        return AsyncBatchIterator(fetch_batch)

    async def count(self, collection: str, filters: Document | None = None, *, session: MemorySession | None = None):
        await self._yield()
        return len(self.store.find(collection, storage_filters(filters), self._transaction(session)))

    async def replace_one(
        self, collection: str, id: Any, document: Document, *, session: MemorySession | None = None
    ) -> bool:
        await self._yield()
        return self.store.replace(collection, to_storage_id(id), document, self._transaction(session))

    async def delete_one(self, collection: str, id: Any, *, session: MemorySession | None = None) -> bool:
        await self._yield()
        return self.store.delete(collection, [to_storage_id(id)], self._transaction(session)) == 1

    async def delete_many(
        self, collection: str, filters: Document | None = None, *, session: MemorySession | None = None
    ) -> int:
        await self._yield()
        transaction = self._transaction(session)
        matching = self.store.find(collection, storage_filters(filters), transaction)
        return self.store.delete(collection, [document["_id"] for document in matching], transaction)

    # ---------------------------------------- #
    # Schema Management                        #
    # ---------------------------------------- #
    async def apply_schema(self, collection: str, unique_fields: Iterable[str] = ()):
        self._ensure_connected()
        self.store.create_collection(collection, unique_fields)
        logger.debug("Applied schema to %r (unique fields: %r)", collection, self.store.unique_fields(collection))

    async def delete_schema(self, collection: str):
        self._ensure_connected()
        self.store.drop_collection(collection)
        logger.debug("Dropped collection %r", collection)

    # ---------------------------------------- #
    # Error Classification                     #
    # ---------------------------------------- #
    def classify_error(self, error: BaseException) -> DriverErrorInfo:
        match error:
            case DuplicateKeyError(fields=fields):
                return DriverErrorInfo(DriverErrorKind.DUPLICATE_KEY, fields)

            case WriteConflictError():
                return DriverErrorInfo(DriverErrorKind.TRANSIENT_CONFLICT)

            case InvalidQueryError():
                return DriverErrorInfo(DriverErrorKind.INVALID_QUERY)

            case _:
                return UNCLASSIFIED

    # ---------------------------------------- #
    # Helpers                                  #
    # ---------------------------------------- #
    def _transaction(self, session: BaseDriverSession | None) -> MemoryTransaction | None:
        if session is None:
            return None

        if not isinstance(session, MemorySession):
            raise TransactionError(f"{self!r} cannot use the session {session!r}", driver=self)

        if session.ended:
            raise TransactionError("Cannot use an ended session", driver=self)

        return session.transaction

    def _ensure_connected(self):
        if not self.connected:
            raise DriverOperationError("The driver has been disconnected", driver=self)

    async def _yield(self):
        """Hands control back to the event loop the way a network round trip would, so concurrent operations
        interleave."""
        self._ensure_connected()
        await asyncio.sleep(0)

