"""Drivers are the interface between polydoc and the document database. They are responsible for connecting to the
database, opening sessions, and executing single-collection document operations. Each driver must implement the
BaseDriver interface, which defines the methods that repositories use to interact with the database.

Drivers work with stored documents (plain dicts keyed by stored field names) and never with entities. They should
avoid over engineering and allow exceptions to bubble up to the caller. Instead of translating every error, a driver
classifies the errors it raises through `classify_error`, which gives repositories and the transaction runner a
structured way to recognise duplicate keys and transient transaction conflicts without inspecting error messages."""
from abc import ABC, abstractmethod
from typing import Any, Iterable, TYPE_CHECKING

from polydoc.drivers.exceptions import DriverErrorInfo, DriverErrorKind

if TYPE_CHECKING:
    from polydoc.drivers.sessions import BaseDriverSession
    from tramp.async_batch_iterator import AsyncBatchIterator


type Document = dict[str, Any]
type SortSpec = list[tuple[str, int]]


class BaseDriver(ABC):
    # ---------------------------------------- #
    # Connection Management                    #
    # ---------------------------------------- #
    @classmethod
    @abstractmethod
    def connect(cls, settings: Any | None = None) -> "BaseDriver":
        """Connects to the database."""
        ...

    @abstractmethod
    async def disconnect(self):
        """Disconnects from the database."""
        ...

    # ---------------------------------------- #
    # Session Management                       #
    # ---------------------------------------- #
    @abstractmethod
    async def start_session(self) -> "BaseDriverSession":
        """Starts a new session. Transactions are started on the returned session."""
        ...

    # ---------------------------------------- #
    # Document Operations                      #
    # ---------------------------------------- #
    @abstractmethod
    async def insert_one(
        self, collection: str, document: Document, *, session: "BaseDriverSession | None" = None
    ) -> Any:
        """Inserts a document and returns the storage id assigned to it."""
        ...

    @abstractmethod
    async def find_one(
        self, collection: str, id: Any, *, session: "BaseDriverSession | None" = None
    ) -> Document | None:
        """Finds the document stored with the given id, `None` if there is none."""
        ...

    @abstractmethod
    def fetch(
        self,
        collection: str,
        filters: Document | None = None,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
        session: "BaseDriverSession | None" = None,
    ) -> "AsyncBatchIterator[Document]":
        """Fetches all documents matching the filters and returns them using an AsyncBatchIterator. A limit of zero
        means no limit."""
        ...

    @abstractmethod
    async def count(
        self, collection: str, filters: Document | None = None, *, session: "BaseDriverSession | None" = None
    ) -> int:
        """Counts the documents matching the filters."""
        ...

    @abstractmethod
    async def replace_one(
        self, collection: str, id: Any, document: Document, *, session: "BaseDriverSession | None" = None
    ) -> bool:
        """Replaces the document stored with the given id. Returns `False` if no document matched."""
        ...

    @abstractmethod
    async def delete_one(self, collection: str, id: Any, *, session: "BaseDriverSession | None" = None) -> bool:
        """Deletes the document stored with the given id. Returns `True` iff a document was removed."""
        ...

    @abstractmethod
    async def delete_many(
        self, collection: str, filters: Document | None = None, *, session: "BaseDriverSession | None" = None
    ) -> int:
        """Deletes every document matching the filters and returns how many were removed."""
        ...

    # ---------------------------------------- #
    # Schema Management                        #
    # ---------------------------------------- #
    @abstractmethod
    async def apply_schema(self, collection: str, unique_fields: Iterable[str] = ()):
        """Creates the collection and a unique index for each of the given stored field names."""
        ...

    @abstractmethod
    async def delete_schema(self, collection: str):
        """Drops the collection and its indexes."""
        ...

    # ---------------------------------------- #
    # Error Classification                     #
    # ---------------------------------------- #
    @abstractmethod
    def classify_error(self, error: BaseException) -> DriverErrorInfo:
        """Classifies an error raised by one of this driver's operations."""
        ...

    def is_duplicate_key(self, error: BaseException) -> bool:
        return self.classify_error(error).kind is DriverErrorKind.DUPLICATE_KEY

    def is_transient_conflict(self, error: BaseException) -> bool:
        return self.classify_error(error).kind is DriverErrorKind.TRANSIENT_CONFLICT

    # ---------------------------------------- #
    # Context Management                       #
    # ---------------------------------------- #
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
