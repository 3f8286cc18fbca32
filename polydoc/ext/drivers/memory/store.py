"""A transactional document store held in process memory.

Committed documents are kept per collection in insertion order together with the clock tick of their last write.
Transactions buffer their writes and apply them on commit. Every document a transaction writes is locked until the
transaction ends. A transaction writing a document that another open transaction has locked, or that was committed
after the transaction started, fails with a `WriteConflictError`, as does a write outside of a transaction to a
locked document. Conflicts are transient, retrying the whole transaction is safe."""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from bson import ObjectId

from polydoc.drivers.exceptions import DuplicateKeyError, TransactionError, WriteConflictError
from polydoc.ext.drivers.memory import query


logger = logging.getLogger(__name__)

type Document = dict[str, Any]
type DocumentKey = tuple[str, Any]

_DELETED = None


@dataclass
class StoredDocument:
    document: Document
    version: int


@dataclass
class MemoryTransaction:
    start_clock: int
    writes: dict[DocumentKey, Document | None] = field(default_factory=dict)
    active: bool = True


class MemoryStore:
    def __init__(self):
        self.clock = 0
        self._collections: dict[str, dict[Any, StoredDocument]] = {}
        self._unique_indexes: dict[str, tuple[str, ...]] = {}
        self._locks: dict[DocumentKey, MemoryTransaction] = {}

    # ---------------------------------------- #
    # Transactions                             #
    # ---------------------------------------- #
    def begin(self) -> MemoryTransaction:
        return MemoryTransaction(self.clock)

    def commit(self, transaction: MemoryTransaction):
        if not transaction.active:
            raise TransactionError("The transaction is no longer active")

        try:
            # Checked against the state after this commit, the transaction's own deletes and updates included
            for (collection, id), document in transaction.writes.items():
                if document is not _DELETED:
                    self._check_unique(collection, id, document, self._visible(collection, transaction))

            self.clock += 1
            for (collection, id), document in transaction.writes.items():
                if document is _DELETED:
                    self._collections.get(collection, {}).pop(id, None)
                else:
                    self._collections.setdefault(collection, {})[id] = StoredDocument(document, self.clock)

        finally:
            self.release(transaction)

    def release(self, transaction: MemoryTransaction):
        """Ends a transaction without applying its writes."""
        transaction.active = False
        for key in transaction.writes:
            if self._locks.get(key) is transaction:
                del self._locks[key]

    # ---------------------------------------- #
    # Reads                                    #
    # ---------------------------------------- #
    def find(self, collection: str, filters: Document | None = None, transaction: MemoryTransaction | None = None):
        """Returns copies of the documents visible to the transaction that match the filters, in insertion order."""
        return [
            copy.deepcopy(document)
            for document in self._visible(collection, transaction).values()
            if query.matches(document, filters)
        ]

    def get(self, collection: str, id: Any, transaction: MemoryTransaction | None = None) -> Document | None:
        document = self._visible(collection, transaction).get(id)
        return copy.deepcopy(document) if document is not None else None

    # ---------------------------------------- #
    # Writes                                   #
    # ---------------------------------------- #
    def insert(self, collection: str, document: Document, transaction: MemoryTransaction | None = None) -> Any:
        document = copy.deepcopy(document)
        id = document.setdefault("_id", ObjectId())
        if id in self._visible(collection, transaction):
            raise DuplicateKeyError(f"Duplicate _id {id!r} in {collection!r}", fields=("_id",))

        self._write(collection, id, document, transaction)
        return id

    def replace(
        self, collection: str, id: Any, document: Document, transaction: MemoryTransaction | None = None
    ) -> bool:
        if id not in self._visible(collection, transaction):
            return False

        document = copy.deepcopy(document)
        document["_id"] = id
        self._write(collection, id, document, transaction)
        return True

    def delete(self, collection: str, ids: Iterable[Any], transaction: MemoryTransaction | None = None) -> int:
        visible = self._visible(collection, transaction)
        deleted = 0
        for id in ids:
            if id in visible:
                self._write(collection, id, _DELETED, transaction)
                deleted += 1

        return deleted

    # ---------------------------------------- #
    # Indexes                                  #
    # ---------------------------------------- #
    def create_collection(self, collection: str, unique_fields: Iterable[str] = ()):
        self._collections.setdefault(collection, {})
        fields = tuple(dict.fromkeys((*self._unique_indexes.get(collection, ()), *unique_fields)))
        for stored in self._collections[collection].values():
            self._check_unique(
                collection, stored.document.get("_id"), stored.document, self._committed_view(collection), fields
            )

        self._unique_indexes[collection] = fields

    def unique_fields(self, collection: str) -> tuple[str, ...]:
        return self._unique_indexes.get(collection, ())

    def drop_collection(self, collection: str):
        self._collections.pop(collection, None)
        self._unique_indexes.pop(collection, None)

    # ---------------------------------------- #
    # Internals                                #
    # ---------------------------------------- #
    def _write(self, collection: str, id: Any, document: Document | None, transaction: MemoryTransaction | None):
        key = (collection, id)
        owner = self._locks.get(key)
        if owner is not None and owner is not transaction:
            raise WriteConflictError(f"Document {id!r} in {collection!r} is being written by another transaction")

        if document is not _DELETED:
            self._check_unique(collection, id, document, self._visible(collection, transaction))

        if transaction is None:
            self.clock += 1
            if document is _DELETED:
                self._collections.get(collection, {}).pop(id, None)
            else:
                self._collections.setdefault(collection, {})[id] = StoredDocument(document, self.clock)

            return

        if not transaction.active:
            raise TransactionError("The transaction is no longer active")

        stored = self._collections.get(collection, {}).get(id)
        if stored and stored.version > transaction.start_clock:
            raise WriteConflictError(f"Document {id!r} in {collection!r} changed after the transaction started")

        self._locks[key] = transaction
        transaction.writes[key] = document

    def _committed_view(self, collection: str) -> dict[Any, Document]:
        return {id: stored.document for id, stored in self._collections.get(collection, {}).items()}

    def _visible(self, collection: str, transaction: MemoryTransaction | None) -> dict[Any, Document]:
        view = self._committed_view(collection)
        if transaction is None:
            return view

        for (write_collection, id), document in transaction.writes.items():
            if write_collection != collection:
                continue

            if document is _DELETED:
                view.pop(id, None)
            else:
                view[id] = document

        return view

    def _check_unique(
        self,
        collection: str,
        id: Any,
        document: Document,
        view: dict[Any, Document],
        fields: Iterable[str] | None = None,
    ):
        for field_name in self._unique_indexes.get(collection, ()) if fields is None else fields:
            value = query.resolve(document, field_name)
            if not value or value[0] is None:
                continue

            if any(
                other_id != id and query.resolve(other, field_name)[:1] == value[:1]
                for other_id, other in view.items()
            ):
                logger.debug("Duplicate value for unique field %r in %r", field_name, collection)
                raise DuplicateKeyError(
                    f"Duplicate value for unique field {field_name!r} in {collection!r}", fields=(field_name,)
                )
