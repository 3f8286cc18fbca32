import logging

from polydoc.drivers.exceptions import TransactionError
from polydoc.drivers.sessions import BaseDriverSession
from polydoc.ext.drivers.memory.store import MemoryStore, MemoryTransaction


logger = logging.getLogger(__name__)


class MemorySession(BaseDriverSession):
    def __init__(self, store: MemoryStore):
        self._store = store
        self._transaction: MemoryTransaction | None = None
        self.ended = False

    @property
    def transaction(self) -> MemoryTransaction | None:
        """The active transaction, `None` outside of a transaction."""
        return self._transaction if self.in_transaction else None

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.active

    def start_transaction(self):
        if self.ended:
            raise TransactionError("Cannot start a transaction on an ended session")

        if self.in_transaction:
            raise TransactionError("Transaction is already open.")

        self._transaction = self._store.begin()
        logger.debug("Started memory transaction at clock %d", self._transaction.start_clock)

    async def commit_transaction(self):
        if not self.in_transaction:
            raise TransactionError("No active transaction to commit.")

        self._store.commit(self._transaction)
        logger.debug("Committed memory transaction, clock is now %d", self._store.clock)

    async def abort_transaction(self):
        if not self.in_transaction:
            raise TransactionError("No active transaction to abort.")

        self._store.release(self._transaction)
        logger.debug("Aborted memory transaction")

    async def end_session(self):
        if self.in_transaction:
            await self.abort_transaction()

        self.ended = True
