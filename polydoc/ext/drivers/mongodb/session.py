import logging

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo.errors import PyMongoError

from polydoc.drivers.exceptions import TransactionError
from polydoc.drivers.sessions import BaseDriverSession


logger = logging.getLogger(__name__)


class MongoDBSession(BaseDriverSession):
    """Wraps a Motor client session. Note that MongoDB transactions require a replica set or a sharded cluster."""

    def __init__(self, session: AsyncIOMotorClientSession):
        self.session = session

    @property
    def in_transaction(self) -> bool:
        return self.session.in_transaction

    def start_transaction(self):
        if self.session.in_transaction:
            raise TransactionError("Transaction is already open.")

        self.session.start_transaction()

    async def commit_transaction(self):
        if not self.session.in_transaction:
            raise TransactionError("No active transaction to commit.")

        await self.session.commit_transaction()

    async def abort_transaction(self):
        if not self.session.in_transaction:
            raise TransactionError("No active transaction to abort.")

        await self.session.abort_transaction()

    async def end_session(self):
        try:
            if self.session.in_transaction:
                await self.session.abort_transaction()

        except PyMongoError as error:
            logger.warning("Failed to abort the transaction while ending the session: %s", error)

        finally:
            await self.session.end_session()
