import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

import motor.motor_asyncio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession, AsyncIOMotorDatabase
from tramp.async_batch_iterator import AsyncBatchIterator

from polydoc.drivers import BaseDriver, BaseDriverSession, Document, SortSpec
from polydoc.drivers.exceptions import DriverConnectFailed, DriverErrorInfo, TransactionError
from polydoc.drivers.ids import storage_filters, to_storage_id
from polydoc.ext.drivers.mongodb.session import MongoDBSession

import polydoc.ext.drivers.mongodb.mongodb_errors as mongodb_errors
import polydoc.ext.drivers.mongodb.mongodb_fetch as mongodb_fetch
import polydoc.ext.drivers.mongodb.mongodb_schema as mongodb_schema


logger = logging.getLogger(__name__)


@dataclass
class MongoDBSettings:
    """Configuration settings for MongoDB database connections.

    This class defines the settings needed to establish and configure a connection
    to a MongoDB database server.

    Attributes:
        host: Hostname or IP address of the MongoDB server (default: "localhost")
        port: Port number the MongoDB server is listening on (default: 27017)
        database_name: Name of the database to connect to (default: "polydoc")
        username: Optional username for authentication
        password: Optional password for authentication
        authSource: Authentication database name (default: "admin")
        timeout: Server selection timeout in milliseconds (default: 20000)
        uri: Optional connection string. When set it is used instead of the host and port.
        connection_options: Additional connection options to pass to the MongoDB client.
            Example: {"replicaSet": "rs0"}
    """
    host: str = "localhost"
    port: int = 27017
    database_name: str = "polydoc"
    username: str | None = None
    password: str | None = None
    authSource: str | None = "admin"
    timeout: int = 20000
    uri: str | None = None
    connection_options: dict[str, Any] = field(default_factory=dict)


class MongoDBDriver(BaseDriver):
    """MongoDB database driver implementation for polydoc.

    This driver stores documents in MongoDB using the Motor library to provide full
    asynchronous support for all database operations. Public string ids are converted
    to ObjectIds before they reach the database.

    Attributes:
        client: The underlying AsyncIOMotorClient instance
        db: The AsyncIOMotorDatabase instance for the specified database
    """
    def __init__(self, client: AsyncIOMotorClient, database_name: str):
        """Initialize a new MongoDBDriver.

        Args:
            client: An established MongoDB client connection
            database_name: Name of the database to use
        """
        super().__init__()
        self.client: AsyncIOMotorClient = client
        self.db: AsyncIOMotorDatabase = client[database_name]
        self._database_name: str = database_name

    def __repr__(self):
        return f"{type(self).__name__}(database_name={self._database_name!r})"

    @classmethod
    def connect(cls, settings: MongoDBSettings | None = None) -> "MongoDBDriver":
        """Create a new MongoDB database connection.

        Motor connects lazily, operations fail later if the server is unavailable.

        Args:
            settings: Optional configuration settings for the connection. If omitted, defaults to a local MongoDB
                server with the database name "polydoc".

        Returns:
            A new MongoDBDriver instance

        Raises:
            DriverConnectFailed: If the client cannot be initialized
        """
        _settings = settings or MongoDBSettings()
        try:
            if _settings.uri:
                client = motor.motor_asyncio.AsyncIOMotorClient(
                    _settings.uri,
                    serverSelectionTimeoutMS=_settings.timeout,
                    **_settings.connection_options,
                )
            else:
                client = motor.motor_asyncio.AsyncIOMotorClient(
                    host=_settings.host,
                    port=_settings.port,
                    username=_settings.username,
                    password=_settings.password,
                    authSource=_settings.authSource,
                    serverSelectionTimeoutMS=_settings.timeout,
                    **_settings.connection_options,
                )

            return cls(client, _settings.database_name)

        except Exception as error:
            raise DriverConnectFailed(f"Failed to initialize MongoDB client: {error}", driver=cls) from error

    async def disconnect(self):
        self.client.close()

    async def start_session(self) -> MongoDBSession:
        return MongoDBSession(await self.client.start_session())

    # ---------------------------------------- #
    # Document Operations                      #
    # ---------------------------------------- #
    async def insert_one(self, collection: str, document: Document, *, session: BaseDriverSession | None = None):
        result = await self.db[collection].insert_one(dict(document), session=self._session(session))
        return result.inserted_id

    async def find_one(
        self, collection: str, id: Any, *, session: BaseDriverSession | None = None
    ) -> Document | None:
        return await self.db[collection].find_one({"_id": to_storage_id(id)}, session=self._session(session))

    def fetch(
        self,
        collection: str,
        filters: Document | None = None,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
        session: BaseDriverSession | None = None,
    ) -> AsyncBatchIterator[Document]:
        return mongodb_fetch.fetch_documents(
            self.db, collection, filters, sort=sort, skip=skip, limit=limit, session=self._session(session)
        )

    async def count(
        self, collection: str, filters: Document | None = None, *, session: BaseDriverSession | None = None
    ) -> int:
        return await mongodb_fetch.count_documents(self.db, collection, filters, self._session(session))

    async def replace_one(
        self, collection: str, id: Any, document: Document, *, session: BaseDriverSession | None = None
    ) -> bool:
        replacement = {key: value for key, value in document.items() if key != "_id"}
        result = await self.db[collection].replace_one(
            {"_id": to_storage_id(id)}, replacement, session=self._session(session)
        )
        return result.matched_count == 1

    async def delete_one(self, collection: str, id: Any, *, session: BaseDriverSession | None = None) -> bool:
        result = await self.db[collection].delete_one({"_id": to_storage_id(id)}, session=self._session(session))
        return result.deleted_count == 1

    async def delete_many(
        self, collection: str, filters: Document | None = None, *, session: BaseDriverSession | None = None
    ) -> int:
        result = await self.db[collection].delete_many(storage_filters(filters) or {}, session=self._session(session))
        return result.deleted_count

    # ---------------------------------------- #
    # Schema Management                        #
    # ---------------------------------------- #
    async def apply_schema(self, collection: str, unique_fields: Iterable[str] = ()):
        await mongodb_schema.apply_schema(self.db, collection, unique_fields)
        logger.debug("Applied schema to %r", collection)

    async def delete_schema(self, collection: str):
        await mongodb_schema.delete_schema(self.db, collection)
        logger.debug("Dropped collection %r", collection)

    # ---------------------------------------- #
    # Error Classification                     #
    # ---------------------------------------- #
    def classify_error(self, error: BaseException) -> DriverErrorInfo:
        return mongodb_errors.classify_error(error)

    def _session(self, session: BaseDriverSession | None) -> AsyncIOMotorClientSession | None:
        if session is None:
            return None

        if not isinstance(session, MongoDBSession):
            raise TransactionError(f"{self!r} cannot use the session {session!r}", driver=self)

        return session.session
