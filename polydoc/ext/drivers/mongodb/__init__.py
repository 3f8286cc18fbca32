"""MongoDB driver implementation for polydoc.

This module provides a MongoDB driver built on Motor. It stores documents in MongoDB collections, creates sparse
unique indexes for unique schema fields and supports multi-document transactions. Transient transaction conflicts are
recognised from the `TransientTransactionError` label MongoDB attaches to retryable errors.

Example:
    ```python
    from polydoc.ext.drivers.mongodb import MongoDBDriver, MongoDBSettings

    settings = MongoDBSettings(
        host="localhost",
        port=27017,
        database_name="library",
        username="mongo_user",  # Optional
        password="secure_password",  # Optional
        connection_options={"replicaSet": "rs0"},  # Transactions require a replica set
    )

    async with MongoDBDriver.connect(settings) as driver:
        repository = TransactionalRepository(type_map, driver)
        await repository.apply_schema()
        books = await repository.save_all([Book(title="Dune", isbn="9780441013593")])
    ```
"""

from .driver import MongoDBDriver, MongoDBSettings
from .session import MongoDBSession


__all__ = ["MongoDBDriver", "MongoDBSession", "MongoDBSettings"]
