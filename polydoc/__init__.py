"""polydoc Package.

polydoc is an asynchronous object document mapping layer for storing polymorphic entity hierarchies in a document
database. It provides:

-   **Type Registry**: A `TypeMap` maps discriminator values to the entity class and schema used for documents of
    that type, with a mandatory `"Default"` entry for the supertype.
-   **Schema Composition**: Immutable schemas built from field metadata or `Annotated` type hints and composed with
    `extend_schema`.
-   **Repositories**: `DocumentRepository` finds, saves and deletes entities of a whole hierarchy in one collection
    and returns each document as an instance of its registered class. `TransactionalRepository` adds atomic batch
    saves and deletes.
-   **Transactions**: `run_in_transaction` runs work in a transaction, retrying transient conflicts a bounded number
    of times.
-   **Drivers**: A MongoDB driver built on Motor and an in-memory driver with the same transactional behaviour.

Note:
This `__init__.py` file uses a custom `__getattr__` to enable lazy loading of submodules and specific symbols,
improving import times and avoiding circular import issues.
"""
import importlib
import pkgutil
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from polydoc.audit import AuditableEntity, AuditableSchema, is_auditable
    from polydoc.drivers import BaseDriver, BaseDriverSession
    from polydoc.entity import Entity
    from polydoc.exceptions import (
        IllegalArgumentException,
        NotFoundException,
        PolydocException,
        UndefinedConstructorException,
        UniquenessViolationException,
        ValidationException,
    )
    from polydoc.repository import DocumentRepository, FilterValidation, TransactionalRepository
    from polydoc.schema import (
        BaseSchema,
        Default,
        FieldType,
        Required,
        Schema,
        SchemaOptions,
        SchemaPlugin,
        StoreAs,
        Unique,
        extend_schema,
    )
    from polydoc.search_options import Pageable, SearchOptions, SortDirection
    from polydoc.transaction import MAX_TRANSACTION_RETRIES, run_in_transaction
    from polydoc.type_map import DomainModel, TypeData, TypeMap

__lookup = {
    "AuditableEntity": "polydoc.audit",
    "AuditableSchema": "polydoc.audit",
    "is_auditable": "polydoc.audit",
    "BaseDriver": "polydoc.drivers",
    "BaseDriverSession": "polydoc.drivers",
    "Entity": "polydoc.entity",
    "IllegalArgumentException": "polydoc.exceptions",
    "NotFoundException": "polydoc.exceptions",
    "PolydocException": "polydoc.exceptions",
    "UndefinedConstructorException": "polydoc.exceptions",
    "UniquenessViolationException": "polydoc.exceptions",
    "ValidationException": "polydoc.exceptions",
    "DocumentRepository": "polydoc.repository",
    "FilterValidation": "polydoc.repository",
    "TransactionalRepository": "polydoc.repository",
    "BaseSchema": "polydoc.schema",
    "Default": "polydoc.schema",
    "FieldType": "polydoc.schema",
    "Required": "polydoc.schema",
    "Schema": "polydoc.schema",
    "SchemaOptions": "polydoc.schema",
    "SchemaPlugin": "polydoc.schema",
    "StoreAs": "polydoc.schema",
    "Unique": "polydoc.schema",
    "extend_schema": "polydoc.schema",
    "Pageable": "polydoc.search_options",
    "SearchOptions": "polydoc.search_options",
    "SortDirection": "polydoc.search_options",
    "MAX_TRANSACTION_RETRIES": "polydoc.transaction",
    "run_in_transaction": "polydoc.transaction",
    "DomainModel": "polydoc.type_map",
    "TypeData": "polydoc.type_map",
    "TypeMap": "polydoc.type_map",
}


__all__ = list(__lookup.keys())

_submodules = frozenset(module.name for module in pkgutil.iter_modules(__path__) if not module.name.startswith("_"))


def __getattr__(name):
    """Resolves exported names and submodules on first access and caches them on the package.

    Raises:
        ImportError: An exported name's module failed to import.
        AttributeError: The name is neither exported nor a submodule.
    """
    if module_name := __lookup.get(name):
        try:
            value = getattr(importlib.import_module(module_name), name)
        except Exception as error:
            raise ImportError(f"Cannot import {name!r} from {module_name!r}: {error}") from error

    elif name in _submodules:
        value = importlib.import_module(f"{__name__}.{name}")

    else:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    globals()[name] = value
    return value


def __dir__():
    return sorted({*globals(), *__all__, *_submodules})
