"""
The document repository stores the entities of a polymorphic hierarchy in a single collection.

Documents of a subtype carry a discriminator field naming the subtype, documents of the supertype have none. Every
document read back is turned into an instance of the class registered for its discriminator, so one repository
returns a correctly typed mix of supertype and subtype entities.

Example:
    ```python
    driver = MemoryDriver.connect()
    repository = DocumentRepository(type_map, driver)

    book = await repository.save(PaperBook(title="Dune", isbn="9780441013593", pages=412))
    match await repository.find_by_id(book.id):
        case Optional.Some(PaperBook() as paper_book):
            print(paper_book.pages)
    ```
"""
import logging
from enum import Enum, auto
from typing import Any, Mapping, NoReturn

from tramp.optionals import Optional

from polydoc.drivers import BaseDriver, BaseDriverSession, Document
from polydoc.drivers.exceptions import DriverErrorKind
from polydoc.entity import construct_entity, entity_id
from polydoc.exceptions import (
    IllegalArgumentException,
    NotFoundException,
    UndefinedConstructorException,
    UniquenessViolationException,
    ValidationException,
)
from polydoc.repository.repository import Repository
from polydoc.schema import SaveContext, Schema
from polydoc.search_options import Pageable, SearchOptions, to_sort_spec
from polydoc.type_map import DEFAULT_TYPE, TypeData, TypeMap


logger = logging.getLogger(__name__)

_LOGICAL_OPERATORS = frozenset({"$and", "$or", "$nor"})


class FilterValidation(Enum):
    """How `find_all` checks the field names used in filters.

    - `NONE`: Any field name is passed on to the driver.
    - `SUPERTYPE`: Field names must be fields of the supertype.
    - `ALL_TYPES`: Field names must be fields of the supertype or of any registered subtype.
    """
    NONE = auto()
    SUPERTYPE = auto()
    ALL_TYPES = auto()


class DocumentRepository[T](Repository[T]):
    def __init__(
        self,
        type_map: TypeMap | Mapping[str, TypeData],
        driver: BaseDriver,
        *,
        collection_name: str | None = None,
        filter_validation: FilterValidation = FilterValidation.NONE,
    ):
        self.type_map = type_map if isinstance(type_map, TypeMap) else TypeMap(type_map)
        self.driver = driver
        self.filter_validation = filter_validation
        self.collection_name = (
            collection_name
            or self.supertype_schema.options.collection
            or self.type_map.get_supertype_name()
        )

    def __repr__(self):
        return f"{type(self).__name__}(collection_name={self.collection_name!r}, driver={self.driver!r})"

    @property
    def supertype_schema(self) -> Schema:
        return self.type_map.get_supertype_data().schema

    @property
    def discriminator_key(self) -> str:
        return self.supertype_schema.options.discriminator_key

    # ---------------------------------------- #
    # Reads                                    #
    # ---------------------------------------- #
    async def find_by_id(self, id: str, *, session: BaseDriverSession | None = None) -> Optional[T]:
        if not id:
            raise IllegalArgumentException("An id is required to find an entity")

        document = await self.driver.find_one(self.collection_name, id, session=session)
        if document is None:
            return Optional.Nothing()

        return Optional.Some(self.instantiate_from(document))

    async def find_all(
        self, options: SearchOptions | None = None, *, session: BaseDriverSession | None = None
    ) -> list[T]:
        options = options or SearchOptions()
        skip, limit = (options.pageable or Pageable()).to_skip_limit()
        sort = [(self._stored_path(field), direction) for field, direction in to_sort_spec(options.sort_by)]
        filters = self._storage_filters(options.filters)
        try:
            documents = await self.driver.fetch(
                self.collection_name, filters, sort=sort, skip=skip, limit=limit, session=session
            ).get()

        except Exception as error:
            self._raise_for_invalid_query(error)
            raise

        return [self.instantiate_from(document) for document in documents]

    async def count(self, filters: Mapping[str, Any] | None = None, *, session: BaseDriverSession | None = None) -> int:
        """Counts the entities matching the filters."""
        try:
            return await self.driver.count(self.collection_name, self._storage_filters(filters), session=session)

        except Exception as error:
            self._raise_for_invalid_query(error)
            raise

    def instantiate_from(self, document: Mapping[str, Any]) -> T:
        type_data = self._type_data_for(document)
        return construct_entity(type_data.type, type_data.schema.to_entity_data(document))

    # ---------------------------------------- #
    # Writes                                   #
    # ---------------------------------------- #
    async def save(
        self,
        entity_or_partial: T | Mapping[str, Any],
        *,
        user_id: str | None = None,
        session: BaseDriverSession | None = None,
    ) -> T:
        if not entity_or_partial:
            raise IllegalArgumentException("An entity is required to save")

        if entity_id(entity_or_partial) is None:
            return await self._insert(entity_or_partial, user_id, session)

        return await self._update(entity_or_partial, user_id, session)

    async def delete_by_id(self, id: str, *, session: BaseDriverSession | None = None) -> bool:
        if not id:
            raise IllegalArgumentException("An id is required to delete an entity")

        deleted = await self.driver.delete_one(self.collection_name, id, session=session)
        logger.debug("Deleted %r from %r: %s", id, self.collection_name, deleted)
        return deleted

    # ---------------------------------------- #
    # Schema Management                        #
    # ---------------------------------------- #
    async def apply_schema(self):
        """Creates the collection with a unique index for every field flagged `Unique` on any registered type."""
        unique_fields = dict.fromkeys(
            field for type_data in self.type_map.values() for field in type_data.schema.unique_fields()
        )
        await self.driver.apply_schema(self.collection_name, tuple(unique_fields))

    async def delete_schema(self):
        await self.driver.delete_schema(self.collection_name)

    # ---------------------------------------- #
    # Insert & Update                          #
    # ---------------------------------------- #
    async def _insert(self, obj: T | Mapping[str, Any], user_id: str | None, session: BaseDriverSession | None) -> T:
        discriminator = self._discriminator_for_new(obj)
        schema = self.type_map[discriminator or DEFAULT_TYPE].schema
        document = schema.to_document(obj)
        if discriminator:
            document[self.discriminator_key] = discriminator

        schema.run_pre_save(document, SaveContext(is_new=True, user_id=user_id))
        self._validate(schema, document)
        try:
            id = await self.driver.insert_one(self.collection_name, document, session=session)

        except Exception as error:
            self._raise_for_duplicate_key(error, schema)
            raise

        logger.debug("Inserted %r into %r as %s", id, self.collection_name, discriminator or DEFAULT_TYPE)
        return self.instantiate_from(document | {"_id": id})

    async def _update(self, obj: T | Mapping[str, Any], user_id: str | None, session: BaseDriverSession | None) -> T:
        id = entity_id(obj)
        existing = await self.driver.find_one(self.collection_name, id, session=session)
        if existing is None:
            raise NotFoundException(f"There is no {self.type_map.get_supertype_name()} with the id {id!r}")

        schema = self._type_data_for(existing).schema
        document = existing | schema.to_document(obj, partial=True)
        schema.run_pre_save(document, SaveContext(is_new=False, user_id=user_id))
        self._validate(schema, document)
        try:
            replaced = await self.driver.replace_one(self.collection_name, existing["_id"], document, session=session)

        except Exception as error:
            self._raise_for_duplicate_key(error, schema)
            raise

        if not replaced:
            raise NotFoundException(f"The {self.type_map.get_supertype_name()} with the id {id!r} was deleted")

        logger.debug("Updated %r in %r", id, self.collection_name)
        return self.instantiate_from(document)

    def _discriminator_for_new(self, obj: T | Mapping[str, Any]) -> str | None:
        if not isinstance(obj, Mapping):
            return self.type_map.discriminator_for(type(obj))

        name = obj.get(self.discriminator_key)
        if name is None or name in (DEFAULT_TYPE, self.type_map.get_supertype_name()):
            return None

        if not self.type_map.has(name):
            raise IllegalArgumentException(f"The type {name!r} is not registered with the type map")

        return name

    def _type_data_for(self, document: Mapping[str, Any]) -> TypeData:
        name = document.get(self.discriminator_key)
        if name is None or name == self.type_map.get_supertype_name():
            return self.type_map.get_supertype_data()

        if type_data := self.type_map.get(name):
            return type_data

        raise UndefinedConstructorException(
            f"No constructor is registered for the type {name!r} of the document {document.get('_id')!r} in "
            f"{self.collection_name!r}"
        )

    @staticmethod
    def _validate(schema: Schema, document: Document):
        if violations := schema.validate(document):
            raise ValidationException(
                f"Invalid fields: {', '.join(dict.fromkeys(violation.field for violation in violations))}",
                violations,
            )

    # ---------------------------------------- #
    # Error Translation                        #
    # ---------------------------------------- #
    def _raise_for_duplicate_key(self, error: Exception, schema: Schema) -> None | NoReturn:
        info = self.driver.classify_error(error)
        if info.kind is DriverErrorKind.DUPLICATE_KEY:
            fields = tuple(schema.attribute_name(field) or field for field in info.fields)
            raise UniquenessViolationException(
                f"Values already in use: {', '.join(fields) or 'unknown field'}", fields
            ) from error

    def _raise_for_invalid_query(self, error: Exception) -> None | NoReturn:
        if self.driver.classify_error(error).kind is DriverErrorKind.INVALID_QUERY:
            raise IllegalArgumentException(f"Invalid query: {error}") from error

    # ---------------------------------------- #
    # Filters                                  #
    # ---------------------------------------- #
    def _storage_filters(self, filters: Mapping[str, Any] | None) -> Document | None:
        """Translates the attribute names of a filter to stored names, checking them as `filter_validation`
        requires."""
        if not filters:
            return None

        translated = {}
        for key, condition in filters.items():
            if key in _LOGICAL_OPERATORS and isinstance(condition, list):
                translated[key] = [self._storage_filters(clause) or {} for clause in condition]

            elif key.startswith("$"):
                translated[key] = condition

            else:
                self._check_filter_field(key)
                translated[self._stored_path(key)] = condition

        return translated

    def _stored_path(self, path: str) -> str:
        name, _, rest = path.partition(".")
        if name in ("id", "_id"):
            stored = "_id"
        else:
            stored = next(
                (
                    type_data.schema.stored_name(name)
                    for type_data in self.type_map.values()
                    if name in type_data.schema.fields
                ),
                name,
            )

        return f"{stored}.{rest}" if rest else stored

    def _check_filter_field(self, path: str):
        name = path.partition(".")[0]
        if self.filter_validation is FilterValidation.NONE or name in ("id", "_id", self.discriminator_key):
            return

        schemas = (
            [self.supertype_schema]
            if self.filter_validation is FilterValidation.SUPERTYPE
            else [type_data.schema for type_data in self.type_map.values()]
        )
        if not any(schema.has_field(name) for schema in schemas):
            raise IllegalArgumentException(f"Cannot filter on {name!r}, it is not a field of the queried types")
