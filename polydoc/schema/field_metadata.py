"""
Field Metadata Types for Setting Properties of Schema Fields

This module defines the types that are used to store metadata about schema fields. The metadata can be given directly
to a `Schema` or stored as a typing.Annotated type annotation on an entity class. Helper methods are provided for
creating custom field metadata types.

Field metadata is used by schemas to describe:

- Required and unique fields
- The Python type a stored value must have
- Custom storage names and default values

Example:
    ```python
    from dataclasses import dataclass
    from typing import Annotated
    from polydoc import Entity, Required, StoreAs, Unique

    @dataclass(frozen=True, kw_only=True)
    class Book(Entity):
        title: Annotated[str, Required]
        isbn: Annotated[str, Required | Unique]
        pages: Annotated[int, StoreAs("page_count")] = 0
    ```
"""


from collections import ChainMap
from typing import Any, TypeVar, Type, cast, MutableMapping
from tramp.optionals import Optional, Some, Nothing
from itertools import zip_longest


T = TypeVar("T")


class FieldMetadata:
    """
    Base type for all field metadata types.

    Field metadata instances carry information about how a field of a
    schema should be validated and stored. The union operator (`|`) can
    be used to combine multiple metadata types.

    Attributes:
        metadata: A mapping containing the metadata key-value pairs
    """

    metadata: MutableMapping[str, Any]

    def __contains__(self, key: str) -> bool:
        return key in self.metadata

    def __eq__(self, other: "FieldMetadata | Any") -> bool:
        if not isinstance(other, FieldMetadata):
            return NotImplemented

        return dict(self.metadata) == dict(other.metadata)

    def __hash__(self):
        return hash(tuple(self.metadata.items()))

    def __or__(self, other: "FieldMetadata") -> "FieldMetadata":
        if not isinstance(other, FieldMetadata):
            return NotImplemented

        return AggregateMetadata(self, other)

    def __repr__(self):
        return f"{type(self).__name__}({', '.join(f'{k}={v}' for k, v in self.metadata.items())})"

    def get(self, key: str, default: T = None) -> T:
        """
        Retrieve a value from the metadata.

        Args:
            key: The metadata key to retrieve
            default: Value to return if the key doesn't exist

        Returns:
            The value associated with the key, or the default if not found
        """
        return self.metadata.get(key, default)

    def matches(self, check_for: "FieldMetadata | Type[FieldMetadata]") -> bool:
        """
        Check if this metadata matches a specific type or instance.

        Args:
            check_for: A FieldMetadata instance or class to check against

        Returns:
            True if this metadata matches the check_for criteria, False otherwise
        """
        match check_for:
            case type() as metadata_type if issubclass(metadata_type, FieldMetadata):
                return isinstance(self, metadata_type)

            case FieldMetadata() as metadata:
                return self == metadata

            case _:
                return False


class AggregateMetadata(FieldMetadata):
    """
    Combines multiple field metadata instances into one.

    Aggregates are never modified after creation: combining an aggregate
    with more metadata returns a new aggregate, so a shared annotation such
    as `Required | Unique` can be reused across schemas safely. Metadata
    added later shadows earlier values for the same key.

    Attributes:
        metadata: A ChainMap containing all aggregated metadata dictionaries
        _fields: The list of original metadata instances that were aggregated
    """

    metadata: ChainMap[str, Any]

    def __init__(self, *fields: "FieldMetadata") -> None:
        """
        Args:
            *fields: The metadata instances to aggregate
        """
        self._fields = []
        self.metadata = ChainMap({})

        for field in fields:
            self._add_field(field)

    def __eq__(self, other: "AggregateMetadata | Any") -> bool:
        if not isinstance(other, AggregateMetadata):
            return NotImplemented

        return all(a == b for a, b in zip_longest(self._fields, other._fields))

    def __or__(self, other: "FieldMetadata") -> "FieldMetadata":
        if not isinstance(other, FieldMetadata):
            return NotImplemented

        return AggregateMetadata(*self._fields, other)

    def __hash__(self):
        return hash(tuple(self.metadata.items()))

    def _add_field(self, field: "FieldMetadata") -> None:
        if isinstance(field, AggregateMetadata):
            for nested in field._fields:
                self._add_field(nested)
            return

        self._fields.append(field)
        self.metadata.maps.insert(0, field.metadata)

    def matches(self, metadata: "FieldMetadata | Type[FieldMetadata]") -> bool:
        """
        Check if any of the aggregated metadata instances match a type or instance.

        Args:
            metadata: A FieldMetadata instance or class to check against

        Returns:
            True if any of the aggregated metadata match, False otherwise
        """
        return any(f.matches(metadata) for f in self._fields)


class MetadataFlag(FieldMetadata):
    """
    A field metadata type that acts as a flag.

    Flags indicate that a field has a certain property. They contain
    a single boolean True value and should be treated as singletons
    for identity checks.

    Examples include the `Required` flag for mandatory fields and the
    `Unique` flag for fields backed by a unique index.
    """


class FieldType(FieldMetadata):
    """
    Field metadata type for setting the field's data type.

    Stored values that are not `None` are checked against this type when
    a document is validated.

    Attributes:
        field_type: The Python type of the field
    """

    def __init__(self, field_type: Any):
        """
        Args:
            field_type: The Python type of the field
        """
        self.metadata = {"field_type": field_type}


class StoreAs(FieldMetadata):
    """
    Field metadata type for setting a custom storage name.

    This allows using a different field name in the database than on the entity.

    Example:
        ```python
        @dataclass(frozen=True, kw_only=True)
        class Book(Entity):
            # Will be stored as "book_title" in the database
            title: Annotated[str, StoreAs("book_title")]
        ```

    Attributes:
        store_as: The name to use in the database
    """

    def __init__(self, store_as: str):
        """
        Args:
            store_as: The name to use when storing the field in the database
        """
        self.metadata = {"store_as": store_as}


class Default(FieldMetadata):
    """
    Field metadata type for a value stored when an inserted entity leaves the field unset.

    Attributes:
        default: The value to store
    """

    def __init__(self, default: Any):
        self.metadata = {"default": default}


def create_metadata_type(
    name: str, metadata_type: "Optional[Type[FieldMetadata]]" = Nothing(), /, **kwargs
) -> Type[FieldMetadata]:
    """
    Helper function for creating a simple field metadata type.

    This creates a new metadata class with preloaded default values,
    useful for creating field types that don't need values set at creation.

    Args:
        name: The name for the new metadata type
        metadata_type: Optional base class for the new type
        **kwargs: Default metadata values to include in the type

    Returns:
        A new FieldMetadata subclass with the specified properties
    """
    return cast(
        Type[FieldMetadata],
        type(name, (metadata_type.value_or(FieldMetadata),), {"metadata": kwargs}),
    )


def create_metadata_flag(name: str) -> FieldMetadata:
    """
    Helper function for creating field metadata flag instances.

    These flags indicate that a field has a certain property and contain
    a single boolean True value. They should be treated as singletons.

    Args:
        name: The name for the flag

    Returns:
        A singleton instance of the created flag metadata
    """
    return create_metadata_type(name, Some(MetadataFlag), **{f"__flag_{name}": True})()


Required = create_metadata_flag("Required")
"""
Indicates a field that must hold a value other than `None` whenever a document is saved.

Example:
    ```python
    title: Annotated[str, Required]
    ```
"""
Unique = create_metadata_flag("Unique")
"""
Indicates a field backed by a unique index. Violations are reported by the storage driver when a document is written.

Example:
    ```python
    isbn: Annotated[str, Required | Unique]
    ```
"""
