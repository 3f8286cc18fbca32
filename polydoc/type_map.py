"""
The type registry maps discriminator values to the entity type and schema used for documents of that type.

Every registry has a mandatory `"Default"` entry holding the supertype. Every other entry is a subtype keyed by the
discriminator value stored in its documents. A document without a discriminator is an instance of the supertype.

The registry is validated exhaustively when it is built and is immutable afterwards, so a malformed registry fails
at startup rather than during a later read.

Example:
    ```python
    type_map = TypeMap({
        "Default": TypeData(Book, book_schema),
        "PaperBook": TypeData(PaperBook, paper_book_schema),
    })

    # The same registry built from a domain model tree
    type_map = TypeMap.from_domain_model(
        DomainModel(Book, book_schema, subtypes=[DomainModel(PaperBook, paper_book_schema)])
    )
    ```
"""
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Sequence, Type

from polydoc.exceptions import IllegalArgumentException
from polydoc.schema import Schema


DEFAULT_TYPE = "Default"


@dataclass(frozen=True)
class TypeData[T]:
    type: Type[T]
    schema: Schema


@dataclass(frozen=True)
class DomainModel:
    """A node of a polymorphic type tree. The root is the supertype, subtypes may have subtypes of their own."""
    type: Type | None
    schema: Schema | None
    subtypes: Sequence["DomainModel"] = ()


class TypeMap(Mapping[str, TypeData]):
    def __init__(self, mapping: Mapping[str, TypeData]):
        if DEFAULT_TYPE not in mapping:
            raise IllegalArgumentException(f"The type map must have a {DEFAULT_TYPE!r} entry")

        self._types: dict[str, TypeData] = dict(mapping)
        self._validate()
        self._discriminators: dict[type, str] = {
            type_data.type: name for name, type_data in self._types.items() if name != DEFAULT_TYPE
        }

    def __getitem__(self, name: str) -> TypeData:
        return self._types[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self):
        return f"{type(self).__name__}({', '.join(f'{k}={v.type.__name__}' for k, v in self._types.items())})"

    @classmethod
    def from_domain_model(cls, model: DomainModel) -> "TypeMap":
        """Builds a type map from a domain model tree. Every node below the root is keyed by its class name."""
        mapping = {DEFAULT_TYPE: cls._type_data_for(model)}
        pending = list(model.subtypes)
        while pending:
            node = pending.pop(0)
            type_data = cls._type_data_for(node)
            if type_data.type.__name__ in mapping:
                raise IllegalArgumentException(f"Subtype {type_data.type.__name__!r} is declared more than once")

            mapping[type_data.type.__name__] = type_data
            pending.extend(node.subtypes)

        return cls(mapping)

    @property
    def type_names(self) -> tuple[str, ...]:
        """The discriminator values of every registered subtype."""
        return tuple(name for name in self._types if name != DEFAULT_TYPE)

    def get_supertype_data(self) -> TypeData:
        return self._types[DEFAULT_TYPE]

    def get_supertype_name(self) -> str:
        return self.get_supertype_data().type.__name__

    def get_subtype_data(self, name: str) -> TypeData | None:
        if name == DEFAULT_TYPE:
            return None

        return self._types.get(name)

    def get_subtypes_data(self) -> tuple[TypeData, ...]:
        return tuple(self._types[name] for name in self.type_names)

    def has(self, name: str) -> bool:
        """Checks if the name is the supertype's class name or a registered subtype."""
        return name == self.get_supertype_name() or name in self.type_names

    def discriminator_for(self, entity_type: Type) -> str | None:
        """
        The discriminator value stored for documents of an entity type.

        Returns:
            `None` for the supertype and the registered name for a subtype.

        Raises:
            IllegalArgumentException: The type is not registered.
        """
        if entity_type is self.get_supertype_data().type:
            return None

        try:
            return self._discriminators[entity_type]
        except KeyError:
            raise IllegalArgumentException(
                f"The entity type {entity_type.__name__!r} is not registered with the type map"
            ) from None

    @staticmethod
    def _type_data_for(model: DomainModel) -> TypeData:
        if model.type is None or model.schema is None:
            raise IllegalArgumentException(f"Domain models must have a type and a schema, got {model!r}")

        return TypeData(model.type, model.schema)

    def _validate(self):
        supertype = self._types[DEFAULT_TYPE]
        registered: dict[Any, str] = {}
        entries = [(DEFAULT_TYPE, supertype)] + [item for item in self._types.items() if item[0] != DEFAULT_TYPE]
        for name, type_data in entries:
            if not isinstance(name, str) or not name:
                raise IllegalArgumentException(f"Type names must be non-empty strings, got {name!r}")

            if not isinstance(type_data, TypeData):
                raise IllegalArgumentException(f"The entry {name!r} must be TypeData, got {type_data!r}")

            if not isinstance(type_data.type, type):
                raise IllegalArgumentException(f"The entry {name!r} must have a class, got {type_data.type!r}")

            if not isinstance(type_data.schema, Schema):
                raise IllegalArgumentException(f"The entry {name!r} must have a schema, got {type_data.schema!r}")

            if not issubclass(type_data.type, supertype.type):
                raise IllegalArgumentException(
                    f"The subtype {name!r} ({type_data.type.__name__}) is not a subclass of the supertype "
                    f"{supertype.type.__name__}"
                )

            if type_data.type in registered:
                raise IllegalArgumentException(
                    f"The class {type_data.type.__name__} is registered as both {registered[type_data.type]!r} and "
                    f"{name!r}"
                )

            registered[type_data.type] = name
