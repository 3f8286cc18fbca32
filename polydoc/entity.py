"""
Entities are the domain objects stored by repositories.

Entities are frozen, keyword only dataclasses. An entity without an `id` has not been stored yet, saving it inserts a
new document. An entity with an `id` is the image of a stored document, saving it updates that document. Subtypes of
a polymorphic hierarchy are plain dataclass subclasses of their supertype.

Example:
    ```python
    @dataclass(frozen=True, kw_only=True)
    class Book(Entity):
        title: Annotated[str, Required]

    @dataclass(frozen=True, kw_only=True)
    class PaperBook(Book):
        pages: int = 0
    ```
"""
import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Type


@dataclass(frozen=True, kw_only=True)
class Entity:
    id: str | None = None

    @property
    def is_new(self) -> bool:
        return self.id is None


def init_field_names(entity_type: Type) -> tuple[str, ...]:
    """The names of the fields an entity type's constructor accepts."""
    if dataclasses.is_dataclass(entity_type):
        return tuple(entity_field.name for entity_field in dataclasses.fields(entity_type) if entity_field.init)

    return ()


def construct_entity[T](entity_type: Type[T], data: Mapping[str, Any]) -> T:
    """Constructs an entity from a mapping, passing only the values its constructor accepts."""
    if not dataclasses.is_dataclass(entity_type):
        return entity_type(**data)

    accepted = init_field_names(entity_type)
    return entity_type(**{name: value for name, value in data.items() if name in accepted})


def entity_id(obj: Any) -> Any:
    """The id of an entity or of a partial mapping payload, `None` when it has none."""
    if isinstance(obj, Mapping):
        return obj.get("id")

    return getattr(obj, "id", None)
