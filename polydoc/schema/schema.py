"""
Schemas describe how the entities of one type are stored.

A schema is a flat, immutable set of fields plus the options and plugins that apply to every document written with
it. Schemas are composed with `extend_schema` (or the `Schema.extend` method): the resulting schema has the union of
both field sets, the plugins of both schemas and the base options with any explicitly passed options applied on top.
Neither input schema is changed.

Example:
    ```python
    from polydoc.schema import BaseSchema, FieldType, Required, Unique

    book_schema = BaseSchema.extend({"title": FieldType(str) | Required, "isbn": FieldType(str) | Required | Unique})
    paper_book_schema = book_schema.extend({"pages": int})
    ```

Fields can also be read from the `Annotated` type hints of an entity class using `Schema.from_annotations`.
"""
import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, UTC
from types import MappingProxyType, NoneType, UnionType
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Iterable,
    Type,
    Union,
    get_args,
    get_origin,
)

import tramp.annotations

from polydoc.exceptions import IllegalArgumentException, Violation, ViolationKind
from polydoc.schema.field_metadata import (
    AggregateMetadata,
    FieldMetadata,
    FieldType,
    Required,
    StoreAs,
    Unique,
    create_metadata_type,
)


type Document = dict[str, Any]
type FieldDefinition = FieldMetadata | Type | None


@dataclass(frozen=True)
class SchemaOptions:
    """
    Options that apply to every document written with a schema.

    Attributes:
        discriminator_key: The stored field that names a document's subtype.
        strict: When set, keys that are not schema fields are dropped from saved payloads.
        collection: The collection documents are stored in. Repositories fall back to the supertype's class name.
    """
    discriminator_key: str = "__t"
    strict: bool = True
    collection: str | None = None

    def merge(self, overrides: "SchemaOptions | Mapping[str, Any] | None") -> "SchemaOptions":
        """Returns new options with the overrides applied on top. A `SchemaOptions` instance replaces every option, a
        mapping only replaces the options it names."""
        match overrides:
            case None:
                return self

            case SchemaOptions():
                return overrides

            case Mapping():
                try:
                    return dataclasses.replace(self, **overrides)
                except TypeError as error:
                    raise IllegalArgumentException(f"Unknown schema options: {dict(overrides)!r}") from error

            case _:
                raise IllegalArgumentException(f"Schema options must be SchemaOptions or a mapping, got {overrides!r}")


@dataclass(frozen=True)
class SaveContext:
    """Describes the save a `pre_save` plugin hook is running for."""
    is_new: bool
    user_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class SchemaPlugin:
    """
    Cross cutting behaviour attached to a schema.

    Attributes:
        name: Identifies the plugin in reprs and logs.
        pre_save: Called with the stored document and a `SaveContext` before every insert and update. It may modify
            the document in place.
        to_entity: Called with a stored document before it is projected onto an entity. Returns the transformed
            document.
    """
    name: str
    pre_save: Callable[[Document, SaveContext], None] | None = None
    to_entity: Callable[[Document], Document] | None = None


class Schema:
    """An immutable description of the fields, options and plugins used to store one entity type."""

    def __init__(
        self,
        fields: Mapping[str, FieldDefinition] | None = None,
        options: SchemaOptions | Mapping[str, Any] | None = None,
        plugins: Iterable[SchemaPlugin] = (),
    ):
        self._fields: Mapping[str, FieldMetadata] = MappingProxyType(
            {name: _normalize_field(name, definition) for name, definition in (fields or {}).items()}
        )
        self._options = SchemaOptions().merge(options)
        self._plugins: tuple[SchemaPlugin, ...] = _unique_plugins(plugins)
        self._attribute_names = MappingProxyType(
            {metadata.get("store_as"): name for name, metadata in self._fields.items()}
        )

    def __repr__(self):
        return (
            f"{type(self).__name__}(fields={list(self._fields)!r}, options={self._options!r}, "
            f"plugins={[plugin.name for plugin in self._plugins]!r})"
        )

    @property
    def fields(self) -> Mapping[str, FieldMetadata]:
        return self._fields

    @property
    def options(self) -> SchemaOptions:
        return self._options

    @property
    def plugins(self) -> tuple[SchemaPlugin, ...]:
        return self._plugins

    @classmethod
    def from_annotations(
        cls,
        entity_type: Type,
        options: SchemaOptions | Mapping[str, Any] | None = None,
        plugins: Iterable[SchemaPlugin] = (),
    ) -> "Schema":
        """
        Creates a schema from the annotations declared directly on a class. Inherited annotations are not included,
        compose them with `extend` instead.

        A field is implicitly `Required` when it has no default and its type does not allow `None`.
        """
        annotations = tramp.annotations.get_annotations(entity_type, tramp.annotations.Format.FORWARDREF)
        defaults = _fields_with_defaults(entity_type)
        fields = {}
        for name, annotation in annotations.items():
            if isinstance(annotation, tramp.annotations.ForwardRef):
                annotation = annotation.evaluate()

            if annotation is ClassVar or get_origin(annotation) is ClassVar:
                continue

            metadata = AggregateMetadata()
            annotation_type = annotation
            if get_origin(annotation) is Annotated:
                annotation_type, *args = get_args(annotation)
                for arg in args:
                    match arg:
                        case FieldMetadata():
                            metadata |= arg

            metadata |= FieldType(annotation_type)
            if name not in defaults and not _allows_none(annotation_type):
                metadata |= Required

            fields[name] = metadata

        return cls(fields, options, plugins)

    def extend(
        self,
        extension: "Schema | Mapping[str, FieldDefinition]",
        options: SchemaOptions | Mapping[str, Any] | None = None,
    ) -> "Schema":
        return extend_schema(self, extension, options)

    # ---------------------------------------- #
    # Field Lookup                             #
    # ---------------------------------------- #
    def stored_name(self, attribute_name: str) -> str:
        """The stored name of a field. Names that are not schema fields are returned unchanged."""
        if attribute_name in self._fields:
            return self._fields[attribute_name].get("store_as")

        return attribute_name

    def attribute_name(self, stored_name: str) -> str | None:
        return self._attribute_names.get(stored_name)

    def has_field(self, name: str) -> bool:
        """Checks if the name is a field's attribute name or stored name."""
        return name in self._fields or name in self._attribute_names

    def unique_fields(self) -> tuple[str, ...]:
        """The stored names of every field flagged `Unique`."""
        return tuple(
            metadata.get("store_as") for metadata in self._fields.values() if metadata.matches(Unique)
        )

    def required_fields(self) -> tuple[str, ...]:
        return tuple(name for name, metadata in self._fields.items() if metadata.matches(Required))

    # ---------------------------------------- #
    # Document Projection                      #
    # ---------------------------------------- #
    def to_document(self, obj: Any, *, partial: bool = False) -> Document:
        """
        Projects an entity or a mapping payload onto a stored document.

        Entity attributes set to `None` are omitted. Mapping payloads may be keyed by attribute names or stored
        names, an explicit `None` in a mapping is kept so that updates can clear a field. The `id` is never copied,
        storage ids are managed by the repository. Unless `partial` is set, fields with a `Default` that were left
        unset receive their default value.
        """
        document = {}
        if isinstance(obj, Mapping):
            for key, value in obj.items():
                if key in ("id", "_id"):
                    continue

                if key in self._fields:
                    document[self.stored_name(key)] = value
                elif key in self._attribute_names:
                    document[key] = value
                elif not self._options.strict:
                    document[key] = value

        else:
            for name, metadata in self._fields.items():
                value = getattr(obj, name, None)
                if value is not None:
                    document[metadata.get("store_as")] = value

            if not self._options.strict and dataclasses.is_dataclass(obj):
                for entity_field in dataclasses.fields(obj):
                    value = getattr(obj, entity_field.name)
                    if entity_field.name not in self._fields and entity_field.name != "id" and value is not None:
                        document[entity_field.name] = value

        if not partial:
            for metadata in self._fields.values():
                stored_name = metadata.get("store_as")
                if "default" in metadata and document.get(stored_name) is None:
                    document[stored_name] = metadata.get("default")

        return document

    def to_entity_data(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Runs the `to_entity` plugins and maps the stored names of the result back to attribute names. Storage
        metadata (the discriminator and underscored keys) is dropped."""
        transformed = dict(document)
        for plugin in self._plugins:
            if plugin.to_entity:
                transformed = plugin.to_entity(transformed)

        data = {}
        for key, value in transformed.items():
            if key == "id":
                data["id"] = value
            elif name := self.attribute_name(key):
                data[name] = value
            elif not self._options.strict and key != self._options.discriminator_key and not key.startswith("_"):
                data[key] = value

        return data

    def run_pre_save(self, document: Document, context: SaveContext):
        for plugin in self._plugins:
            if plugin.pre_save:
                plugin.pre_save(document, context)

    # ---------------------------------------- #
    # Validation                               #
    # ---------------------------------------- #
    def validate(self, document: Mapping[str, Any]) -> tuple[Violation, ...]:
        """Checks a stored document against the schema. Returns every violation found, an empty tuple when the
        document is valid."""
        violations = []
        for name, metadata in self._fields.items():
            value = document.get(metadata.get("store_as"))
            if value is None:
                if metadata.matches(Required):
                    violations.append(Violation(name, ViolationKind.REQUIRED, "is required"))

            elif not _is_instance(value, metadata.get("field_type")):
                violations.append(
                    Violation(name, ViolationKind.TYPE, f"expected {_type_name(metadata.get('field_type'))}")
                )

        return tuple(violations)


def extend_schema(
    base: Schema,
    extension: Schema | Mapping[str, FieldDefinition],
    options: SchemaOptions | Mapping[str, Any] | None = None,
) -> Schema:
    """
    Creates a new schema that has every field of the base schema and of the extension.

    Fields of the extension win when both declare the same name. The new schema keeps the base schema's plugins
    followed by the extension's plugins, each plugin only once. The options are the base schema's options with the
    explicitly passed options applied on top, the extension schema's own options are not used.

    Args:
        base: The schema to extend.
        extension: A schema or a mapping of field names to field definitions.
        options: Options that override the base schema's options.

    Returns:
        The composed schema. Neither input is modified.
    """
    match extension:
        case Schema():
            fields = extension.fields
            plugins = extension.plugins

        case Mapping():
            fields = extension
            plugins = ()

        case _:
            raise IllegalArgumentException(f"Cannot extend a schema with {extension!r}")

    return Schema(
        {**base.fields, **fields},
        base.options.merge(options),
        (*base.plugins, *plugins),
    )


def _normalize_field(name: str, definition: FieldDefinition) -> FieldMetadata:
    match definition:
        case None:
            metadata = AggregateMetadata()

        case FieldMetadata():
            metadata = AggregateMetadata(definition)

        case _:
            metadata = AggregateMetadata(FieldType(definition))

    if not metadata.matches(FieldType):
        metadata |= FieldType(Any)

    if not metadata.matches(StoreAs):
        metadata |= StoreAs(name)

    return metadata | create_metadata_type("FieldMetadata", field_name=name)()


def _unique_plugins(plugins: Iterable[SchemaPlugin]) -> tuple[SchemaPlugin, ...]:
    unique = {}
    for plugin in plugins:
        unique.setdefault(id(plugin), plugin)

    return tuple(unique.values())


def _fields_with_defaults(entity_type: Type) -> set[str]:
    if dataclasses.is_dataclass(entity_type):
        return {
            entity_field.name
            for entity_field in dataclasses.fields(entity_type)
            if entity_field.default is not dataclasses.MISSING
            or entity_field.default_factory is not dataclasses.MISSING
        }

    return {name for name in vars(entity_type) if not name.startswith("__")}


def _allows_none(annotation: Any) -> bool:
    if annotation is Any or annotation is None or annotation is NoneType:
        return True

    if get_origin(annotation) in (Union, UnionType):
        return any(_allows_none(arg) for arg in get_args(annotation))

    return False


def _is_instance(value: Any, field_type: Any) -> bool:
    if field_type is Any or field_type is None:
        return True

    origin = get_origin(field_type)
    if origin is Annotated:
        return _is_instance(value, get_args(field_type)[0])

    if origin in (Union, UnionType):
        return any(_is_instance(value, arg) for arg in get_args(field_type))

    if isinstance(origin, type):
        return isinstance(value, origin)

    if isinstance(field_type, type):
        if field_type is float:
            return isinstance(value, (int, float)) and not isinstance(value, bool)

        return isinstance(value, field_type)

    return True


def _type_name(field_type: Any) -> str:
    return getattr(field_type, "__name__", None) or repr(field_type)
