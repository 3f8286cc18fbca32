from polydoc.schema.field_metadata import (
    AggregateMetadata,
    Default,
    FieldMetadata,
    FieldType,
    Required,
    StoreAs,
    Unique,
    create_metadata_flag,
    create_metadata_type,
)
from polydoc.schema.schema import SaveContext, Schema, SchemaOptions, SchemaPlugin, extend_schema
from polydoc.schema.base_schemas import BaseSchema, identity


__all__ = [
    "AggregateMetadata",
    "BaseSchema",
    "Default",
    "FieldMetadata",
    "FieldType",
    "Required",
    "SaveContext",
    "Schema",
    "SchemaOptions",
    "SchemaPlugin",
    "StoreAs",
    "Unique",
    "create_metadata_flag",
    "create_metadata_type",
    "extend_schema",
    "identity",
]
