"""
Auditing records who changed a stored document and when.

Entities that should be audited extend `AuditableEntity` and are stored with a schema extending `AuditableSchema`.
The `audit` plugin maintains the audit fields on every save:

- On insert `createdAt` and `updatedAt` are set to the current UTC time, `createdBy` and `updatedBy` to the saving
  user when one is given, and `version` to 0.
- On update `updatedAt` is refreshed, `updatedBy` is set when a user is given, and `version` is incremented.

Example:
    ```python
    @dataclass(frozen=True, kw_only=True)
    class Invoice(AuditableEntity):
        number: str

    invoice_schema = AuditableSchema.extend(Schema.from_annotations(Invoice))
    saved = await repository.save(Invoice(number="A-1"), user_id="alice")
    assert saved.created_by == "alice" and saved.version == 0
    ```
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any

from polydoc.entity import Entity
from polydoc.schema.base_schemas import BaseSchema
from polydoc.schema.field_metadata import StoreAs
from polydoc.schema.schema import Document, SaveContext, Schema, SchemaPlugin


logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class AuditableEntity(Entity):
    created_at: Annotated[datetime | None, StoreAs("createdAt")] = None
    created_by: Annotated[str | None, StoreAs("createdBy")] = None
    updated_at: Annotated[datetime | None, StoreAs("updatedAt")] = None
    updated_by: Annotated[str | None, StoreAs("updatedBy")] = None
    version: int | None = None


def _audit_pre_save(document: Document, context: SaveContext):
    if context.is_new:
        document["createdAt"] = context.timestamp
        document["updatedAt"] = context.timestamp
        document["version"] = 0
        if context.user_id is not None:
            document["createdBy"] = context.user_id
            document["updatedBy"] = context.user_id

    else:
        document["updatedAt"] = context.timestamp
        document["version"] = (document.get("version") or 0) + 1
        if context.user_id is not None:
            document["updatedBy"] = context.user_id

    logger.debug("Audited document (new=%s, version=%s)", context.is_new, document["version"])


audit = SchemaPlugin("audit", pre_save=_audit_pre_save)


AuditableSchema = BaseSchema.extend(Schema.from_annotations(AuditableEntity, plugins=[audit]))
"""The base schema for auditable entities. Adds the audit fields and the `audit` plugin."""


def is_auditable(obj: Any) -> bool:
    """Checks if an entity, an entity type or a schema is audited."""
    match obj:
        case type() if issubclass(obj, AuditableEntity):
            return True

        case AuditableEntity():
            return True

        case Schema():
            return any(plugin is audit for plugin in obj.plugins)

        case _:
            return False
