from polydoc.schema.schema import Document, Schema, SchemaPlugin


def _identity_to_entity(document: Document) -> Document:
    if "_id" not in document:
        return document

    document = dict(document)
    document["id"] = str(document.pop("_id"))
    return document


identity = SchemaPlugin("identity", to_entity=_identity_to_entity)
"""Exposes the storage `_id` of a document as a string `id` on the entity."""


BaseSchema = Schema(plugins=[identity])
"""The schema every entity schema should extend. It has no fields of its own."""
