from dataclasses import dataclass
from typing import Annotated, Any, ClassVar

import pytest
from bson import ObjectId

from polydoc import Entity, IllegalArgumentException
from polydoc.exceptions import ViolationKind
from polydoc.schema import (
    BaseSchema,
    FieldType,
    Required,
    SaveContext,
    Schema,
    SchemaOptions,
    SchemaPlugin,
    StoreAs,
    Unique,
    extend_schema,
)

from books import AudioBook, audio_book_schema, book_schema, electronic_book_schema


def test_from_annotations_marks_fields_without_defaults_as_required():
    assert book_schema.required_fields() == ("title", "isbn")
    assert book_schema.unique_fields() == ("isbn",)
    assert book_schema.fields["author"].get("field_type") == str | None


def test_from_annotations_only_reads_the_classes_own_fields():
    audio_fields = Schema.from_annotations(AudioBook).fields
    assert set(audio_fields) == {"narrator", "minutes"}


def test_from_annotations_skips_class_variables():
    @dataclass(frozen=True, kw_only=True)
    class Shelf(Entity):
        capacity: ClassVar[int] = 10
        label: str

    assert set(Schema.from_annotations(Shelf).fields) == {"label"}


def test_stored_names():
    assert audio_book_schema.stored_name("narrator") == "narratedBy"
    assert audio_book_schema.attribute_name("narratedBy") == "narrator"
    assert audio_book_schema.stored_name("title") == "title"
    assert audio_book_schema.stored_name("unknown") == "unknown"
    assert audio_book_schema.has_field("narratedBy")
    assert audio_book_schema.has_field("narrator")


def test_fields_are_normalized():
    schema = Schema({"count": int, "label": None, "code": StoreAs("c")})

    assert schema.fields["count"].get("field_type") is int
    assert schema.fields["label"].get("field_type") is Any
    assert schema.fields["code"].get("store_as") == "c"
    assert schema.fields["count"].get("field_name") == "count"


def test_schemas_are_immutable():
    with pytest.raises(TypeError):
        book_schema.fields["title"] = FieldType(int)


def test_extend_schema_unions_fields_and_extension_wins():
    base = Schema({"a": FieldType(str), "b": FieldType(str)})
    composed = extend_schema(base, {"a": FieldType(int), "c": None})

    assert list(composed.fields) == ["a", "b", "c"]
    assert composed.fields["a"].get("field_type") is int
    assert list(base.fields) == ["a", "b"]
    assert base.fields["a"].get("field_type") is str


def test_extend_schema_unions_plugins_once_in_order():
    first = SchemaPlugin("first")
    second = SchemaPlugin("second")
    base = Schema(plugins=[first])
    extension = Schema({"a": None}, plugins=[first, second])

    assert extend_schema(base, extension).plugins == (first, second)
    assert base.plugins == (first,)


def test_extend_schema_applies_explicit_options_on_top_of_the_base_options():
    base = Schema(options=SchemaOptions(discriminator_key="kind"))
    extension = Schema({"a": None}, options={"collection": "ignored"})

    assert base.extend(extension).options == SchemaOptions(discriminator_key="kind")
    assert base.extend(extension, {"strict": False}).options == SchemaOptions(discriminator_key="kind", strict=False)
    assert base.extend(extension, SchemaOptions(collection="books")).options == SchemaOptions(collection="books")


def test_unknown_options_are_rejected():
    with pytest.raises(IllegalArgumentException):
        Schema(options={"colour": "red"})


def test_extend_schema_rejects_other_extensions():
    with pytest.raises(IllegalArgumentException):
        extend_schema(book_schema, ["title"])


def test_to_document_uses_stored_names_and_omits_unset_attributes():
    book = AudioBook(id="abc", title="Dune", isbn="1", narrator="Scott")
    assert audio_book_schema.to_document(book) == {"title": "Dune", "isbn": "1", "narratedBy": "Scott"}


def test_to_document_accepts_attribute_and_stored_names_in_mappings():
    payload = {"id": "abc", "narrator": "Scott", "minutes": 10, "colour": "red"}
    assert audio_book_schema.to_document(payload, partial=True) == {"narratedBy": "Scott", "minutes": 10}
    assert audio_book_schema.to_document({"narratedBy": "Simon"}, partial=True) == {"narratedBy": "Simon"}


def test_non_strict_schemas_keep_unknown_keys():
    schema = Schema({"title": str}, options={"strict": False})
    assert schema.to_document({"title": "Dune", "colour": "red"}) == {"title": "Dune", "colour": "red"}


def test_defaults_are_only_applied_to_complete_documents():
    assert electronic_book_schema.to_document({"title": "Dune", "isbn": "1"})["file_format"] == "epub"
    assert "file_format" not in electronic_book_schema.to_document({"title": "Dune"}, partial=True)


def test_to_entity_data_maps_stored_names_and_identity():
    id = ObjectId()
    document = {"_id": id, "__t": "AudioBook", "title": "Dune", "isbn": "1", "narratedBy": "Scott"}

    assert audio_book_schema.to_entity_data(document) == {
        "id": str(id),
        "title": "Dune",
        "isbn": "1",
        "narrator": "Scott",
    }


def test_base_schema_has_the_identity_plugin():
    assert [plugin.name for plugin in BaseSchema.plugins] == ["identity"]
    assert [plugin.name for plugin in book_schema.plugins] == ["identity"]


def test_validate_reports_every_violation():
    violations = book_schema.validate({"isbn": 5})

    assert {(violation.field, violation.kind) for violation in violations} == {
        ("title", ViolationKind.REQUIRED),
        ("isbn", ViolationKind.TYPE),
    }


def test_validate_accepts_valid_documents():
    assert book_schema.validate({"title": "Dune", "isbn": "1", "author": None}) == ()


def test_validate_checks_annotated_and_generic_types():
    schema = Schema({
        "tags": FieldType(list[str]),
        "rating": FieldType(float),
        "code": FieldType(Annotated[str, "meta"]) | Required | Unique,
    })

    assert schema.validate({"tags": ["a"], "rating": 4, "code": "x"}) == ()
    assert [violation.field for violation in schema.validate({"tags": "a", "rating": True, "code": 1})] == [
        "tags",
        "rating",
        "code",
    ]


def test_pre_save_plugins_run_in_order():
    calls = []
    first = SchemaPlugin("first", pre_save=lambda document, context: calls.append(("first", context.is_new)))
    second = SchemaPlugin("second", pre_save=lambda document, context: document.update(touched=True))
    schema = Schema(plugins=[first, second])

    document = {}
    schema.run_pre_save(document, SaveContext(is_new=True, user_id="alice"))

    assert calls == [("first", True)]
    assert document == {"touched": True}
