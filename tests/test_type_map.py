from dataclasses import dataclass

import pytest

from polydoc import DomainModel, Entity, IllegalArgumentException, Schema, TypeData, TypeMap

from books import (
    AudioBook,
    Book,
    ElectronicBook,
    PaperBook,
    audio_book_schema,
    book_schema,
    book_type_map,
    paper_book_schema,
)


@dataclass(frozen=True, kw_only=True)
class Hardcover(PaperBook):
    dust_jacket: bool = False


@dataclass(frozen=True, kw_only=True)
class Magazine(Entity):
    issue: int


hardcover_schema = paper_book_schema.extend(Schema.from_annotations(Hardcover))


def test_default_entry_is_required():
    with pytest.raises(IllegalArgumentException):
        TypeMap({"PaperBook": TypeData(PaperBook, paper_book_schema)})


def test_supertype_data():
    assert book_type_map.get_supertype_data() == TypeData(Book, book_schema)
    assert book_type_map.get_supertype_name() == "Book"


def test_subtype_data():
    assert book_type_map.get_subtype_data("PaperBook") == TypeData(PaperBook, paper_book_schema)
    assert book_type_map.get_subtype_data("Default") is None
    assert book_type_map.get_subtype_data("Comic") is None
    assert book_type_map.type_names == ("PaperBook", "AudioBook", "ElectronicBook")
    assert [type_data.type for type_data in book_type_map.get_subtypes_data()] == [
        PaperBook,
        AudioBook,
        ElectronicBook,
    ]


def test_has_knows_the_supertype_name_and_subtypes():
    assert book_type_map.has("Book")
    assert book_type_map.has("AudioBook")
    assert not book_type_map.has("Default")
    assert not book_type_map.has("Comic")


def test_get_returns_default_and_subtypes():
    assert book_type_map.get("Default").type is Book
    assert book_type_map.get("AudioBook").type is AudioBook
    assert book_type_map.get("Comic") is None
    assert len(book_type_map) == 4
    assert "PaperBook" in book_type_map


def test_discriminator_for():
    assert book_type_map.discriminator_for(Book) is None
    assert book_type_map.discriminator_for(PaperBook) == "PaperBook"

    with pytest.raises(IllegalArgumentException):
        book_type_map.discriminator_for(Hardcover)


@pytest.mark.parametrize(
    "mapping",
    [
        {"Default": TypeData(Book, book_schema), "Magazine": TypeData(Magazine, book_schema)},
        {
            "Default": TypeData(Book, book_schema),
            "Paper": TypeData(PaperBook, paper_book_schema),
            "Again": TypeData(PaperBook, paper_book_schema),
        },
        {"Default": TypeData(Book, book_schema), "": TypeData(PaperBook, paper_book_schema)},
        {"Default": TypeData(Book, book_schema), "PaperBook": PaperBook},
        {"Default": TypeData(Book, None)},
        {"Default": TypeData(None, book_schema)},
    ],
    ids=["not-a-subclass", "registered-twice", "empty-name", "not-type-data", "missing-schema", "missing-class"],
)
def test_invalid_registries_fail_when_built(mapping):
    with pytest.raises(IllegalArgumentException):
        TypeMap(mapping)


def test_from_domain_model_registers_nested_subtypes():
    type_map = TypeMap.from_domain_model(
        DomainModel(
            Book,
            book_schema,
            subtypes=[
                DomainModel(PaperBook, paper_book_schema, subtypes=[DomainModel(Hardcover, hardcover_schema)]),
                DomainModel(AudioBook, audio_book_schema),
            ],
        )
    )

    assert type_map.get_supertype_data().type is Book
    assert type_map.type_names == ("PaperBook", "AudioBook", "Hardcover")
    assert type_map.discriminator_for(Hardcover) == "Hardcover"
    assert type_map.get("Hardcover").schema is hardcover_schema


def test_from_domain_model_requires_types_and_schemas():
    with pytest.raises(IllegalArgumentException):
        TypeMap.from_domain_model(DomainModel(Book, book_schema, subtypes=[DomainModel(PaperBook, None)]))

    with pytest.raises(IllegalArgumentException):
        TypeMap.from_domain_model(DomainModel(None, book_schema))
