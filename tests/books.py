"""A small polymorphic domain used throughout the tests."""
from dataclasses import dataclass
from typing import Annotated

from polydoc import AuditableEntity, AuditableSchema, Entity, Schema, TypeData, TypeMap
from polydoc.schema import BaseSchema, Default, StoreAs, Unique


@dataclass(frozen=True, kw_only=True)
class Book(Entity):
    title: str
    isbn: Annotated[str, Unique]
    author: str | None = None


@dataclass(frozen=True, kw_only=True)
class PaperBook(Book):
    pages: int | None = None


@dataclass(frozen=True, kw_only=True)
class AudioBook(Book):
    narrator: Annotated[str | None, StoreAs("narratedBy")] = None
    minutes: int | None = None


@dataclass(frozen=True, kw_only=True)
class ElectronicBook(Book):
    file_format: Annotated[str | None, Default("epub")] = None


@dataclass(frozen=True, kw_only=True)
class AuditableBook(AuditableEntity):
    title: str


book_schema = BaseSchema.extend(Schema.from_annotations(Book))
paper_book_schema = book_schema.extend(Schema.from_annotations(PaperBook))
audio_book_schema = book_schema.extend(Schema.from_annotations(AudioBook))
electronic_book_schema = book_schema.extend(Schema.from_annotations(ElectronicBook))

book_type_map = TypeMap({
    "Default": TypeData(Book, book_schema),
    "PaperBook": TypeData(PaperBook, paper_book_schema),
    "AudioBook": TypeData(AudioBook, audio_book_schema),
    "ElectronicBook": TypeData(ElectronicBook, electronic_book_schema),
})

auditable_book_schema = AuditableSchema.extend(Schema.from_annotations(AuditableBook))
auditable_book_type_map = TypeMap({"Default": TypeData(AuditableBook, auditable_book_schema)})
