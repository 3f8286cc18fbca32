from dataclasses import dataclass
from datetime import datetime, timedelta, UTC

import pytest

from polydoc import AuditableEntity, AuditableSchema, BaseSchema, Schema, is_auditable
from polydoc.audit import audit
from polydoc.schema import SaveContext

from books import AuditableBook, Book, auditable_book_schema, book_schema


@pytest.mark.asyncio
async def test_insert_records_the_creation(audited_repository):
    before = datetime.now(UTC)

    book = await audited_repository.save(AuditableBook(title="A"), user_id="alice")

    assert book.created_by == "alice"
    assert book.updated_by == "alice"
    assert book.version == 0
    assert book.created_at == book.updated_at
    assert before <= book.created_at <= datetime.now(UTC)


@pytest.mark.asyncio
async def test_insert_without_a_user(audited_repository):
    book = await audited_repository.save(AuditableBook(title="A"))

    assert book.created_by is None
    assert book.updated_by is None
    assert book.created_at is not None
    assert book.version == 0


@pytest.mark.asyncio
async def test_update_records_the_change(audited_repository):
    book = await audited_repository.save(AuditableBook(title="A"), user_id="alice")

    updated = await audited_repository.save({"id": book.id, "title": "B"}, user_id="bob")

    assert updated.title == "B"
    assert updated.version == 1
    assert updated.created_by == "alice"
    assert updated.created_at == book.created_at
    assert updated.updated_by == "bob"
    assert updated.updated_at >= book.updated_at


@pytest.mark.asyncio
async def test_update_without_a_user_keeps_the_last_editor(audited_repository):
    book = await audited_repository.save(AuditableBook(title="A"), user_id="alice")

    updated = await audited_repository.save({"id": book.id, "title": "B"})
    updated = await audited_repository.save({"id": book.id, "title": "C"})

    assert updated.updated_by == "alice"
    assert updated.version == 2


@pytest.mark.asyncio
async def test_audit_fields_cannot_be_forged(audited_repository):
    book = await audited_repository.save(AuditableBook(title="A", version=10, created_by="mallory"), user_id="alice")

    assert book.version == 0
    assert book.created_by == "alice"


@pytest.mark.asyncio
async def test_audit_fields_are_stored_in_camel_case(audited_repository, driver):
    book = await audited_repository.save(AuditableBook(title="A"), user_id="alice")

    document = await driver.find_one("AuditableBook", book.id)

    assert {"createdAt", "createdBy", "updatedAt", "updatedBy", "version"} <= document.keys()
    assert "created_at" not in document


def test_pre_save_on_insert():
    timestamp = datetime(2024, 1, 1, tzinfo=UTC)
    document = {"title": "A"}

    auditable_book_schema.run_pre_save(document, SaveContext(is_new=True, user_id="alice", timestamp=timestamp))

    assert document == {
        "title": "A",
        "createdAt": timestamp,
        "updatedAt": timestamp,
        "createdBy": "alice",
        "updatedBy": "alice",
        "version": 0,
    }


def test_pre_save_on_update():
    created = datetime(2024, 1, 1, tzinfo=UTC)
    document = {"title": "A", "createdAt": created, "updatedAt": created, "version": 3}

    auditable_book_schema.run_pre_save(
        document, SaveContext(is_new=False, timestamp=created + timedelta(days=1))
    )

    assert document["createdAt"] == created
    assert document["updatedAt"] == created + timedelta(days=1)
    assert document["version"] == 4
    assert "updatedBy" not in document


@dataclass(frozen=True, kw_only=True)
class Ledger(AuditableEntity):
    name: str


@pytest.mark.parametrize(
    "obj, expected",
    [
        (AuditableBook, True),
        (Ledger, True),
        (AuditableBook(title="A"), True),
        (auditable_book_schema, True),
        (AuditableSchema, True),
        (Schema(plugins=[audit]), True),
        (Book, False),
        (Book(title="A", isbn="1"), False),
        (book_schema, False),
        (BaseSchema, False),
        ({"title": "A"}, False),
        (None, False),
    ],
)
def test_is_auditable(obj, expected):
    assert is_auditable(obj) is expected
