import pytest_asyncio

from polydoc import DocumentRepository, TransactionalRepository
from polydoc.ext.drivers.memory import MemoryDriver, MemorySettings

from books import auditable_book_type_map, book_type_map


@pytest_asyncio.fixture
async def driver():
    async with MemoryDriver.connect(MemorySettings(database_name="tests")) as driver:
        yield driver


@pytest_asyncio.fixture
async def repository(driver):
    repository = DocumentRepository(book_type_map, driver)
    await repository.apply_schema()
    return repository


@pytest_asyncio.fixture
async def transactional_repository(driver):
    repository = TransactionalRepository(book_type_map, driver)
    await repository.apply_schema()
    return repository


@pytest_asyncio.fixture
async def audited_repository(driver):
    repository = TransactionalRepository(auditable_book_type_map, driver)
    await repository.apply_schema()
    return repository
