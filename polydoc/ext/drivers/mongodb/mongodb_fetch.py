from typing import Any, Iterable

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorCursor, AsyncIOMotorDatabase
from tramp.async_batch_iterator import AsyncBatchIterator

from polydoc.drivers import Document, SortSpec
from polydoc.drivers.ids import storage_filters


DEFAULT_BATCH_SIZE = 100


def fetch_documents(
    db: AsyncIOMotorDatabase,
    collection: str,
    filters: Document | None = None,
    *,
    sort: SortSpec | None = None,
    skip: int = 0,
    limit: int = 0,
    session: AsyncIOMotorClientSession | None = None,
) -> AsyncBatchIterator[Document]:
    """Fetches the matching documents in batches of `DEFAULT_BATCH_SIZE`. The skip and limit describe the overall
    window of documents wanted, each batch is a slice of that window."""
    query = storage_filters(filters) or {}

    async def fetch_batch(batch_index: int) -> Iterable[Document]:
        batch_skip = batch_index * DEFAULT_BATCH_SIZE
        batch_limit = DEFAULT_BATCH_SIZE
        if limit:
            # The window ends after `limit` documents, later batches are empty
            if batch_skip >= limit:
                return []

            batch_limit = min(batch_limit, limit - batch_skip)

        cursor: AsyncIOMotorCursor = db[collection].find(query, session=session)
        if sort:
            cursor = cursor.sort(sort)

        cursor = cursor.skip(skip + batch_skip).limit(batch_limit)
        return [document async for document in cursor]

    return AsyncBatchIterator(fetch_batch)


async def count_documents(
    db: AsyncIOMotorDatabase,
    collection: str,
    filters: Document | None = None,
    session: AsyncIOMotorClientSession | None = None,
) -> int:
    return await db[collection].count_documents(storage_filters(filters) or {}, session=session)
