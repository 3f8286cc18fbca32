import logging
from typing import Iterable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import IndexModel
from pymongo.errors import CollectionInvalid, OperationFailure


logger = logging.getLogger(__name__)

INDEX_EXISTS_CODES = frozenset({85, 86})


async def apply_schema(db: AsyncIOMotorDatabase, collection_name: str, unique_fields: Iterable[str] = ()):
    """Creates the collection and a sparse unique index for every unique field. Sparse indexes ignore documents that
    do not have the field, matching how unset optional fields are stored."""
    try:
        await db.create_collection(collection_name)
    except CollectionInvalid:
        pass

    indexes = [
        IndexModel([(field, 1)], name=f"idx_{collection_name}_{field}_unique", unique=True, sparse=True)
        for field in unique_fields
    ]
    if not indexes:
        return

    try:
        await db[collection_name].create_indexes(indexes)
    except OperationFailure as error:
        if error.code not in INDEX_EXISTS_CODES:
            raise

        logger.debug("Indexes for %r already exist", collection_name)


async def delete_schema(db: AsyncIOMotorDatabase, collection_name: str):
    await db.drop_collection(collection_name)
