import asyncio
from typing import Any, Iterable, Mapping

from polydoc.drivers import BaseDriverSession
from polydoc.entity import entity_id
from polydoc.repository.document_repository import DocumentRepository
from polydoc.repository.repository import BatchRepository
from polydoc.transaction import TransactionWork, run_in_transaction


class TransactionalRepository[T](DocumentRepository[T], BatchRepository[T]):
    """A document repository whose multi document operations are atomic.

    `save_all` saves every entity in one transaction, a single failure aborts the whole batch. Updates made with
    `save` run in a transaction as well, so reading the stored document and writing the merged result cannot
    interleave with another writer. Passing a session joins the caller's transaction instead of starting one.
    """

    async def save(
        self,
        entity_or_partial: T | Mapping[str, Any],
        *,
        user_id: str | None = None,
        session: BaseDriverSession | None = None,
    ) -> T:
        if not entity_or_partial or entity_id(entity_or_partial) is None:
            return await super().save(entity_or_partial, user_id=user_id, session=session)

        update = super().save
        return await self._run_in_transaction(
            lambda transaction_session: update(entity_or_partial, user_id=user_id, session=transaction_session),
            session,
        )

    async def save_all(
        self,
        entities: Iterable[T | Mapping[str, Any]],
        *,
        user_id: str | None = None,
        session: BaseDriverSession | None = None,
    ) -> list[T]:
        entities = list(entities)

        async def save_entities(transaction_session: BaseDriverSession) -> list[T]:
            results = await asyncio.gather(
                *(self.save(entity, user_id=user_id, session=transaction_session) for entity in entities),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            return results

        return await self._run_in_transaction(save_entities, session)

    async def delete_all(
        self, filters: Mapping[str, Any] | None = None, *, session: BaseDriverSession | None = None
    ) -> int:
        storage_filters = self._storage_filters(filters)

        async def delete_entities(transaction_session: BaseDriverSession) -> int:
            try:
                return await self.driver.delete_many(self.collection_name, storage_filters, session=transaction_session)

            except Exception as error:
                self._raise_for_invalid_query(error)
                raise

        return await self._run_in_transaction(delete_entities, session)

    async def _run_in_transaction[R](self, work: TransactionWork[R], session: BaseDriverSession | None) -> R:
        try:
            return await run_in_transaction(work, driver=self.driver, session=session)

        except Exception as error:
            # Unique values written by concurrent transactions can collide when committing
            self._raise_for_duplicate_key(error, self.supertype_schema)
            raise
