from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping

from tramp.optionals import Optional

from polydoc.drivers import BaseDriverSession
from polydoc.search_options import SearchOptions


class Repository[T](ABC):
    """The operations every repository of a polymorphic entity hierarchy provides."""

    @abstractmethod
    async def find_by_id(self, id: str, *, session: BaseDriverSession | None = None) -> Optional[T]:
        """Finds the entity stored with the id. `Optional.Nothing()` when there is none."""
        ...

    @abstractmethod
    async def find_all(
        self, options: SearchOptions | None = None, *, session: BaseDriverSession | None = None
    ) -> list[T]:
        """Finds every entity matching the options' filters, sorted and paginated as the options request."""
        ...

    @abstractmethod
    async def save(
        self,
        entity_or_partial: T | Mapping[str, Any],
        *,
        user_id: str | None = None,
        session: BaseDriverSession | None = None,
    ) -> T:
        """Inserts an entity without an id, updates the stored entity otherwise. Returns the saved entity."""
        ...

    @abstractmethod
    async def delete_by_id(self, id: str, *, session: BaseDriverSession | None = None) -> bool:
        """Deletes the entity stored with the id. Returns `True` iff an entity was removed."""
        ...

    @abstractmethod
    def instantiate_from(self, document: Mapping[str, Any]) -> T:
        """Constructs the entity a stored document describes."""
        ...


class BatchRepository[T](Repository[T]):
    """A repository that can save and delete many entities at once."""

    @abstractmethod
    async def save_all(
        self,
        entities: Iterable[T | Mapping[str, Any]],
        *,
        user_id: str | None = None,
        session: BaseDriverSession | None = None,
    ) -> list[T]:
        """Saves every entity in a single transaction. Either all are saved or none are."""
        ...

    @abstractmethod
    async def delete_all(
        self, filters: Mapping[str, Any] | None = None, *, session: BaseDriverSession | None = None
    ) -> int:
        """Deletes every entity matching the filters and returns how many were removed."""
        ...
