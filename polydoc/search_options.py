"""
Options for `find_all`: filters, sort order and pagination.

Sort specifications map field names to direction tokens. The recognised tokens are `1`, `"asc"` and `"ascending"` for
ascending order and `-1`, `"desc"` and `"descending"` for descending order, or a `SortDirection`. Any other token is an
`IllegalArgumentException`.

Example:
    ```python
    options = SearchOptions(
        filters={"author": "Herbert"},
        sort_by={"title": "asc", "year": SortDirection.DESCENDING},
        pageable=Pageable(page_number=2, offset=10),
    )
    books = await repository.find_all(options)
    ```
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from polydoc.exceptions import IllegalArgumentException


class SortDirection(Enum):
    ASCENDING = 1
    DESCENDING = -1


type SortToken = SortDirection | int | str
type SortBy = Mapping[str, SortToken] | Iterable[tuple[str, SortToken]]


_SORT_TOKENS = {
    1: SortDirection.ASCENDING,
    "asc": SortDirection.ASCENDING,
    "ascending": SortDirection.ASCENDING,
    -1: SortDirection.DESCENDING,
    "desc": SortDirection.DESCENDING,
    "descending": SortDirection.DESCENDING,
}


def to_sort_direction(token: Any) -> SortDirection:
    match token:
        case SortDirection():
            return token

        case bool():
            raise IllegalArgumentException(f"Invalid sort direction {token!r}")

        case int() | str() if token in _SORT_TOKENS:
            return _SORT_TOKENS[token]

        case _:
            raise IllegalArgumentException(
                f"Invalid sort direction {token!r}, use one of {', '.join(map(repr, _SORT_TOKENS))}"
            )


def to_sort_spec(sort_by: SortBy | None) -> list[tuple[str, int]]:
    """Converts a sort specification to (field, 1 | -1) pairs, keeping the given order of the fields."""
    if not sort_by:
        return []

    items = sort_by.items() if isinstance(sort_by, Mapping) else sort_by
    return [(field, to_sort_direction(token).value) for field, token in items]


@dataclass(frozen=True)
class Pageable:
    """
    Selects one page of results.

    Attributes:
        page_number: The page to return, counting from 1. Zero or `None` means the first page.
        offset: The page size. Zero or `None` returns every result.
    """
    page_number: int | None = None
    offset: int | None = None

    def to_skip_limit(self) -> tuple[int, int]:
        """
        The number of results to skip and the maximum number to return. A limit of zero means no limit.

        Raises:
            IllegalArgumentException: The page number or the offset is negative.
        """
        page_number = self.page_number or 0
        offset = self.offset or 0
        if page_number < 0:
            raise IllegalArgumentException(f"The page number must not be negative, got {page_number}")

        if offset < 0:
            raise IllegalArgumentException(f"The offset must not be negative, got {offset}")

        if page_number == 0:
            return 0, offset

        return (page_number - 1) * offset, offset


@dataclass(frozen=True)
class SearchOptions:
    filters: Mapping[str, Any] | None = None
    sort_by: SortBy | None = None
    pageable: Pageable | None = None
