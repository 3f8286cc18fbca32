"""Evaluates MongoDB style filters and sorts against in-memory documents.

Supported filter operators are `$eq`, `$ne`, `$gt`, `$gte`, `$lt`, `$lte`, `$in`, `$nin` and `$exists` on fields, and
`$and`, `$or` and `$nor` at the top level of a filter. Field names may be dotted paths into embedded documents, and a
condition on an array field matches when it matches the array or any of its elements, as it does in MongoDB."""
from collections.abc import Mapping
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Callable, Iterable

from bson import ObjectId

from polydoc.drivers.exceptions import InvalidQueryError


type Document = dict[str, Any]

_MISSING = object()


def matches(document: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    if not filters:
        return True

    if not isinstance(filters, Mapping):
        raise InvalidQueryError(f"Filters must be a mapping, got {filters!r}")

    return all(_matches_clause(document, key, condition) for key, condition in filters.items())


def sort_documents(documents: Iterable[Document], sort: list[tuple[str, int]] | None) -> list[Document]:
    """Sorts documents by each (field, direction) pair in turn. Missing fields sort before every other value."""
    documents = list(documents)
    for field, direction in reversed(sort or []):
        if direction not in (1, -1):
            raise InvalidQueryError(f"Sort directions must be 1 or -1, got {direction!r} for {field!r}")

        documents.sort(key=cmp_to_key(_field_comparator(field)), reverse=direction == -1)

    return documents


def _matches_clause(document: Mapping[str, Any], key: str, condition: Any) -> bool:
    match key:
        case "$and":
            return all(matches(document, clause) for clause in _clauses(key, condition))

        case "$or":
            return any(matches(document, clause) for clause in _clauses(key, condition))

        case "$nor":
            return not any(matches(document, clause) for clause in _clauses(key, condition))

        case str() if key.startswith("$"):
            raise InvalidQueryError(f"Unknown top level operator {key!r}")

        case _:
            return _matches_condition(resolve(document, key), condition)


def _clauses(operator: str, condition: Any) -> list[Mapping[str, Any]]:
    if not isinstance(condition, list) or not condition:
        raise InvalidQueryError(f"{operator} requires a non-empty list of filters, got {condition!r}")

    return condition


def _matches_condition(candidates: list[Any], condition: Any) -> bool:
    if not _is_operator_document(condition):
        return _equals(candidates, condition)

    return all(_apply_operator(candidates, operator, value) for operator, value in condition.items())


def _is_operator_document(condition: Any) -> bool:
    if not isinstance(condition, Mapping) or not condition:
        return False

    operators = [key.startswith("$") for key in condition]
    if any(operators) and not all(operators):
        raise InvalidQueryError(f"Cannot mix operators and fields in {condition!r}")

    return all(operators)


def _apply_operator(candidates: list[Any], operator: str, value: Any) -> bool:
    match operator:
        case "$eq":
            return _equals(candidates, value)

        case "$ne":
            return not _equals(candidates, value)

        case "$gt":
            return _compare(candidates, value, lambda result: result > 0)

        case "$gte":
            return _compare(candidates, value, lambda result: result >= 0)

        case "$lt":
            return _compare(candidates, value, lambda result: result < 0)

        case "$lte":
            return _compare(candidates, value, lambda result: result <= 0)

        case "$in":
            return any(_equals(candidates, item) for item in _values_list(operator, value))

        case "$nin":
            return not any(_equals(candidates, item) for item in _values_list(operator, value))

        case "$exists":
            return bool(candidates) == bool(value)

        case _:
            raise InvalidQueryError(f"Unknown operator {operator!r}")


def _values_list(operator: str, value: Any) -> list[Any]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise InvalidQueryError(f"{operator} requires a list of values, got {value!r}")

    return list(value)


def _equals(candidates: list[Any], value: Any) -> bool:
    if value is None:
        return not candidates or any(candidate is None for candidate in candidates)

    return any(candidate == value for candidate in candidates)


def _compare(candidates: list[Any], value: Any, accept: Callable[[int], bool]) -> bool:
    for candidate in candidates:
        if candidate is None or value is None or _type_rank(candidate) != _type_rank(value):
            continue

        if accept(_compare_values(candidate, value)):
            return True

    return False


def resolve(document: Any, path: str) -> list[Any]:
    """Finds the values a dotted path refers to. Arrays contribute both themselves and their elements."""
    values = [document]
    for part in path.split("."):
        found = []
        for value in values:
            match value:
                case Mapping() if part in value:
                    found.append(value[part])

                case list():
                    found.extend(
                        item[part] for item in value if isinstance(item, Mapping) and part in item
                    )
                    if part.isdigit() and int(part) < len(value):
                        found.append(value[int(part)])

        values = found

    candidates = []
    for value in values:
        candidates.append(value)
        if isinstance(value, list):
            candidates.extend(value)

    return candidates


def _field_comparator(field: str) -> Callable[[Document, Document], int]:
    def compare(a: Document, b: Document) -> int:
        return _compare_values(_sort_value(a, field), _sort_value(b, field))

    return compare


def _sort_value(document: Document, field: str) -> Any:
    candidates = resolve(document, field)
    return candidates[0] if candidates else _MISSING


def _type_rank(value: Any) -> int:
    match value:
        case _ if value is _MISSING or value is None:
            return 0

        case bool():
            return 8

        case int() | float():
            return 1

        case str():
            return 2

        case Mapping():
            return 3

        case list():
            return 4

        case ObjectId():
            return 7

        case datetime():
            return 9

        case _:
            return 10


def _compare_values(a: Any, b: Any) -> int:
    rank_a, rank_b = _type_rank(a), _type_rank(b)
    if rank_a != rank_b:
        return -1 if rank_a < rank_b else 1

    if rank_a == 0:
        return 0

    try:
        if a < b:
            return -1

        if a > b:
            return 1

    except TypeError:
        return 0

    return 0
