"""Storage ids are `bson.ObjectId`s. Entities expose them as strings, so ids coming from callers are converted back
before they reach the database."""
from typing import Any

from bson import ObjectId


_LOGICAL_OPERATORS = frozenset({"$and", "$or", "$nor"})


def to_storage_id(id: Any) -> Any:
    """Converts a public string id to the ObjectId it was generated from. Other values are used as they are."""
    if isinstance(id, str) and ObjectId.is_valid(id):
        return ObjectId(id)

    return id


def storage_filters(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """Converts the ids in every `_id` condition of a filter to storage ids, including the conditions nested in
    `$and`, `$or` and `$nor` clauses."""
    if not filters:
        return filters

    converted = {}
    for key, condition in filters.items():
        if key == "_id":
            converted[key] = _storage_id_condition(condition)

        elif key in _LOGICAL_OPERATORS and isinstance(condition, list):
            converted[key] = [
                storage_filters(clause) if isinstance(clause, dict) else clause for clause in condition
            ]

        else:
            converted[key] = condition

    return converted


def _storage_id_condition(condition: Any) -> Any:
    match condition:
        case dict():
            return {
                operator: [to_storage_id(item) for item in value] if isinstance(value, list) else to_storage_id(value)
                for operator, value in condition.items()
            }

        case _:
            return to_storage_id(condition)
