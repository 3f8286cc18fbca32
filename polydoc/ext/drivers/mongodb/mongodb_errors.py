"""Classifies the errors raised by pymongo using their error codes, labels and details. Error messages are never
inspected."""
from typing import Any, Mapping

from pymongo.errors import BulkWriteError, DuplicateKeyError, OperationFailure, PyMongoError

from polydoc.drivers.exceptions import DriverErrorInfo, DriverErrorKind, UNCLASSIFIED


DUPLICATE_KEY_CODES = frozenset({11000, 11001, 12582})
INVALID_QUERY_CODES = frozenset({2})  # BadValue
TRANSIENT_TRANSACTION_ERROR = "TransientTransactionError"


def classify_error(error: BaseException) -> DriverErrorInfo:
    match error:
        case DuplicateKeyError():
            return _duplicate_key(error.details)

        case BulkWriteError():
            for write_error in (error.details or {}).get("writeErrors", ()):
                if write_error.get("code") in DUPLICATE_KEY_CODES:
                    return _duplicate_key(write_error)

            return UNCLASSIFIED

        case OperationFailure(code=code) if code in DUPLICATE_KEY_CODES:
            return _duplicate_key(error.details)

        case PyMongoError() if error.has_error_label(TRANSIENT_TRANSACTION_ERROR):
            return DriverErrorInfo(DriverErrorKind.TRANSIENT_CONFLICT)

        case OperationFailure(code=code) if code in INVALID_QUERY_CODES:
            return DriverErrorInfo(DriverErrorKind.INVALID_QUERY)

        case _:
            return UNCLASSIFIED


def _duplicate_key(details: Mapping[str, Any] | None) -> DriverErrorInfo:
    details = details or {}
    key_pattern = details.get("keyPattern") or details.get("keyValue") or {}
    return DriverErrorInfo(DriverErrorKind.DUPLICATE_KEY, tuple(key_pattern))
