from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Type, TYPE_CHECKING

from polydoc.exceptions import PolydocException

if TYPE_CHECKING:
    from polydoc.drivers import BaseDriver


class BaseDriverException(PolydocException):
    """Base exception for driver exceptions."""
    def __init__(self, *args, driver: "BaseDriver | Type[BaseDriver] | None" = None):
        super().__init__(*args)

        self.driver = driver
        if driver:
            self.add_note(f" - Using Driver: {driver!r}")


class DriverConnectFailed(BaseDriverException):
    """Raised when a driver fails to connect to a database."""


class DriverOperationError(BaseDriverException):
    """Raised for general errors during driver operations not covered by more specific exceptions."""


class DuplicateKeyError(DriverOperationError):
    """Raised when a write would store a value already present in a unique index."""
    def __init__(self, *args, fields: Iterable[str] = (), driver: "BaseDriver | Type[BaseDriver] | None" = None):
        super().__init__(*args, driver=driver)
        self.fields = tuple(fields)


class WriteConflictError(DriverOperationError):
    """Raised when a transaction writes a document that a concurrent transaction has already changed. Retrying the
    whole transaction is safe."""


class InvalidQueryError(DriverOperationError):
    """Raised when a filter or sort cannot be understood by the driver."""


class TransactionError(BaseDriverException):
    """Raised for errors related to transaction lifecycle (e.g., commit, abort, already open)."""


class DriverErrorKind(Enum):
    DUPLICATE_KEY = auto()
    TRANSIENT_CONFLICT = auto()
    INVALID_QUERY = auto()
    OTHER = auto()


@dataclass(frozen=True)
class DriverErrorInfo:
    """Structured classification of an error raised by a driver.

    Attributes:
        kind: The category the driver assigned to the error.
        fields: The stored field names involved, when the driver can tell (e.g. the keys of a violated unique index).
    """
    kind: DriverErrorKind
    fields: tuple[str, ...] = ()


UNCLASSIFIED = DriverErrorInfo(DriverErrorKind.OTHER)
