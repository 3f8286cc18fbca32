"""Exceptions raised by polydoc repositories.

Every repository operation either resolves with a typed result or raises one of the exceptions defined here. Driver
level failures that the repository does not translate (connection problems, write errors it cannot classify) propagate
unchanged and are defined in `polydoc.drivers.exceptions`.

- `IllegalArgumentException`: the caller passed an invalid argument (missing id, invalid pagination, unknown sort
  direction, unregistered entity type).
- `NotFoundException`: an update targeted an id that matches no stored document.
- `ValidationException`: one or more fields violate their schema constraints. Carries the individual `Violation`s.
- `UniquenessViolationException`: a write collided with a unique index.
- `UndefinedConstructorException`: a stored document names a type the repository does not know how to build.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class PolydocException(Exception):
    """Base exception for all polydoc exceptions."""


class IllegalArgumentException(PolydocException, ValueError):
    """Raised when a caller provided argument is invalid."""


class NotFoundException(PolydocException):
    """Raised when an update targets an id with no matching document."""


class UndefinedConstructorException(PolydocException):
    """Raised when a stored document's discriminator has no registered constructor.

    This signals that the registry and the stored data disagree. It is a configuration defect, never a user input
    error.
    """


class ViolationKind(Enum):
    REQUIRED = "required"
    UNIQUE = "unique"
    TYPE = "type"


@dataclass(frozen=True)
class Violation:
    """A single field constraint violation.

    Attributes:
        field: The attribute name of the offending field.
        kind: What constraint was violated.
        message: A human readable description of the violation.
    """
    field: str
    kind: ViolationKind
    message: str = ""


class ValidationException(PolydocException):
    """Raised when an entity specifies one or more fields with invalid values.

    The violations are exposed as structured data so that callers can report each invalid field without parsing the
    message.

    Example:
        ```python
        try:
            await repository.save(Book(title=None, isbn="1"))
        except ValidationException as error:
            if error.is_required_violation("title"):
                ...
        ```
    """

    def __init__(self, message: str, violations: Iterable[Violation] = ()):
        super().__init__(message)
        self.violations: tuple[Violation, ...] = tuple(violations)
        for violation in self.violations:
            self.add_note(f" - {violation.field}: {violation.kind.value} {violation.message}".rstrip())

    def invalid_fields(self) -> tuple[str, ...]:
        """The names of all invalid fields, in the order they were reported, without duplicates."""
        return tuple(dict.fromkeys(violation.field for violation in self.violations))

    def violations_for(self, field: str) -> tuple[Violation, ...]:
        return tuple(violation for violation in self.violations if violation.field == field)

    def is_required_violation(self, field: str) -> bool:
        return self._has(field, ViolationKind.REQUIRED)

    def is_uniqueness_violation(self, field: str) -> bool:
        return self._has(field, ViolationKind.UNIQUE)

    def is_type_violation(self, field: str) -> bool:
        return self._has(field, ViolationKind.TYPE)

    def _has(self, field: str, kind: ViolationKind) -> bool:
        return any(violation.kind is kind for violation in self.violations_for(field))


class UniquenessViolationException(ValidationException):
    """Raised when a saved entity has a value that must be unique but is already stored."""

    def __init__(self, message: str, fields: Iterable[str] = ()):
        super().__init__(
            message,
            (Violation(field, ViolationKind.UNIQUE, "value is already in use") for field in fields),
        )
