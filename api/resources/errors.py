"""
Admin engine error taxonomy.

The engine raises these and never HTTPException; `resources/router.py` maps
each kind to a status code (validation / not found / stale -> 4xx, wrapped
database failures -> 5xx).
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from core.oplog import log_operation


class AdminError(Exception):
    """Base class for every error the admin engine raises on purpose."""


class UnsupportedResourceType(AdminError):
    def __init__(self, resource_type: str | None) -> None:
        self.resource_type = resource_type
        super().__init__(f"Unsupported resource type: {resource_type}")


class UnsupportedLookupType(AdminError):
    def __init__(self, lookup_type: str | None) -> None:
        self.lookup_type = lookup_type
        super().__init__(f"Unsupported lookup type: {lookup_type}")


class NoValidColumns(AdminError):
    def __init__(self, resource_type: str, operation: str) -> None:
        self.resource_type = resource_type
        self.operation = operation
        super().__init__(f"No valid columns provided for {operation} on {resource_type}")


class InsertReturnedNoRow(AdminError):
    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(f"Insert into {resource_type} did not return a record")


class ResourceNotFound(AdminError):
    def __init__(self, resource_type: str, resource_id: Any) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} with id {resource_id} not found")


class StaleChange(AdminError):
    """The live value no longer matches what the change was proposed against."""

    def __init__(self, field: str, expected: Any, actual: Any) -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Field {field} has been modified since change was proposed. "
            f"Expected: {expected!r}, Current: {actual!r}"
        )


class ValidationFailed(AdminError):
    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(message)


class AdminModelError(AdminError):
    """Wraps an unexpected (usually database) failure."""

    def __init__(self, operation: str, resource_type: str, original_error: BaseException) -> None:
        self.operation = operation
        self.resource_type = resource_type
        self.original_error = original_error
        super().__init__(f"Admin {operation} failed for {resource_type}: {original_error}")


@contextmanager
def wrap_errors(operation: str, resource_type: str) -> Iterator[None]:
    """
    Let taxonomy errors through untouched; wrap anything else in AdminModelError.
    """
    try:
        yield
    except AdminError:
        raise
    except Exception as exc:
        log_operation("error", operation, resource_type, "Operation failed", error=str(exc))
        raise AdminModelError(operation, resource_type, exc) from exc
