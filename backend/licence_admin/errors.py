"""Domain error taxonomy.

Controllers map each class to an HTTP status: validation and constraint
errors to 400, missing records to 404 and storage failures to 500.
Services wrap their bodies with `operation_context` so the message a
caller sees names the operation that failed while keeping the original
cause text and error class.
"""

import functools


class LicenceAdminError(Exception):
    """Base class for all errors raised by the access layer."""


class ValidationError(LicenceAdminError, ValueError):
    """Input rejected before any statement was executed."""


class ConstraintViolationError(ValidationError):
    """The database refused a write because of a unique, foreign-key or not-null constraint."""


class NotFoundError(LicenceAdminError, LookupError):
    """A lookup by unique key matched no row."""


class StorageError(LicenceAdminError, RuntimeError):
    """Any other database or runtime failure."""


class SchemaInitializationError(StorageError):
    """Schema creation or seeding failed; the process cannot serve requests."""


def operation_context(action: str):
    """Prefix errors escaping the wrapped function with ``Failed to <action>: ``.

    Domain errors keep their class so the HTTP status is preserved;
    anything else is reported as a `StorageError`.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except LicenceAdminError as exc:
                raise type(exc)(f"Failed to {action}: {exc}") from exc
            except Exception as exc:
                raise StorageError(f"Failed to {action}: {exc}") from exc
        return wrapper
    return decorator
