"""Structured errors raised across the visit workflows.

Every error carries a machine-readable ``kind`` plus a short display
message.  Remediation instructions are rendered by the UI layer from the
kind, they are never baked into the raised value.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    NETWORK = "network"
    PERMISSION = "permission"
    MISSING_SCHEMA = "missing_schema"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    VALIDATION = "validation"
    BACKEND = "backend"


class VisitAppError(Exception):
    """Base class for errors that are shown to the user."""

    kind: ErrorKind = ErrorKind.BACKEND

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def __str__(self) -> str:
        return self.message


class ConfigurationError(VisitAppError):
    """Raised when the backend credentials or settings are incomplete."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, missing: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing


class StoreError(VisitAppError):
    """A visit store operation failed."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.BACKEND,
        *,
        context: str = "",
        code: Optional[str] = None,
    ):
        super().__init__(message, kind)
        self.context = context
        self.code = code


class ImportValidationError(VisitAppError):
    """A spreadsheet could not be converted into visits."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, row: Optional[int] = None, column: Optional[str] = None):
        super().__init__(message)
        self.row = row
        self.column = column


class InvalidTransitionError(VisitAppError):
    """The controller was asked to do something its current state forbids."""

    kind = ErrorKind.VALIDATION


_MISSING_SCHEMA_MARKERS = (
    "could not find the function",
    "does not exist",
    "no existe la relación",
    "catalog error",
)

_DUPLICATE_MARKERS = (
    "unique constraint",
    "duplicate key",
)

_NETWORK_MARKERS = (
    "connection refused",
    "connecterror",
    "name or service not known",
    "network is unreachable",
    "failed to establish",
)


def classify_backend_error(exc: BaseException, context: str) -> StoreError:
    """Convert an arbitrary backend exception into a ``StoreError``.

    Backends report failures in very different shapes (postgrest
    ``APIError`` with ``code``/``message`` attributes, DuckDB exceptions,
    socket errors).  Only the attributes are inspected so the function
    works for all of them without importing any backend library.
    """

    if isinstance(exc, StoreError):
        return exc

    code = getattr(exc, "code", None)
    code = str(code) if code not in (None, "") else None
    detail = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    lowered = f"{exc.__class__.__name__} {detail}".lower()

    if isinstance(exc, TimeoutError):
        kind = ErrorKind.TIMEOUT
        message = f"El servidor no respondió a tiempo durante la {context}."
    elif code == "42501":
        kind = ErrorKind.PERMISSION
        message = f"Una política de seguridad bloqueó la operación de {context}."
    elif code == "23505" or any(marker in lowered for marker in _DUPLICATE_MARKERS):
        kind = ErrorKind.DUPLICATE
        message = f"El registro ya existe ({context})."
    elif any(marker in lowered for marker in _MISSING_SCHEMA_MARKERS):
        kind = ErrorKind.MISSING_SCHEMA
        message = f"Faltan tablas o funciones en la base de datos ({context}): {detail}"
    elif isinstance(exc, ConnectionError) or any(marker in lowered for marker in _NETWORK_MARKERS):
        kind = ErrorKind.NETWORK
        message = f"No se pudo conectar con la base de datos durante la {context}."
    else:
        kind = ErrorKind.BACKEND
        message = f"Ocurrió un error en la operación de {context}. Código: {code or 'N/A'}. Mensaje: {detail}"
    return StoreError(message, kind, context=context, code=code)
