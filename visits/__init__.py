"""Trade visit scheduling: records, month duplication and overlap checks."""

from .errors import ConfigurationError, ErrorKind, ImportValidationError, StoreError, VisitAppError
from .models import Activity, Visit, YearMonth
from .scheduling import duplicate_month, find_overlaps, format_overlaps

__all__ = [
    "Activity",
    "Visit",
    "YearMonth",
    "duplicate_month",
    "find_overlaps",
    "format_overlaps",
    "ConfigurationError",
    "ErrorKind",
    "ImportValidationError",
    "StoreError",
    "VisitAppError",
]
