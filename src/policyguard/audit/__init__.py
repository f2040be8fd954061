"""Append-only audit log of enforcement decisions and interactions."""

from .logger import DEFAULT_QUERY_LIMIT, AuditLogger, AuditRecord, AuditStats
from .models import AuditLogEntry, Base

__all__ = [
    "DEFAULT_QUERY_LIMIT",
    "AuditLogEntry",
    "AuditLogger",
    "AuditRecord",
    "AuditStats",
    "Base",
]
