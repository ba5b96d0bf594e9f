"""Structured audit logging."""

from thinktank.auditlog.logger import (
    AuditLogError,
    AuditLogger,
    FileAuditLogger,
    NoOpAuditLogger,
)
from thinktank.auditlog.models import AuditEntry, AuditStatus, ErrorInfo


__all__ = [
    "AuditEntry",
    "AuditLogError",
    "AuditLogger",
    "AuditStatus",
    "ErrorInfo",
    "FileAuditLogger",
    "NoOpAuditLogger",
]
