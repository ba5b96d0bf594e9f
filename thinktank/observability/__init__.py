"""Logging setup and secret redaction."""

from thinktank.observability.logging import (
    bind_correlation_id,
    clear_correlation_id,
    configure_logging,
)
from thinktank.observability.redact import REDACTED_VALUE, redact_secrets


__all__ = [
    "REDACTED_VALUE",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "redact_secrets",
]
