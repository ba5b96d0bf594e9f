"""Secret redaction for log output."""

import re
from collections.abc import MutableMapping
from typing import Any


REDACTED_VALUE = "[REDACTED]"

# Keys whose values must never appear in logs
SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "apikey",
        "authorization",
        "x-api-key",
        "x-goog-api-key",
        "token",
        "secret",
        "password",
    }
)

_SECRET_PATTERNS = (
    re.compile(r"sk-[A-Za-z0-9_\-]{16,}"),
    re.compile(r"AIza[0-9A-Za-z_\-]{30,}"),
    re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]{8,}"),
    re.compile(r"(?i)(api[_-]?key=)[^&\s]+"),
)


def redact_text(text: str) -> str:
    """Replace anything that looks like a provider credential.

    Args:
        text: Free-form text such as an error message.

    Returns:
        Text with credential-shaped substrings replaced.
    """
    for pattern in _SECRET_PATTERNS:
        if pattern.groups:
            text = pattern.sub(lambda m: m.group(1) + REDACTED_VALUE, text)
        else:
            text = pattern.sub(REDACTED_VALUE, text)
    return text


def is_sensitive_key(key: str) -> bool:
    """Check if an event dict key names a secret."""
    return key.lower() in SENSITIVE_KEYS


def redact_secrets(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that scrubs credentials from every event.

    Values under sensitive keys are replaced outright; string values
    elsewhere are scanned for credential-shaped substrings.
    """
    for key, value in list(event_dict.items()):
        if is_sensitive_key(key):
            event_dict[key] = REDACTED_VALUE
        elif isinstance(value, str):
            event_dict[key] = redact_text(value)
    return event_dict
