"""Redaction of argument payloads for logs, audit records and projections.

Provides:
- is_likely_secret: Detect bearer strings and long mixed alphanumeric tokens
- redact_value: Redact a single keyed value
- redact_object: Redact every value of a mapping, recursively
"""

import re
from typing import Any

SECRET_KEY_RE = re.compile(
    r"(token|secret|password|authorization|cookie|api[_-]?key|apikey|pit|client[_-]?secret|client[_-]?id)",
    re.IGNORECASE,
)
BEARER_RE = re.compile(r"\bBearer\s+[\w\-.=:]+\b", re.IGNORECASE)
LONG_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]{20,}")

MAX_PLAIN_LENGTH = 120


def is_likely_secret(value: Any) -> bool:
    """Check whether a value looks like a credential.

    Args:
        value: Any argument value

    Returns:
        True for bearer strings and 20+ character tokens mixing letters and digits
    """
    if not isinstance(value, str):
        return False
    if BEARER_RE.search(value):
        return True
    return bool(
        LONG_TOKEN_RE.search(value)
        and re.search(r"[A-Za-z]", value)
        and re.search(r"\d", value)
    )


def redact_value(key: str, value: Any) -> Any:
    """Redact one value given the key it is stored under.

    Secret-looking keys are replaced outright, secret-looking strings keep a
    four character head and tail, and long strings are truncated.

    Args:
        key: Argument key (list items use ``key[index]``)
        value: Argument value

    Returns:
        Redacted copy of the value
    """
    if SECRET_KEY_RE.search(str(key)):
        return "[REDACTED]"
    if isinstance(value, str):
        if is_likely_secret(value):
            return f"{value[:4]}…{value[-4:]}"
        if len(value) > MAX_PLAIN_LENGTH:
            return f"{value[:60]}…{value[-20:]}"
        return value
    if isinstance(value, (list, tuple)):
        return [redact_value(f"{key}[{idx}]", item) for idx, item in enumerate(value)]
    if isinstance(value, dict):
        return redact_object(value)
    return value


def redact_object(obj: Any) -> Any:
    """Redact every value of a mapping. Non-mappings are returned unchanged."""
    if not isinstance(obj, dict):
        return obj
    return {key: redact_value(key, value) for key, value in obj.items()}
