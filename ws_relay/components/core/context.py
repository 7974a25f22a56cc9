"""
Logging helpers for user-provided payloads.
"""

from __future__ import annotations

import re

from ws_relay.components.core.constants import RelayConstants

# Control characters and Unicode direction overrides that could forge log lines
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'  # ASCII control characters
    r'\u200b-\u200f'  # Zero-width and direction marks
    r'\u202a-\u202e'  # Bidirectional text formatting (RTL override, etc.)
    r'\u2066-\u2069'  # Isolate formatting characters
    r'\ufeff]'  # BOM / Zero-width no-break space
)


def sanitize_log_data(
    data: str | bytes,
    max_length: int = RelayConstants.LOG_PAYLOAD_MAX_LENGTH,
) -> str:
    """
    Sanitize a payload before logging.

    Binary payloads are summarised by size. Text is truncated first, then
    stripped of control characters and escaped, so the output length is
    predictable.

    Args:
        data: Raw payload.
        max_length: Maximum characters to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    if isinstance(data, (bytes, bytearray)):
        return f"<{len(data)} bytes>"

    was_truncated = len(data) > max_length
    truncated = data[:max_length]

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized


def payload_size(payload: str | bytes) -> int:
    """Size of a payload in bytes as it travels on the wire."""
    if isinstance(payload, str):
        return len(payload.encode("utf-8"))
    return len(payload)
