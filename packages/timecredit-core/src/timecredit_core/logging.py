"""
Logging utilities for TimeCredit with sensitive data masking.

Employee credentials are raw private keys, so anything that may end up in a
log record goes through `mask_sensitive_data` first.

Usage:
    import logging
    from timecredit_core.logging import mask_sensitive_data

    logger = logging.getLogger(__name__)

    logger.info("Withdrawal requested", extra={"data": mask_sensitive_data({
        "user_code": "E001",
        "credential": "0x4c08...",  # Will be masked
    })})
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, Union

MASK_PATTERN = "***REDACTED***"
MAX_LOG_MESSAGE_LENGTH = 10000

SENSITIVE_FIELDS = frozenset({
    "private_key",
    "owner_private_key",
    "credential",
    "mnemonic",
    "seed",
    "password",
    "secret",
    "authorization",
})

_SENSITIVE_FRAGMENTS = ("secret", "password", "private", "credential", "mnemonic")

_INLINE_PATTERNS = [
    # 32-byte hex private keys, with or without 0x. Transaction hashes share
    # the shape, so only mask when labelled as a key.
    (r'((?:private_?key|credential|secret)["\']?\s*[=:]\s*["\']?)(0x)?[0-9a-fA-F]{64}', r'\1***'),
    # URLs with credentials
    (r'(https?://)[^:/\s]+:[^@/\s]+@', r'\1***:***@'),
    # Bearer tokens
    (r'(Bearer\s+)[a-zA-Z0-9._-]+', r'\1***'),
]


# =============================================================================
# Sensitive Data Masking
# =============================================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """Mask a sensitive value, optionally showing first/last characters.

    Args:
        value: The value to mask
        show_chars: Number of characters to show at start and end

    Returns:
        Masked string
    """
    if not value or len(value) <= show_chars * 2:
        return MASK_PATTERN

    return f"{value[:show_chars]}...{value[-show_chars:]}"


def is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    key_lower = key.lower().replace("-", "_")
    return key_lower in SENSITIVE_FIELDS or any(
        fragment in key_lower for fragment in _SENSITIVE_FRAGMENTS
    )


def mask_sensitive_data(
    data: Any,
    additional_fields: Optional[Sequence[str]] = None,
    mask_pattern: str = MASK_PATTERN,
    _depth: int = 0,
    _max_depth: int = 10,
) -> Any:
    """Recursively mask sensitive data in a data structure.

    Args:
        data: The data structure to mask (dict, list, or scalar)
        additional_fields: Additional field names to mask
        mask_pattern: Pattern to replace sensitive values with

    Returns:
        Copy of data with sensitive values masked
    """
    if _depth > _max_depth:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if is_sensitive_key(str(key)):
                result[key] = mask_pattern
            elif additional_fields and key in additional_fields:
                result[key] = mask_pattern
            else:
                result[key] = mask_sensitive_data(
                    value,
                    additional_fields,
                    mask_pattern,
                    _depth + 1,
                    _max_depth,
                )
        return result

    elif isinstance(data, (list, tuple)):
        return type(data)(
            mask_sensitive_data(
                item,
                additional_fields,
                mask_pattern,
                _depth + 1,
                _max_depth,
            )
            for item in data
        )

    elif isinstance(data, str):
        return _mask_inline_patterns(data)

    return data


def _mask_inline_patterns(text: str) -> str:
    """Mask labelled keys, credentialed URLs and bearer tokens in free text."""
    if len(text) > MAX_LOG_MESSAGE_LENGTH:
        text = text[:MAX_LOG_MESSAGE_LENGTH] + "...[truncated]"

    for pattern, replacement in _INLINE_PATTERNS:
        text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)

    return text


# =============================================================================
# Configuration
# =============================================================================

class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Formats log records as JSON for easy parsing by log aggregators.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _mask_inline_patterns(record.getMessage()),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "data") and record.data:
            log_data["data"] = mask_sensitive_data(record.data)

        return json.dumps(log_data, default=str)


class MaskingFormatter(logging.Formatter):
    """Plain-text formatter that masks keys and credentials in the output."""

    def format(self, record: logging.LogRecord) -> str:
        return _mask_inline_patterns(super().format(record))


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (int or name such as "INFO")
        json_format: Whether to use JSON formatting
        log_file: Optional file path for logging
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if json_format:
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(
            MaskingFormatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        )

    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(JsonFormatter())  # Always JSON for files
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True,
    )


__all__ = [
    "MASK_PATTERN",
    "mask_sensitive_data",
    "mask_value",
    "is_sensitive_key",
    "configure_logging",
    "JsonFormatter",
    "MaskingFormatter",
]
