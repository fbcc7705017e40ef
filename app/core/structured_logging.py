"""Logging setup and PII-safe structured context."""

import logging
from typing import Any
from uuid import UUID

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Only identifiers go into log context. Customer names/contacts, tokens and
# webhook secrets never do.
SAFE_CONTEXT_KEYS = ("user_id", "case_id", "case_number", "webhook_id", "event")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level.upper())
        return
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_log_context(**fields: Any) -> dict[str, Any]:
    """
    Context for `logger.x(..., extra=...)`.

    Unknown keys and None values are dropped; UUIDs become strings.
    """
    context: dict[str, Any] = {}
    for key in SAFE_CONTEXT_KEYS:
        value = fields.get(key)
        if value is None:
            continue
        context[key] = str(value) if isinstance(value, UUID) else value
    return context
