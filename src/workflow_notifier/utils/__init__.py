"""Shared utility modules for common operations.

This package provides:
- Structured logging with correlation IDs and redaction
- Sanitization of receiver addresses and secrets
- Message template system (placeholder-based content formatting)
"""

from workflow_notifier.utils.sanitization import (
    REDACTED,
    mask_email,
    sanitize_exception,
    sanitize_receiver,
    sanitize_text,
    sanitize_value,
)
from workflow_notifier.utils.template import (
    KNOWN_PLACEHOLDERS,
    PlaceholderTemplateEngine,
    TemplateError,
    identify_placeholders,
    placeholder_values,
    replace_placeholders,
    validate_template,
)

__all__ = [
    # Sanitization
    "REDACTED",
    "mask_email",
    "sanitize_exception",
    "sanitize_receiver",
    "sanitize_text",
    "sanitize_value",
    # Template system
    "KNOWN_PLACEHOLDERS",
    "PlaceholderTemplateEngine",
    "TemplateError",
    "identify_placeholders",
    "placeholder_values",
    "replace_placeholders",
    "validate_template",
]
