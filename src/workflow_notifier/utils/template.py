"""Message template system for placeholder-based notification content.

This module provides safe ``{placeholder}`` replacement for notification
subjects and bodies. Only known placeholders may appear in a template, which
prevents template injection, and values are converted to strings without
evaluating anything.

``PlaceholderTemplateEngine`` is the default template engine used by the
content renderer: it is activated with a workflow and its triggering event,
substitutes any number of texts, and is deactivated when rendering ends.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Set
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from workflow_notifier.types.models import TriggerContext, WorkflowDefinition

# Known placeholders that can be used in templates
KNOWN_PLACEHOLDERS: Final[Set[str]] = frozenset({
    "workflow_id",
    "workflow_title",
    "action",
    "post_id",
    "post_title",
    "post_type",
    "author_id",
    "old_status",
    "new_status",
})

# Matches {placeholder_name} format (lowercase letters, numbers, underscores)
PLACEHOLDER_PATTERN: Final[re.Pattern[str]] = re.compile(r"\{([a-z_][a-z0-9_]*)\}")


class TemplateError(ValueError):
    """Raised when template validation or processing fails."""


def identify_placeholders(template: str) -> Set[str]:
    """Identify all placeholders in a template string.

    Example:
        >>> identify_placeholders("{post_title} moved to {new_status}")
        frozenset({'post_title', 'new_status'})
    """
    return frozenset(PLACEHOLDER_PATTERN.findall(template))


def validate_template(template: str) -> None:
    """Validate that a template only uses known placeholders.

    Raises:
        TemplateError: If template contains unknown placeholders
    """
    unknown = identify_placeholders(template) - KNOWN_PLACEHOLDERS
    if unknown:
        msg = (
            f"Template contains unknown placeholders: {sorted(unknown)}. "
            f"Known placeholders are: {sorted(KNOWN_PLACEHOLDERS)}"
        )
        raise TemplateError(msg)


def replace_placeholders(template: str, values: Mapping[str, object]) -> str:
    """Replace placeholders in template with provided values.

    Text outside ``{placeholder}`` markers, including stray braces, is left
    untouched.

    Raises:
        TemplateError: If a placeholder in the template has no value

    Example:
        >>> replace_placeholders("Status: {new_status}", {"new_status": "pending"})
        'Status: pending'
    """
    missing = identify_placeholders(template) - values.keys()
    if missing:
        raise TemplateError(f"Missing values for placeholders: {sorted(missing)}")

    def _replace(match: re.Match[str]) -> str:
        value = values[match.group(1)]
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def placeholder_values(
    workflow: WorkflowDefinition, context: TriggerContext
) -> dict[str, object]:
    """Build the placeholder values available for a workflow run."""
    return {
        "workflow_id": workflow.id,
        "workflow_title": workflow.title,
        "action": context.action,
        "post_id": context.post.id,
        "post_title": context.post.title,
        "post_type": context.post.post_type,
        "author_id": context.post.author_id,
        "old_status": context.old_status,
        "new_status": context.new_status,
    }


class PlaceholderTemplateEngine:
    """Template engine substituting known placeholders for one active run."""

    def __init__(self) -> None:
        self._values: dict[str, object] | None = None

    @property
    def is_active(self) -> bool:
        return self._values is not None

    def activate(self, workflow: WorkflowDefinition, context: TriggerContext) -> None:
        self._values = placeholder_values(workflow, context)

    def substitute(self, text: str) -> str:
        if self._values is None:
            raise TemplateError("Template engine used outside of an active render scope")
        validate_template(text)
        return replace_placeholders(text, self._values)

    def deactivate(self) -> None:
        self._values = None
