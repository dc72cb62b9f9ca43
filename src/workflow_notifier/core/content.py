"""Notification content rendering.

Content is computed once per workflow run: the content source produces the
raw subject and body, and the template engine substitutes placeholders in
both while it is bound to the workflow and its triggering event.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

from workflow_notifier.core.errors import RenderError
from workflow_notifier.types.models import (
    NotificationContent,
    TriggerContext,
    WorkflowDefinition,
)
from workflow_notifier.types.protocols import ContentSource, TemplateEngine
from workflow_notifier.utils.logging import get_logger
from workflow_notifier.utils.sanitization import sanitize_exception

__all__ = ["ContentRenderer", "NullContentSource", "template_scope"]


class NullContentSource:
    """Content source producing no content; subject and body stay empty."""

    def compute_content(
        self,
        content: Mapping[str, object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> Mapping[str, object]:
        return content


@contextmanager
def template_scope(
    engine: TemplateEngine,
    workflow: WorkflowDefinition,
    context: TriggerContext,
) -> Iterator[TemplateEngine]:
    """Activate the template engine for one render, always deactivating it."""
    engine.activate(workflow, context)
    try:
        yield engine
    finally:
        engine.deactivate()


class ContentRenderer:
    """Render the subject/body pair for a workflow run."""

    def __init__(
        self,
        content_source: ContentSource,
        template_engine: TemplateEngine,
        *,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._content_source: ContentSource = content_source
        self._template_engine: TemplateEngine = template_engine
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def render(self, workflow: WorkflowDefinition, context: TriggerContext) -> NotificationContent:
        """Compute and substitute the content for one run.

        Raises:
            RenderError: If the content source or the template engine fails
        """
        try:
            with template_scope(self._template_engine, workflow, context) as engine:
                raw = self._content_source.compute_content(
                    {"subject": "", "body": ""}, workflow, context
                )
                content = NotificationContent.from_mapping(raw)
                rendered = NotificationContent(
                    subject=engine.substitute(content.subject),
                    body=engine.substitute(content.body),
                )
        except RenderError:
            raise
        except Exception as exc:
            msg = f"Failed to render content for workflow {workflow.id}: {sanitize_exception(exc)}"
            raise RenderError(workflow.id, msg) from exc

        self._logger.debug(
            "Rendered notification content",
            extra={
                "workflow_id": workflow.id,
                "subject_length": len(rendered.subject),
                "body_length": len(rendered.body),
            },
        )
        return rendered
