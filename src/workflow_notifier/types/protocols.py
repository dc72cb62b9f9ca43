"""Protocol definitions for component interfaces.

This module defines structural subtyping protocols for the collaborators the
workflow core depends on. Storage, preference lookups, content hooks,
templating, transports and scheduling are all external to the core and are
injected through these interfaces.
"""

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from workflow_notifier.types.aliases import ChannelName
from workflow_notifier.types.models import (
    ContentItem,
    DeliveryRequest,
    TriggerContext,
    WorkflowDefinition,
    WorkflowQuery,
)


class WorkflowStore(Protocol):
    """Storage of workflow definitions."""

    def find_workflows(self, query: WorkflowQuery) -> Sequence[WorkflowDefinition]:
        """Return all definitions matching the query, in storage order."""
        ...

    def get_workflow(self, workflow_id: int) -> WorkflowDefinition | None:
        """Return a single definition by id, or None when it does not exist."""
        ...


class ReceiverSource(Protocol):
    """Source of raw receivers for a workflow run."""

    def compute_receivers(
        self, workflow: WorkflowDefinition, context: TriggerContext
    ) -> list[object]:
        """Return raw receivers (user ids and ``email:`` prefixed addresses).

        The list may contain duplicates and values of mixed types.
        """
        ...


class ChannelPreferenceStore(Protocol):
    """Per-user channel preferences keyed by workflow."""

    def get_channel_preference(self, user_id: int, workflow_id: int) -> ChannelName | None:
        """Return the channel a user picked for a workflow, if any."""
        ...

    def get_channel_preferences(
        self, workflow_id: int, user_ids: Sequence[int]
    ) -> Mapping[int, ChannelName]:
        """Return stored preferences for many users at once.

        Users without a stored preference are absent from the result.
        """
        ...


class ContentSource(Protocol):
    """Hook computing the raw subject/body for a workflow run."""

    def compute_content(
        self,
        content: Mapping[str, object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> Mapping[str, object]:
        """Return the content mapping; subject and body are both optional."""
        ...


class TemplateEngine(Protocol):
    """Placeholder substitution engine with scoped activation."""

    def activate(self, workflow: WorkflowDefinition, context: TriggerContext) -> None:
        """Bind the workflow and event so placeholders can be resolved."""
        ...

    def substitute(self, text: str) -> str:
        """Replace placeholders in text."""
        ...

    def deactivate(self) -> None:
        """Release the bound workflow and event."""
        ...


@runtime_checkable
class ChannelTransport(Protocol):
    """Transport delivering one notification on one channel."""

    channel: ChannelName

    def deliver(self, request: DeliveryRequest) -> None:
        """Send the notification described by the request.

        Raises:
            Exception: Any transport failure; the caller isolates it
        """
        ...


class Scheduler(Protocol):
    """Time based one-shot scheduler used for deferred delivery."""

    def schedule_at(self, timestamp: float, action_name: str, payload: Sequence[object]) -> None:
        """Schedule action_name to run with payload at timestamp (fire and forget)."""
        ...


class ContentLookup(Protocol):
    """Resolves content items by id when replaying deferred units."""

    def __call__(self, content_id: int) -> ContentItem | None: ...


__all__ = [
    "ChannelPreferenceStore",
    "ChannelTransport",
    "ContentLookup",
    "ContentSource",
    "ReceiverSource",
    "Scheduler",
    "TemplateEngine",
    "WorkflowStore",
]
