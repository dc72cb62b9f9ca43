"""Workflow steps and the static step registry.

A workflow is assembled from four kinds of steps. Event steps decide which
workflows an event selects, receiver steps contribute raw receivers, content
steps build the subject and body, and channel steps deliver. Steps are
registered explicitly at start-up (``register_default_steps`` plus any host
additions) and the registry exposes them to the core as the collaborators it
already understands: query filters, a receiver source, a content source and a
transport registry.

Built-in steps read their configuration from ``WorkflowDefinition.settings``::

    event:
      post_status: {from: [draft], to: [publish]}
      editorial_comment: true
    receivers:
      author: true
      users: [3, 7]
      emails: [editor@example.com]
    content:
      subject: "{post_title} is now {new_status}"
      body: "..."
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import ClassVar, override

from workflow_notifier.core.delivery import TransportRegistry
from workflow_notifier.core.receivers import EMAIL_PREFIX
from workflow_notifier.types.aliases import ChannelName, QueryFilter
from workflow_notifier.types.models import (
    DeliveryRequest,
    TriggerContext,
    WorkflowDefinition,
    WorkflowQuery,
)
from workflow_notifier.types.protocols import ChannelTransport
from workflow_notifier.utils.logging import get_logger

__all__ = [
    "AuthorReceiver",
    "ChannelStep",
    "ContentStep",
    "EditorialCommentEvent",
    "EventStep",
    "ExplicitReceivers",
    "PostStatusChangeEvent",
    "ReceiverStep",
    "SettingsContent",
    "StepKind",
    "StepRegistry",
    "WorkflowStep",
    "register_default_steps",
]

POST_STATUS_ACTION = "transition_post_status"
EDITORIAL_COMMENT_ACTION = "editorial_comment"

_STEP_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


class StepKind(Enum):
    """Kinds of workflow steps."""

    EVENT = "event"
    RECEIVER = "receiver"
    CHANNEL = "channel"
    CONTENT = "content"


def _section(workflow: WorkflowDefinition, key: str) -> Mapping[str, object]:
    value = workflow.settings.get(key)
    if isinstance(value, Mapping):
        return value  # pyright: ignore[reportUnknownVariableType]
    return {}


def _string_list(value: object) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value]  # pyright: ignore[reportUnknownVariableType]
    return []


class EventStep(ABC):
    """Selects the workflows an event applies to."""

    kind: ClassVar[StepKind] = StepKind.EVENT
    name: ClassVar[str]

    def handles(self, context: TriggerContext) -> bool:
        """Return True if this step reacts to the event's action."""
        return True

    @abstractmethod
    def matches(self, workflow: WorkflowDefinition, context: TriggerContext) -> bool:
        """Return True if the workflow is configured for this event."""
        ...


class ReceiverStep(ABC):
    """Contributes raw receivers for a workflow run."""

    kind: ClassVar[StepKind] = StepKind.RECEIVER
    name: ClassVar[str]

    @abstractmethod
    def collect_receivers(
        self,
        receivers: list[object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> list[object]: ...


class ContentStep(ABC):
    """Computes part of the subject/body of a workflow run."""

    kind: ClassVar[StepKind] = StepKind.CONTENT
    name: ClassVar[str]

    @abstractmethod
    def compute_content(
        self,
        content: dict[str, object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> dict[str, object]: ...


class ChannelStep(ABC):
    """Transport step serving one delivery channel."""

    kind: ClassVar[StepKind] = StepKind.CHANNEL
    channel: ChannelName

    @abstractmethod
    def deliver(self, request: DeliveryRequest) -> None: ...


type WorkflowStep = EventStep | ReceiverStep | ContentStep | ChannelStep


class PostStatusChangeEvent(EventStep):
    """Post status transitions, optionally restricted by from/to status lists."""

    name: ClassVar[str] = "post_status"

    @override
    def handles(self, context: TriggerContext) -> bool:
        return context.action == POST_STATUS_ACTION

    @override
    def matches(self, workflow: WorkflowDefinition, context: TriggerContext) -> bool:
        config = _section(workflow, "event").get(self.name)
        if not config:
            return False
        if not isinstance(config, Mapping):
            return True

        from_statuses = _string_list(config.get("from"))  # pyright: ignore[reportUnknownMemberType]
        to_statuses = _string_list(config.get("to"))  # pyright: ignore[reportUnknownMemberType]
        if from_statuses and context.old_status not in from_statuses:
            return False
        return not to_statuses or context.new_status in to_statuses


class EditorialCommentEvent(EventStep):
    """New editorial comments on a post."""

    name: ClassVar[str] = "editorial_comment"

    @override
    def handles(self, context: TriggerContext) -> bool:
        return context.action == EDITORIAL_COMMENT_ACTION

    @override
    def matches(self, workflow: WorkflowDefinition, context: TriggerContext) -> bool:
        return bool(_section(workflow, "event").get(self.name))


class AuthorReceiver(ReceiverStep):
    """Adds the post author when ``receivers.author`` is enabled."""

    name: ClassVar[str] = "author"

    @override
    def collect_receivers(
        self,
        receivers: list[object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> list[object]:
        author_id = context.post.author_id
        if _section(workflow, "receivers").get(self.name) and author_id is not None:
            receivers.append(author_id)
        return receivers


class ExplicitReceivers(ReceiverStep):
    """Adds the user ids and email addresses listed on the workflow."""

    name: ClassVar[str] = "explicit"

    @override
    def collect_receivers(
        self,
        receivers: list[object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> list[object]:
        section = _section(workflow, "receivers")

        users = section.get("users")
        if isinstance(users, Sequence) and not isinstance(users, str):
            receivers.extend(users)  # pyright: ignore[reportUnknownArgumentType]

        for address in _string_list(section.get("emails")):
            address = address.strip()
            if address:
                receivers.append(f"{EMAIL_PREFIX}{address}")
        return receivers


class SettingsContent(ContentStep):
    """Takes subject and body templates from ``content`` settings."""

    name: ClassVar[str] = "settings"

    @override
    def compute_content(
        self,
        content: dict[str, object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> dict[str, object]:
        section = _section(workflow, "content")
        for key in ("subject", "body"):
            if key in section:
                content[key] = section[key]
        return content


class _StepReceiverSource:
    def __init__(self, steps: Sequence[ReceiverStep]) -> None:
        self._steps: tuple[ReceiverStep, ...] = tuple(steps)

    def compute_receivers(
        self, workflow: WorkflowDefinition, context: TriggerContext
    ) -> list[object]:
        receivers: list[object] = []
        for step in self._steps:
            receivers = step.collect_receivers(receivers, workflow, context)
        return receivers


class _StepContentSource:
    def __init__(self, steps: Sequence[ContentStep]) -> None:
        self._steps: tuple[ContentStep, ...] = tuple(steps)

    def compute_content(
        self,
        content: Mapping[str, object],
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> Mapping[str, object]:
        current = dict(content)
        for step in self._steps:
            current = step.compute_content(current, workflow, context)
        return current


class StepRegistry:
    """Static registry of workflow steps, populated at process start.

    Steps of each kind run in registration order. Event, receiver and content
    steps are unique per name; channel steps are unique per channel.
    """

    def __init__(self, *, logger_obj: logging.Logger | None = None) -> None:
        self._event_steps: dict[str, EventStep] = {}
        self._receiver_steps: dict[str, ReceiverStep] = {}
        self._content_steps: dict[str, ContentStep] = {}
        self._channel_steps: dict[ChannelName, ChannelTransport] = {}
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def register(self, step: WorkflowStep) -> None:
        """Register a step under its kind.

        Raises:
            ValueError: If a step with the same name (or channel) exists
        """
        match step.kind:
            case StepKind.EVENT if isinstance(step, EventStep):
                self._add(self._event_steps, step.name, step)
            case StepKind.RECEIVER if isinstance(step, ReceiverStep):
                self._add(self._receiver_steps, step.name, step)
            case StepKind.CONTENT if isinstance(step, ContentStep):
                self._add(self._content_steps, step.name, step)
            case StepKind.CHANNEL if isinstance(step, ChannelStep):
                self.register_channel(step)
            case _:
                msg = f"{type(step).__name__} does not implement the {step.kind.value} step interface"
                raise TypeError(msg)

    def register_channel(self, transport: ChannelTransport) -> None:
        """Register any channel transport as a channel step."""
        self._add(self._channel_steps, transport.channel.strip().lower(), transport)

    def _add[T](self, steps: dict[str, T], name: str, step: T) -> None:
        slug = name.strip().lower()
        if not _STEP_NAME_PATTERN.match(slug):
            msg = (
                "Step names must start with a letter and contain only "
                "lowercase letters, numbers, or underscores"
            )
            raise ValueError(msg)
        if slug in steps:
            msg = f"Step {slug!r} already registered"
            raise ValueError(msg)
        steps[slug] = step
        self._logger.debug("Registered workflow step", extra={"step": slug})

    def names(self, kind: StepKind) -> tuple[str, ...]:
        """Return registered step names of one kind in registration order."""
        match kind:
            case StepKind.EVENT:
                return tuple(self._event_steps)
            case StepKind.RECEIVER:
                return tuple(self._receiver_steps)
            case StepKind.CONTENT:
                return tuple(self._content_steps)
            case StepKind.CHANNEL:
                return tuple(self._channel_steps)

    def as_receiver_source(self) -> _StepReceiverSource:
        return _StepReceiverSource(tuple(self._receiver_steps.values()))

    def as_content_source(self) -> _StepContentSource:
        return _StepContentSource(tuple(self._content_steps.values()))

    def as_query_filters(self) -> tuple[QueryFilter, ...]:
        """Return one query filter selecting workflows any event step matches.

        Without event steps no filter is returned and every published
        workflow is selected.
        """
        event_steps = tuple(self._event_steps.values())
        if not event_steps:
            return ()

        def select_by_event(query: WorkflowQuery, context: TriggerContext) -> WorkflowQuery:
            handling = [step for step in event_steps if step.handles(context)]
            return query.with_predicate(
                lambda workflow: any(step.matches(workflow, context) for step in handling)
            )

        return (select_by_event,)

    def transports(self) -> TransportRegistry:
        """Build a transport registry from the channel steps."""
        registry = TransportRegistry()
        for channel, transport in self._channel_steps.items():
            registry.register(transport, channel=channel)
        return registry


def register_default_steps(registry: StepRegistry) -> StepRegistry:
    """Register the built-in settings-driven steps."""
    registry.register(PostStatusChangeEvent())
    registry.register(EditorialCommentEvent())
    registry.register(AuthorReceiver())
    registry.register(ExplicitReceivers())
    registry.register(SettingsContent())
    return registry
