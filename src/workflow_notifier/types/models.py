"""Data models for workflow-notifier.

This module defines immutable dataclasses used throughout the application
for type-safe data transfer between the controller, the runner, delivery
actions and the deferred delivery queue.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from typing import override

from workflow_notifier.types.aliases import ChannelName, ReceiverId

# Workflow post status that marks a definition as active
PUBLISHED_STATUS = "publish"

# Reserved channel name meaning "suppress delivery"
MUTE_CHANNEL: ChannelName = "mute"

# Channel used for literal email receivers and as the default channel
EMAIL_CHANNEL: ChannelName = "email"


@dataclass(slots=True, frozen=True)
class WorkflowDefinition:
    """A stored notification workflow.

    The settings mapping is opaque to the core; workflow steps read the keys
    they understand (event filters, receivers, content templates).
    """

    id: int
    status: str = PUBLISHED_STATUS
    title: str = ""
    settings: Mapping[str, object] = field(default_factory=dict)

    @property
    def is_published(self) -> bool:
        return self.status == PUBLISHED_STATUS


@dataclass(slots=True, frozen=True)
class WorkflowQuery:
    """Criteria used to look up workflow definitions in storage.

    Predicates are contributed by event steps at query time and are opaque to
    the controller; a store applies them to each candidate definition.
    """

    status: str = PUBLISHED_STATUS
    predicates: tuple[Callable[[WorkflowDefinition], bool], ...] = ()

    def with_predicate(self, predicate: Callable[[WorkflowDefinition], bool]) -> WorkflowQuery:
        """Return a copy of the query with an extra predicate."""
        return replace(self, predicates=(*self.predicates, predicate))

    def matches(self, workflow: WorkflowDefinition) -> bool:
        if workflow.status != self.status:
            return False
        return all(predicate(workflow) for predicate in self.predicates)


@dataclass(slots=True, frozen=True)
class ContentItem:
    """Reference to the content item (post) an event was triggered for."""

    id: int
    title: str = ""
    author_id: int | None = None
    status: str | None = None
    post_type: str = "post"


@dataclass(slots=True, frozen=True)
class TriggerContext:
    """Arguments of a content-lifecycle event.

    Passed by value through the whole pipeline and never mutated.
    """

    action: str
    post: ContentItem
    old_status: str | None = None
    new_status: str | None = None
    extra: Mapping[str, object] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class NotificationContent:
    """Rendered subject and body shared by every delivery of one run."""

    subject: str = ""
    body: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> NotificationContent:
        """Build content from a hook result, defaulting missing keys to ''."""
        subject = data.get("subject", "")
        body = data.get("body", "")
        return cls(
            subject="" if subject is None else str(subject),
            body="" if body is None else str(body),
        )

    def as_dict(self) -> dict[str, str]:
        return {"subject": self.subject, "body": self.body}


@dataclass(slots=True, frozen=True)
class DeliveryRequest:
    """Arguments of one delivery action invocation for one receiver."""

    workflow: WorkflowDefinition
    context: TriggerContext
    receiver: ReceiverId
    content: NotificationContent
    channel: ChannelName


@dataclass(slots=True, frozen=True)
class DeliveryUnit:
    """Materialized delivery action for one receiver, as stored in the queue."""

    workflow_id: int
    action: str
    content_id: int
    content: NotificationContent
    old_status: str | None
    new_status: str | None
    channel: ChannelName
    receiver: ReceiverId

    @property
    def content_reference_id(self) -> int:
        """Identifier of the content item the unit refers to."""
        return self.content_id


@dataclass(slots=True, frozen=True)
class ScheduledEvent:
    """A one-shot event held by a scheduler until it becomes due."""

    timestamp: float
    action_name: str
    payload: tuple[object, ...]
    sequence: int = 0


class ReceiverChannelMap:
    """Ordered mapping of channel name to receivers.

    Channels iterate in the order they were first seen and receivers keep
    their resolution order. The reserved mute channel is never a key.
    """

    __slots__ = ("_channels",)

    def __init__(self, initial: Mapping[ChannelName, list[ReceiverId]] | None = None) -> None:
        self._channels: dict[ChannelName, list[ReceiverId]] = {}
        if initial:
            for channel, receivers in initial.items():
                for receiver in receivers:
                    self.add(channel, receiver)

    def add(self, channel: ChannelName, receiver: ReceiverId) -> None:
        """Append a receiver to a channel, creating the channel if needed."""
        if channel == MUTE_CHANNEL:
            msg = f"{MUTE_CHANNEL!r} is reserved and cannot hold receivers"
            raise ValueError(msg)
        self._channels.setdefault(channel, []).append(receiver)

    def channels(self) -> tuple[ChannelName, ...]:
        return tuple(self._channels)

    def receivers_for(self, channel: ChannelName) -> tuple[ReceiverId, ...]:
        return tuple(self._channels.get(channel, ()))

    def items(self) -> Iterator[tuple[ChannelName, tuple[ReceiverId, ...]]]:
        for channel, receivers in self._channels.items():
            yield channel, tuple(receivers)

    def all_receivers(self) -> tuple[ReceiverId, ...]:
        return tuple(receiver for receivers in self._channels.values() for receiver in receivers)

    def as_dict(self) -> dict[ChannelName, list[ReceiverId]]:
        return {channel: list(receivers) for channel, receivers in self._channels.items()}

    def __contains__(self, channel: object) -> bool:
        return channel in self._channels

    def __len__(self) -> int:
        return len(self._channels)

    def __bool__(self) -> bool:
        return bool(self._channels)

    @override
    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReceiverChannelMap):
            return self._channels == other._channels
        if isinstance(other, Mapping):
            return self.as_dict() == {key: list(value) for key, value in other.items()}  # pyright: ignore[reportUnknownArgumentType, reportUnknownVariableType]
        return NotImplemented

    __hash__ = None  # pyright: ignore[reportAssignmentType]

    @override
    def __repr__(self) -> str:
        return f"ReceiverChannelMap({self._channels!r})"
