"""Type definitions and protocols for workflow-notifier.

This package provides:
- Data models (immutable dataclasses and the ordered receiver map)
- Protocol definitions (structural subtyping interfaces)
- Type aliases (PEP 695 modern syntax)
"""

from workflow_notifier.types.aliases import (
    ChannelName,
    ContentMapping,
    DeliveryAction,
    QueryFilter,
    ReceiverId,
)
from workflow_notifier.types.models import (
    EMAIL_CHANNEL,
    MUTE_CHANNEL,
    PUBLISHED_STATUS,
    ContentItem,
    DeliveryRequest,
    DeliveryUnit,
    NotificationContent,
    ReceiverChannelMap,
    ScheduledEvent,
    TriggerContext,
    WorkflowDefinition,
    WorkflowQuery,
)
from workflow_notifier.types.protocols import (
    ChannelPreferenceStore,
    ChannelTransport,
    ContentLookup,
    ContentSource,
    ReceiverSource,
    Scheduler,
    TemplateEngine,
    WorkflowStore,
)

__all__ = [
    # Type aliases
    "ChannelName",
    "ContentMapping",
    "DeliveryAction",
    "QueryFilter",
    "ReceiverId",
    # Constants
    "EMAIL_CHANNEL",
    "MUTE_CHANNEL",
    "PUBLISHED_STATUS",
    # Data models
    "ContentItem",
    "DeliveryRequest",
    "DeliveryUnit",
    "NotificationContent",
    "ReceiverChannelMap",
    "ScheduledEvent",
    "TriggerContext",
    "WorkflowDefinition",
    "WorkflowQuery",
    # Protocols
    "ChannelPreferenceStore",
    "ChannelTransport",
    "ContentLookup",
    "ContentSource",
    "ReceiverSource",
    "Scheduler",
    "TemplateEngine",
    "WorkflowStore",
]
