"""Type aliases using modern PEP 695 syntax.

This module defines type aliases shared across the workflow pipeline, using
Python 3.13+ type statement syntax.
"""

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from workflow_notifier.types.models import DeliveryRequest, TriggerContext, WorkflowQuery

# Delivery channel key, e.g. "email"
type ChannelName = str

# A resolved receiver: a user id or a bare email address
type ReceiverId = int | str

# Raw hook output for content before defaults are applied
type ContentMapping = Mapping[str, object]

# A delivery action performs or defers transport for one receiver
type DeliveryAction = Callable[[DeliveryRequest], None]

# Contributes criteria to the workflow lookup for an event
type QueryFilter = Callable[[WorkflowQuery, TriggerContext], WorkflowQuery]
