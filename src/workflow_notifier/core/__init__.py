"""Workflow execution core: controller, runner, receivers, content and delivery."""

from workflow_notifier.core.content import ContentRenderer
from workflow_notifier.core.controller import WorkflowController
from workflow_notifier.core.delivery import (
    DeliveryActionPoint,
    ImmediateDelivery,
    LoggingTransport,
    TransportRegistry,
)
from workflow_notifier.core.errors import (
    DeliveryError,
    QueuePayloadError,
    RenderError,
    TriggerContextError,
    WorkflowNotifierError,
    WorkflowRunError,
)
from workflow_notifier.core.receivers import ReceiverResolver
from workflow_notifier.core.steps import StepKind, StepRegistry, register_default_steps
from workflow_notifier.core.workflow import RunResult, WorkflowRunner

__all__ = [
    "ContentRenderer",
    "DeliveryActionPoint",
    "DeliveryError",
    "ImmediateDelivery",
    "LoggingTransport",
    "QueuePayloadError",
    "ReceiverResolver",
    "RenderError",
    "RunResult",
    "StepKind",
    "StepRegistry",
    "TransportRegistry",
    "TriggerContextError",
    "WorkflowController",
    "WorkflowNotifierError",
    "WorkflowRunError",
    "WorkflowRunner",
    "register_default_steps",
]
