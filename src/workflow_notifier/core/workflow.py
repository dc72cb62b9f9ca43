"""Execution of a single notification workflow.

One run resolves the receivers, renders the content once and invokes one
delivery action per (channel, receiver) pair. Which action runs is decided by
the delivery action point, so the runner behaves the same whether delivery
is immediate or deferred.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from workflow_notifier.core.content import ContentRenderer
from workflow_notifier.core.delivery import DeliveryActionPoint, action_name_for
from workflow_notifier.core.receivers import ReceiverResolver
from workflow_notifier.types.models import (
    DeliveryRequest,
    NotificationContent,
    ReceiverChannelMap,
    TriggerContext,
    WorkflowDefinition,
)
from workflow_notifier.types.protocols import ReceiverSource
from workflow_notifier.utils.logging import get_logger, log_with_context
from workflow_notifier.utils.sanitization import sanitize_receiver

__all__ = ["NoReceiverSource", "RunResult", "WorkflowRunner"]


@dataclass(slots=True, frozen=True)
class RunResult:
    """Outcome of one workflow run.

    ``deliveries`` counts delivery action invocations, not successful sends.
    ``content`` is None when the run stopped before rendering.
    """

    workflow_id: int
    receivers: ReceiverChannelMap
    content: NotificationContent | None = None
    deliveries: int = 0


class NoReceiverSource:
    """Receiver source that contributes nobody."""

    def compute_receivers(
        self, workflow: WorkflowDefinition, context: TriggerContext
    ) -> list[object]:
        return []


class WorkflowRunner:
    """Runs one workflow definition against a triggering event."""

    def __init__(
        self,
        resolver: ReceiverResolver,
        renderer: ContentRenderer,
        action_point: DeliveryActionPoint,
        *,
        receiver_source: ReceiverSource | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._resolver: ReceiverResolver = resolver
        self._renderer: ContentRenderer = renderer
        self._action_point: DeliveryActionPoint = action_point
        self._receiver_source: ReceiverSource = receiver_source or NoReceiverSource()
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def run(self, workflow: WorkflowDefinition, context: TriggerContext) -> RunResult:
        """Run the workflow for the event.

        Delivery actions are invoked in channel order, then receiver order.
        Errors raised by a delivery action propagate to the caller.

        Raises:
            RenderError: If content could not be rendered; nothing is delivered
        """
        raw_receivers = self._receiver_source.compute_receivers(workflow, context)
        receivers = self._resolver.resolve(workflow.id, raw_receivers)

        if not receivers:
            log_with_context(
                self._logger,
                logging.INFO,
                "Workflow has no receivers",
                extra={"workflow_id": workflow.id, "trigger_action": context.action},
            )
            return RunResult(workflow_id=workflow.id, receivers=receivers)

        content = self._renderer.render(workflow, context)

        deliveries = 0
        for channel, channel_receivers in receivers.items():
            for receiver in channel_receivers:
                action = self._action_point.action_for(channel, workflow)
                self._logger.debug(
                    "Invoking delivery action",
                    extra={
                        "workflow_id": workflow.id,
                        "delivery_action": action_name_for(channel),
                        "channel": channel,
                        "receiver": sanitize_receiver(receiver),
                    },
                )
                action(
                    DeliveryRequest(
                        workflow=workflow,
                        context=context,
                        receiver=receiver,
                        content=content,
                        channel=channel,
                    )
                )
                deliveries += 1

        log_with_context(
            self._logger,
            logging.INFO,
            "Workflow run completed",
            extra={
                "workflow_id": workflow.id,
                "channels": list(receivers.channels()),
                "deliveries": deliveries,
            },
        )
        return RunResult(
            workflow_id=workflow.id,
            receivers=receivers,
            content=content,
            deliveries=deliveries,
        )
