"""Deferred delivery through a time based scheduler.

When installed on the delivery action point, the queue replaces the delivery
action of every channel. Instead of sending, each invocation becomes one
scheduled unit per receiver, which the deferred executor replays later
through the immediate delivery logic.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from workflow_notifier.core.config import DEFAULT_DELIVERY_ACTION
from workflow_notifier.core.delivery import DeliveryActionPoint
from workflow_notifier.queue.codec import encode_unit
from workflow_notifier.types.aliases import ChannelName, DeliveryAction, ReceiverId
from workflow_notifier.types.models import (
    DeliveryRequest,
    DeliveryUnit,
    NotificationContent,
    TriggerContext,
    WorkflowDefinition,
)
from workflow_notifier.types.protocols import Scheduler
from workflow_notifier.utils.logging import get_logger, log_with_context
from workflow_notifier.utils.sanitization import sanitize_receiver

__all__ = ["AsyncDeliveryQueue"]

type Clock = Callable[[], float]


class AsyncDeliveryQueue:
    """Schedules one deferred delivery unit per receiver.

    Args:
        scheduler: Scheduler receiving the units
        action_name: Scheduler action the deferred executor listens on
        delay_seconds: Delay added to the current time; 0 means as soon as possible
        clock: Source of the current UNIX timestamp
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        action_name: str = DEFAULT_DELIVERY_ACTION,
        delay_seconds: float = 0.0,
        clock: Clock = time.time,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if delay_seconds < 0:
            msg = "delay_seconds must be >= 0"
            raise ValueError(msg)

        self._scheduler: Scheduler = scheduler
        self._action_name: str = action_name
        self._delay_seconds: float = delay_seconds
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def action_name(self) -> str:
        return self._action_name

    def enqueue(
        self,
        workflow: WorkflowDefinition,
        context: TriggerContext,
        receivers: ReceiverId | Sequence[ReceiverId],
        content: NotificationContent,
        channel: ChannelName,
    ) -> list[DeliveryUnit]:
        """Schedule one unit per receiver and return the scheduled units.

        Identical calls schedule identical units again; nothing is merged or
        deduplicated.
        """
        receiver_list: list[ReceiverId] = (
            [receivers] if isinstance(receivers, (int, str)) else list(receivers)
        )
        if not receiver_list:
            return []

        fire_at = self._clock() + self._delay_seconds
        units: list[DeliveryUnit] = []
        for receiver in receiver_list:
            unit = DeliveryUnit(
                workflow_id=workflow.id,
                action=context.action,
                content_id=context.post.id,
                content=content,
                old_status=context.old_status,
                new_status=context.new_status,
                channel=channel,
                receiver=receiver,
            )
            self._scheduler.schedule_at(fire_at, self._action_name, encode_unit(unit))
            units.append(unit)

            log_with_context(
                self._logger,
                logging.DEBUG,
                "Delivery unit scheduled",
                extra={
                    "workflow_id": workflow.id,
                    "channel": channel,
                    "receiver": sanitize_receiver(receiver),
                    "fire_at": fire_at,
                },
            )

        return units

    def deliver(self, request: DeliveryRequest) -> None:
        """Delivery action scheduling the request instead of sending it."""
        _ = self.enqueue(
            request.workflow,
            request.context,
            request.receiver,
            request.content,
            request.channel,
        )

    def intercept(
        self,
        channel: ChannelName,
        workflow: WorkflowDefinition,
        default_action: DeliveryAction,
    ) -> DeliveryAction:
        """Action point interceptor redirecting every channel to the queue."""
        return self.deliver

    def install(self, action_point: DeliveryActionPoint) -> None:
        action_point.add_interceptor(self.intercept)

    def uninstall(self, action_point: DeliveryActionPoint) -> None:
        action_point.remove_interceptor(self.intercept)
