"""Replay of scheduled delivery units."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from workflow_notifier.core.delivery import ImmediateDelivery
from workflow_notifier.queue.codec import decode_unit
from workflow_notifier.queue.scheduler import InMemoryScheduler
from workflow_notifier.types.models import (
    ContentItem,
    DeliveryRequest,
    DeliveryUnit,
    TriggerContext,
)
from workflow_notifier.types.protocols import ContentLookup, WorkflowStore
from workflow_notifier.utils.logging import correlation_scope, get_logger, log_with_context
from workflow_notifier.utils.sanitization import sanitize_receiver

__all__ = ["DeferredDeliveryExecutor"]


class DeferredDeliveryExecutor:
    """Executes one scheduled unit as a standalone immediate delivery.

    The workflow is looked up again by id, so a workflow deleted after the
    unit was scheduled is skipped. Delivery failures propagate to the
    scheduler, which reports them.
    """

    def __init__(
        self,
        workflow_store: WorkflowStore,
        delivery: ImmediateDelivery,
        *,
        content_lookup: ContentLookup | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._workflow_store: WorkflowStore = workflow_store
        self._delivery: ImmediateDelivery = delivery
        self._content_lookup: ContentLookup | None = content_lookup
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def execute(self, payload: Sequence[object]) -> bool:
        """Deliver the unit encoded in payload.

        Returns:
            False if the unit was dropped because its workflow no longer exists

        Raises:
            QueuePayloadError: If the payload cannot be decoded
            DeliveryError: If the channel transport fails
        """
        unit = decode_unit(payload)

        with correlation_scope():
            workflow = self._workflow_store.get_workflow(unit.workflow_id)
            if workflow is None:
                log_with_context(
                    self._logger,
                    logging.WARNING,
                    "Dropping delivery unit for missing workflow",
                    extra={
                        "workflow_id": unit.workflow_id,
                        "channel": unit.channel,
                        "receiver": sanitize_receiver(unit.receiver),
                    },
                )
                return False

            self._delivery.deliver(
                DeliveryRequest(
                    workflow=workflow,
                    context=self._rebuild_context(unit),
                    receiver=unit.receiver,
                    content=unit.content,
                    channel=unit.channel,
                )
            )
        return True

    def register(self, scheduler: InMemoryScheduler, action_name: str) -> None:
        """Register this executor as the scheduler handler for action_name."""
        scheduler.register_handler(action_name, self._handle)

    def _handle(self, payload: Sequence[object]) -> None:
        _ = self.execute(payload)

    def _rebuild_context(self, unit: DeliveryUnit) -> TriggerContext:
        post: ContentItem | None = None
        if self._content_lookup is not None:
            post = self._content_lookup(unit.content_reference_id)
        if post is None:
            post = ContentItem(id=unit.content_reference_id)

        return TriggerContext(
            action=unit.action,
            post=post,
            old_status=unit.old_status,
            new_status=unit.new_status,
        )
