"""Composition root wiring the workflow pipeline from configuration."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from workflow_notifier.core.config import MainConfig
from workflow_notifier.core.content import ContentRenderer
from workflow_notifier.core.controller import WorkflowController
from workflow_notifier.core.delivery import DeliveryActionPoint, ImmediateDelivery
from workflow_notifier.core.receivers import ReceiverResolver
from workflow_notifier.core.steps import StepRegistry, register_default_steps
from workflow_notifier.core.stores import InMemoryPreferenceStore, InMemoryWorkflowStore
from workflow_notifier.core.workflow import RunResult, WorkflowRunner
from workflow_notifier.queue.async_queue import AsyncDeliveryQueue
from workflow_notifier.queue.executor import DeferredDeliveryExecutor
from workflow_notifier.queue.scheduler import InMemoryScheduler, JsonFileScheduler
from workflow_notifier.types.models import TriggerContext
from workflow_notifier.types.protocols import (
    ChannelPreferenceStore,
    ChannelTransport,
    ContentLookup,
    TemplateEngine,
    WorkflowStore,
)
from workflow_notifier.utils.logging import get_logger
from workflow_notifier.utils.template import PlaceholderTemplateEngine

__all__ = ["Notifier", "build_notifier", "stores_from_config"]


@dataclass(slots=True)
class Notifier:
    """The wired pipeline, as used by hosts and the CLI."""

    config: MainConfig
    controller: WorkflowController
    runner: WorkflowRunner
    action_point: DeliveryActionPoint
    delivery: ImmediateDelivery
    scheduler: InMemoryScheduler
    executor: DeferredDeliveryExecutor
    queue: AsyncDeliveryQueue | None = None

    def handle_event(self, context: TriggerContext | Mapping[str, object]) -> list[RunResult]:
        """Entry point for the host's content-lifecycle events."""
        return self.controller.on_trigger_event(context)

    def run_due(self, now: float | None = None) -> int:
        """Replay due deferred deliveries; returns how many ran."""
        return self.scheduler.run_due(now)


def stores_from_config(
    config: MainConfig,
) -> tuple[InMemoryWorkflowStore, InMemoryPreferenceStore]:
    """Build in-memory stores from the definitions and preferences in config."""
    workflow_store = InMemoryWorkflowStore(
        definition.to_definition() for definition in config.workflows.definitions
    )
    preference_store = InMemoryPreferenceStore(
        {
            (preference.user_id, preference.workflow_id): preference.channel
            for preference in config.workflows.preferences
        }
    )
    return workflow_store, preference_store


def build_notifier(
    config: MainConfig,
    *,
    workflow_store: WorkflowStore | None = None,
    preference_store: ChannelPreferenceStore | None = None,
    steps: StepRegistry | None = None,
    transports: Iterable[ChannelTransport] = (),
    scheduler: InMemoryScheduler | None = None,
    template_engine: TemplateEngine | None = None,
    content_lookup: ContentLookup | None = None,
    raise_on_error: bool = False,
    clock: Callable[[], float] = time.time,
    logger_obj: logging.Logger | None = None,
) -> Notifier:
    """Wire the pipeline.

    Stores default to the in-memory stores built from config. Steps default
    to the built-in steps; ``transports`` are registered as additional
    channel steps. The scheduler defaults to a JSON file scheduler when
    ``delivery.queue_file`` is set, and an in-memory one otherwise. Deferred
    delivery replaces every channel's delivery action when
    ``delivery.async_enabled`` is set.
    """
    logger = logger_obj or get_logger(__name__)

    if workflow_store is None or preference_store is None:
        config_workflows, config_preferences = stores_from_config(config)
        if workflow_store is None:
            workflow_store = config_workflows
        if preference_store is None:
            preference_store = config_preferences

    if steps is None:
        steps = register_default_steps(StepRegistry())
    for transport in transports:
        steps.register_channel(transport)

    transport_registry = steps.transports()
    delivery = ImmediateDelivery(
        transport_registry,
        dry_run_enabled=config.application.dry_run,
    )
    action_point = DeliveryActionPoint(delivery)

    default_channel = config.workflows.default_channel
    runner = WorkflowRunner(
        ReceiverResolver(preference_store, default_channel=default_channel),
        ContentRenderer(
            steps.as_content_source(),
            template_engine or PlaceholderTemplateEngine(),
        ),
        action_point,
        receiver_source=steps.as_receiver_source(),
    )

    if scheduler is None:
        queue_file = config.delivery.queue_file
        if queue_file is not None:
            scheduler = JsonFileScheduler(queue_file, clock=clock)
        else:
            scheduler = InMemoryScheduler(clock=clock)

    action_name = config.delivery.action_name
    executor = DeferredDeliveryExecutor(workflow_store, delivery, content_lookup=content_lookup)
    executor.register(scheduler, action_name)

    queue: AsyncDeliveryQueue | None = None
    if config.delivery.async_enabled:
        queue = AsyncDeliveryQueue(
            scheduler,
            action_name=action_name,
            delay_seconds=config.delivery.delay_seconds,
            clock=clock,
        )
        queue.install(action_point)

    controller = WorkflowController(
        workflow_store,
        runner,
        preference_store,
        query_filters=steps.as_query_filters(),
        default_channel=default_channel,
        raise_on_error=raise_on_error,
    )

    logger.debug(
        "Notifier wired",
        extra={
            "channels": list(transport_registry.channels()),
            "async_enabled": config.delivery.async_enabled,
            "dry_run": config.application.dry_run,
        },
    )
    return Notifier(
        config=config,
        controller=controller,
        runner=runner,
        action_point=action_point,
        delivery=delivery,
        scheduler=scheduler,
        executor=executor,
        queue=queue,
    )
