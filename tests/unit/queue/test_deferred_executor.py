"""Tests for replaying scheduled delivery units."""

from __future__ import annotations

import logging

import pytest

from tests.fixtures.workflow_fakes import FixedClock, RecordingTransport, make_workflow
from workflow_notifier.core.delivery import ImmediateDelivery, TransportRegistry
from workflow_notifier.core.errors import DeliveryError, QueuePayloadError
from workflow_notifier.core.stores import InMemoryWorkflowStore
from workflow_notifier.queue.codec import encode_unit
from workflow_notifier.queue.executor import DeferredDeliveryExecutor
from workflow_notifier.queue.scheduler import InMemoryScheduler
from workflow_notifier.types import ContentItem, DeliveryUnit, NotificationContent
from workflow_notifier.utils.logging import get_correlation_id

UNIT = DeliveryUnit(
    workflow_id=1,
    action="transition_post_status",
    content_id=42,
    content=NotificationContent(subject="Subject", body="Body"),
    old_status="draft",
    new_status="publish",
    channel="email",
    receiver=5,
)


def _executor(
    transport: RecordingTransport,
    *,
    store: InMemoryWorkflowStore | None = None,
    content_lookup: object | None = None,
) -> DeferredDeliveryExecutor:
    registry = TransportRegistry()
    registry.register(transport)
    return DeferredDeliveryExecutor(
        store if store is not None else InMemoryWorkflowStore([make_workflow(1)]),
        ImmediateDelivery(registry),
        content_lookup=content_lookup,  # pyright: ignore[reportArgumentType]
    )


@pytest.mark.unit
class TestDeferredDeliveryExecutor:
    def test_delivers_through_immediate_logic(self) -> None:
        transport = RecordingTransport()

        assert _executor(transport).execute(encode_unit(UNIT)) is True

        (request,) = transport.delivered
        assert request.workflow == make_workflow(1)
        assert request.receiver == 5
        assert request.channel == "email"
        assert request.content == UNIT.content
        assert request.context.action == "transition_post_status"
        assert request.context.post == ContentItem(id=42)
        assert request.context.old_status == "draft"
        assert request.context.new_status == "publish"

    def test_content_lookup_rebuilds_the_post(self) -> None:
        transport = RecordingTransport()
        post = ContentItem(id=42, title="Launch plan", author_id=7)
        looked_up: list[int] = []

        def lookup(content_id: int) -> ContentItem | None:
            looked_up.append(content_id)
            return post

        _ = _executor(transport, content_lookup=lookup).execute(encode_unit(UNIT))

        assert looked_up == [42]
        assert transport.delivered[0].context.post is post

    def test_content_lookup_miss_falls_back_to_reference(self) -> None:
        transport = RecordingTransport()

        _ = _executor(transport, content_lookup=lambda content_id: None).execute(encode_unit(UNIT))

        assert transport.delivered[0].context.post == ContentItem(id=42)

    def test_missing_workflow_drops_unit(self, caplog: pytest.LogCaptureFixture) -> None:
        transport = RecordingTransport()
        executor = _executor(transport, store=InMemoryWorkflowStore())

        with caplog.at_level(logging.WARNING):
            assert executor.execute(encode_unit(UNIT)) is False

        assert transport.delivered == []
        assert any(
            r.getMessage() == "Dropping delivery unit for missing workflow" for r in caplog.records
        )

    def test_transport_failure_raises(self) -> None:
        transport = RecordingTransport(fail_with=RuntimeError("smtp down"))

        with pytest.raises(DeliveryError):
            _ = _executor(transport).execute(encode_unit(UNIT))

    def test_invalid_payload_raises(self) -> None:
        with pytest.raises(QueuePayloadError):
            _ = _executor(RecordingTransport()).execute(["garbage"])

    def test_runs_in_its_own_correlation_scope(self) -> None:
        seen: list[str | None] = []

        class _CorrelationTransport(RecordingTransport):
            def deliver(self, request: object) -> None:  # pyright: ignore[reportIncompatibleMethodOverride]
                seen.append(get_correlation_id())

        _ = _executor(_CorrelationTransport()).execute(encode_unit(UNIT))

        assert seen[0] is not None
        assert get_correlation_id() is None

    def test_registered_handler_replays_due_units(self, clock: FixedClock) -> None:
        transport = RecordingTransport()
        scheduler = InMemoryScheduler(clock=clock)
        _executor(transport).register(scheduler, "deliver_later")

        scheduler.schedule_at(clock.now, "deliver_later", encode_unit(UNIT))
        scheduler.schedule_at(clock.now, "deliver_later", ["garbage"])

        assert scheduler.run_due() == 2
        assert len(transport.delivered) == 1
        assert len(scheduler) == 0
