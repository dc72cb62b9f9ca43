"""Tests for wiring the notifier from configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.fixtures.workflow_fakes import FixedClock, RecordingTransport, make_context, make_workflow
from workflow_notifier.app.bootstrap import build_notifier, stores_from_config
from workflow_notifier.core.config import MainConfig
from workflow_notifier.core.steps import StepRegistry
from workflow_notifier.core.stores import InMemoryPreferenceStore, InMemoryWorkflowStore
from workflow_notifier.queue.scheduler import InMemoryScheduler, JsonFileScheduler
from workflow_notifier.types import WorkflowQuery

SETTINGS = {
    "event": {"post_status": True},
    "receivers": {"author": True},
    "content": {"subject": "{post_title}"},
}


def _config(**sections: object) -> MainConfig:
    return MainConfig.model_validate(sections)


@pytest.mark.unit
class TestStoresFromConfig:
    def test_builds_stores(self) -> None:
        config = _config(
            workflows={
                "definitions": [{"id": 2, "title": "Two"}, {"id": 1, "status": "draft"}],
                "preferences": [{"user_id": 7, "workflow_id": 2, "channel": "slack"}],
            }
        )

        workflow_store, preference_store = stores_from_config(config)

        assert [w.id for w in workflow_store.find_workflows(WorkflowQuery())] == [2]
        assert workflow_store.get_workflow(1) is not None
        assert preference_store.get_channel_preference(7, 2) == "slack"


@pytest.mark.unit
class TestBuildNotifier:
    def test_immediate_delivery_reaches_transport(self, clock: FixedClock) -> None:
        email = RecordingTransport("email")
        notifier = build_notifier(
            MainConfig(),
            workflow_store=InMemoryWorkflowStore([make_workflow(settings=SETTINGS)]),
            transports=[email],
            clock=clock,
        )

        results = notifier.handle_event(make_context(title="Plan", author_id=7))

        assert [r.deliveries for r in results] == [1]
        assert [(r.receiver, r.content.subject) for r in email.delivered] == [(7, "Plan")]
        assert notifier.queue is None
        assert len(notifier.scheduler) == 0

    def test_explicit_empty_stores_are_kept(self) -> None:
        config = _config(workflows={"definitions": [{"id": 1, "settings": SETTINGS}]})
        empty_store = InMemoryWorkflowStore()

        notifier = build_notifier(config, workflow_store=empty_store)

        assert notifier.handle_event(make_context()) == []

    def test_default_channel_routes_users(self) -> None:
        slack = RecordingTransport("slack")
        notifier = build_notifier(
            _config(workflows={"default_channel": "slack"}),
            workflow_store=InMemoryWorkflowStore([make_workflow(settings=SETTINGS)]),
            preference_store=InMemoryPreferenceStore(),
            transports=[slack],
        )

        _ = notifier.handle_event(make_context(author_id=7))

        assert [r.receiver for r in slack.delivered] == [7]

    def test_async_delivery_defers_until_due(self, clock: FixedClock) -> None:
        email = RecordingTransport("email")
        notifier = build_notifier(
            _config(delivery={"async_enabled": True, "delay_seconds": 60}),
            workflow_store=InMemoryWorkflowStore([make_workflow(settings=SETTINGS)]),
            transports=[email],
            clock=clock,
        )

        _ = notifier.handle_event(make_context(author_id=7))

        assert notifier.queue is not None
        assert email.delivered == []
        assert notifier.run_due() == 0

        clock.now += 60
        assert notifier.run_due() == 1
        assert [r.receiver for r in email.delivered] == [7]

    def test_dry_run_skips_transports(self) -> None:
        email = RecordingTransport("email")
        notifier = build_notifier(
            _config(application={"dry_run": True}),
            workflow_store=InMemoryWorkflowStore([make_workflow(settings=SETTINGS)]),
            transports=[email],
        )

        results = notifier.handle_event(make_context(author_id=7))

        assert results[0].deliveries == 1
        assert email.delivered == []

    def test_queue_file_selects_json_scheduler(self, tmp_path: Path) -> None:
        notifier = build_notifier(_config(delivery={"queue_file": str(tmp_path / "queue.json")}))

        assert isinstance(notifier.scheduler, JsonFileScheduler)

    def test_explicit_scheduler_and_steps(self) -> None:
        scheduler = InMemoryScheduler()
        steps = StepRegistry()

        notifier = build_notifier(MainConfig(), scheduler=scheduler, steps=steps)

        assert notifier.scheduler is scheduler
        # Without event steps every published workflow is selected.
        assert notifier.controller.build_query(make_context()).predicates == ()

    def test_duplicate_transport_channel_rejected(self) -> None:
        with pytest.raises(ValueError, match="already registered"):
            _ = build_notifier(
                MainConfig(),
                transports=[RecordingTransport("email"), RecordingTransport("email")],
            )
