"""Tests for the workflow controller."""

from __future__ import annotations

import logging

import pytest

from tests.fixtures.workflow_fakes import (
    CountingContentSource,
    CountingPreferenceStore,
    RecordingAction,
    RecordingTemplateEngine,
    StaticReceiverSource,
    make_context,
    make_workflow,
)
from workflow_notifier.core.content import ContentRenderer
from workflow_notifier.core.controller import WorkflowController
from workflow_notifier.core.delivery import DeliveryActionPoint
from workflow_notifier.core.errors import RenderError, TriggerContextError, WorkflowRunError
from workflow_notifier.core.receivers import ReceiverResolver
from workflow_notifier.core.stores import InMemoryPreferenceStore, InMemoryWorkflowStore
from workflow_notifier.core.workflow import WorkflowRunner
from workflow_notifier.types import TriggerContext, WorkflowDefinition, WorkflowQuery
from workflow_notifier.utils.logging import get_correlation_id


class _FailingForWorkflow:
    """Content source failing for selected workflow ids."""

    def __init__(self, failing_ids: set[int]) -> None:
        self.failing_ids: set[int] = failing_ids

    def compute_content(
        self,
        content: object,
        workflow: WorkflowDefinition,
        context: TriggerContext,
    ) -> dict[str, object]:
        if workflow.id in self.failing_ids:
            raise RuntimeError(f"content hook broke for {workflow.id}")
        return {"subject": f"Workflow {workflow.id}", "body": "body"}


class _CorrelationRecordingSource:
    def __init__(self) -> None:
        self.seen: list[str | None] = []

    def compute_receivers(
        self, workflow: WorkflowDefinition, context: TriggerContext
    ) -> list[object]:
        self.seen.append(get_correlation_id())
        return [5]


def _make_controller(
    workflows: list[WorkflowDefinition],
    action: RecordingAction,
    *,
    receivers: object | None = None,
    content_source: object | None = None,
    preference_store: InMemoryPreferenceStore | None = None,
    raise_on_error: bool = False,
    query_filters: tuple[object, ...] = (),
) -> WorkflowController:
    preferences = preference_store or InMemoryPreferenceStore()
    runner = WorkflowRunner(
        ReceiverResolver(preferences),
        ContentRenderer(
            content_source or CountingContentSource({"subject": "S", "body": "B"}),  # pyright: ignore[reportArgumentType]
            RecordingTemplateEngine(),
        ),
        DeliveryActionPoint(action),
        receiver_source=receivers or StaticReceiverSource([5, 6]),  # pyright: ignore[reportArgumentType]
    )
    return WorkflowController(
        InMemoryWorkflowStore(workflows),
        runner,
        preferences,
        query_filters=query_filters,  # pyright: ignore[reportArgumentType]
        raise_on_error=raise_on_error,
    )


@pytest.mark.unit
class TestOnTriggerEvent:
    def test_no_matching_workflows_is_a_no_op(self, recording_action: RecordingAction) -> None:
        controller = _make_controller([], recording_action)

        results = controller.on_trigger_event(make_context())

        assert results == []
        assert recording_action.requests == []

    def test_only_published_workflows_run(self, recording_action: RecordingAction) -> None:
        controller = _make_controller(
            [make_workflow(1), make_workflow(2, status="draft"), make_workflow(3)],
            recording_action,
        )

        results = controller.on_trigger_event(make_context())

        assert [result.workflow_id for result in results] == [1, 3]
        assert {request.workflow.id for request in recording_action.requests} == {1, 3}

    def test_workflows_run_in_storage_order(self, recording_action: RecordingAction) -> None:
        controller = _make_controller(
            [make_workflow(9), make_workflow(2), make_workflow(5)], recording_action
        )

        _ = controller.on_trigger_event(make_context())

        ids = [request.workflow.id for request in recording_action.requests]
        assert ids == [9, 9, 2, 2, 5, 5]

    def test_accepts_raw_event_mapping(self, recording_action: RecordingAction) -> None:
        controller = _make_controller([make_workflow(1)], recording_action)

        results = controller.on_trigger_event(
            {"action": "transition_post_status", "post": {"id": 12}, "new_status": "publish"}
        )

        assert len(results) == 1
        assert recording_action.requests[0].context.post.id == 12

    @pytest.mark.parametrize(
        "args",
        [
            {"post": {"id": 1}},
            {"action": "", "post": {"id": 1}},
            {"action": "transition_post_status"},
            {"action": "transition_post_status", "post": {"title": "no id"}},
        ],
    )
    def test_malformed_event_fails_before_any_delivery(
        self, recording_action: RecordingAction, args: dict[str, object]
    ) -> None:
        controller = _make_controller([make_workflow(1)], recording_action)

        with pytest.raises(TriggerContextError):
            _ = controller.on_trigger_event(args)

        assert recording_action.requests == []

    def test_render_failure_is_isolated_to_its_workflow(
        self, recording_action: RecordingAction, caplog: pytest.LogCaptureFixture
    ) -> None:
        controller = _make_controller(
            [make_workflow(1), make_workflow(2), make_workflow(3)],
            recording_action,
            content_source=_FailingForWorkflow({2}),
        )

        with caplog.at_level(logging.ERROR):
            results = controller.on_trigger_event(make_context())

        assert [result.workflow_id for result in results] == [1, 3]
        assert {request.workflow.id for request in recording_action.requests} == {1, 3}
        assert any(record.getMessage() == "Workflow run failed" for record in caplog.records)

    def test_strict_mode_raises_after_running_everything(
        self, recording_action: RecordingAction
    ) -> None:
        controller = _make_controller(
            [make_workflow(1), make_workflow(2), make_workflow(3)],
            recording_action,
            content_source=_FailingForWorkflow({1, 3}),
            raise_on_error=True,
        )

        with pytest.raises(WorkflowRunError) as exc_info:
            _ = controller.on_trigger_event(make_context())

        assert [failure.workflow_id for failure in exc_info.value.failures] == [1, 3]
        assert all(isinstance(failure, RenderError) for failure in exc_info.value.failures)
        assert {request.workflow.id for request in recording_action.requests} == {2}

    def test_each_event_gets_its_own_correlation_id(
        self, recording_action: RecordingAction
    ) -> None:
        source = _CorrelationRecordingSource()
        controller = _make_controller(
            [make_workflow(1), make_workflow(2)], recording_action, receivers=source
        )

        _ = controller.on_trigger_event(make_context())
        _ = controller.on_trigger_event(make_context())

        first, second, third, fourth = source.seen
        assert first is not None
        assert first == second
        assert third == fourth
        assert first != third
        assert get_correlation_id() is None


@pytest.mark.unit
class TestBuildQuery:
    def test_default_query_selects_published(self, recording_action: RecordingAction) -> None:
        controller = _make_controller([], recording_action)

        query = controller.build_query(make_context())

        assert query == WorkflowQuery(status="publish")

    def test_query_filters_are_applied_in_order(self, recording_action: RecordingAction) -> None:
        calls: list[str] = []

        def first(query: WorkflowQuery, context: TriggerContext) -> WorkflowQuery:
            calls.append("first")
            return query.with_predicate(lambda workflow: workflow.id > 1)

        def second(query: WorkflowQuery, context: TriggerContext) -> WorkflowQuery:
            calls.append("second")
            return query.with_predicate(lambda workflow: workflow.id < 3)

        controller = _make_controller(
            [make_workflow(1), make_workflow(2), make_workflow(3)],
            recording_action,
            query_filters=(first, second),
        )

        results = controller.on_trigger_event(make_context())

        assert calls == ["first", "second"]
        assert [result.workflow_id for result in results] == [2]


@pytest.mark.unit
class TestFilteredReceiversForChannel:
    def test_groups_candidates_by_preference(self, recording_action: RecordingAction) -> None:
        preferences = InMemoryPreferenceStore({(5, 1): "slack", (6, 1): "mute"})
        controller = _make_controller([], recording_action, preference_store=preferences)

        assert controller.filtered_receivers_for_channel(1, [5, 6, 7], "email") == [7]
        assert controller.filtered_receivers_for_channel(1, [5, 6, 7], "slack") == [5]

    def test_muted_candidate_is_not_routed_to_default_channel(
        self, recording_action: RecordingAction
    ) -> None:
        preferences = InMemoryPreferenceStore({(6, 1): "mute"})
        controller = _make_controller([], recording_action, preference_store=preferences)

        assert controller.filtered_receivers_for_channel(1, [5, 6], "email") == [5]
        assert controller.filtered_receivers_for_channel(1, [5, 6], "mute") == []

    def test_preferences_are_looked_up_in_bulk_once(
        self, recording_action: RecordingAction
    ) -> None:
        preferences = CountingPreferenceStore({(5, 1): "slack"})
        controller = _make_controller([], recording_action, preference_store=preferences)

        _ = controller.filtered_receivers_for_channel(1, [5, 6, 7], "email")
        _ = controller.filtered_receivers_for_channel(1, [5, 6, 7], "slack")

        assert preferences.lookups == 1

    def test_cache_answers_later_calls_from_first_computation(
        self, recording_action: RecordingAction
    ) -> None:
        preferences = InMemoryPreferenceStore({(5, 1): "slack", (8, 2): "slack"})
        controller = _make_controller([], recording_action, preference_store=preferences)

        assert controller.filtered_receivers_for_channel(1, [5, 6], "email") == [6]
        # Different workflow and candidates, same cached answer.
        assert controller.filtered_receivers_for_channel(2, [8, 9], "email") == [6]
        assert controller.filtered_receivers_for_channel(2, [8, 9], "slack") == [5]

    def test_unknown_channel_returns_empty_list(self, recording_action: RecordingAction) -> None:
        controller = _make_controller([], recording_action)

        assert controller.filtered_receivers_for_channel(1, [5], "sms") == []
        assert controller.filtered_receivers_for_channel(1, [5], "email") == [5]

    def test_first_call_for_unused_channel_still_fills_cache(
        self, recording_action: RecordingAction
    ) -> None:
        preferences = CountingPreferenceStore()
        controller = _make_controller([], recording_action, preference_store=preferences)

        _ = controller.filtered_receivers_for_channel(1, [], "email")
        # The empty first computation recorded "email": [], so nothing is recomputed.
        assert controller.filtered_receivers_for_channel(1, [5], "email") == []
        assert preferences.lookups == 1

    def test_returned_list_is_a_copy(self, recording_action: RecordingAction) -> None:
        controller = _make_controller([], recording_action)

        receivers = controller.filtered_receivers_for_channel(1, [5], "email")
        receivers.append(99)

        assert controller.filtered_receivers_for_channel(1, [5], "email") == [5]

    def test_reset_receiver_cache_recomputes(self, recording_action: RecordingAction) -> None:
        controller = _make_controller([], recording_action)

        assert controller.filtered_receivers_for_channel(1, [5], "email") == [5]
        controller.reset_receiver_cache()

        assert controller.filtered_receivers_for_channel(1, [6, 7], "email") == [6, 7]
