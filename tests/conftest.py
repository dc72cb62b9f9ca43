"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from tests.fixtures.workflow_fakes import (
    CountingPreferenceStore,
    FixedClock,
    RecordingAction,
    make_context,
    make_workflow,
)
from workflow_notifier.core.stores import InMemoryWorkflowStore
from workflow_notifier.types import TriggerContext, WorkflowDefinition
from workflow_notifier.utils.logging import clear_correlation_id


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> Generator[None, None, None]:
    """Keep correlation ids from leaking between tests."""
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.fixture
def workflow() -> WorkflowDefinition:
    return make_workflow()


@pytest.fixture
def trigger_context() -> TriggerContext:
    return make_context()


@pytest.fixture
def preference_store() -> CountingPreferenceStore:
    return CountingPreferenceStore()


@pytest.fixture
def workflow_store(workflow: WorkflowDefinition) -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore([workflow])


@pytest.fixture
def recording_action() -> RecordingAction:
    return RecordingAction()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()
