"""In-memory implementations of the storage collaborators.

Production hosts back these protocols with their own storage; the in-memory
versions serve the CLI, embedding applications without persistence, and
tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from workflow_notifier.types.models import WorkflowDefinition, WorkflowQuery


class InMemoryWorkflowStore:
    """Workflow definitions kept in insertion (storage) order."""

    def __init__(self, workflows: Iterable[WorkflowDefinition] = ()) -> None:
        self._workflows: dict[int, WorkflowDefinition] = {}
        for workflow in workflows:
            self.add(workflow)

    def add(self, workflow: WorkflowDefinition) -> None:
        """Add or replace a workflow definition."""
        self._workflows[workflow.id] = workflow

    def remove(self, workflow_id: int) -> None:
        _ = self._workflows.pop(workflow_id, None)

    def find_workflows(self, query: WorkflowQuery) -> Sequence[WorkflowDefinition]:
        return [workflow for workflow in self._workflows.values() if query.matches(workflow)]

    def get_workflow(self, workflow_id: int) -> WorkflowDefinition | None:
        return self._workflows.get(workflow_id)

    def __len__(self) -> int:
        return len(self._workflows)


class InMemoryPreferenceStore:
    """Per-user channel preferences keyed by (user id, workflow id)."""

    def __init__(self, preferences: Mapping[tuple[int, int], str] | None = None) -> None:
        self._preferences: dict[tuple[int, int], str] = dict(preferences or {})

    def set_channel_preference(self, user_id: int, workflow_id: int, channel: str) -> None:
        self._preferences[(user_id, workflow_id)] = channel

    def clear_channel_preference(self, user_id: int, workflow_id: int) -> None:
        _ = self._preferences.pop((user_id, workflow_id), None)

    def get_channel_preference(self, user_id: int, workflow_id: int) -> str | None:
        return self._preferences.get((user_id, workflow_id))

    def get_channel_preferences(
        self, workflow_id: int, user_ids: Sequence[int]
    ) -> Mapping[int, str]:
        return {
            user_id: self._preferences[(user_id, workflow_id)]
            for user_id in user_ids
            if (user_id, workflow_id) in self._preferences
        }
