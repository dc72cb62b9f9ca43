"""Exception hierarchy for the workflow pipeline.

An empty receiver resolution is a normal terminal state and has no exception.
"""

from __future__ import annotations

from collections.abc import Sequence


class WorkflowNotifierError(Exception):
    """Base exception for workflow-notifier errors."""


class TriggerContextError(WorkflowNotifierError):
    """Raised when the arguments of a triggering event are malformed.

    The run fails before any receiver is resolved, so nothing is delivered.
    """


class RenderError(WorkflowNotifierError):
    """Raised when computing or substituting notification content fails.

    Aborts every delivery of the affected workflow run.
    """

    workflow_id: int

    def __init__(self, workflow_id: int, message: str) -> None:
        super().__init__(message)
        self.workflow_id = workflow_id


class DeliveryError(WorkflowNotifierError):
    """Raised when a channel fails to deliver to one receiver.

    Isolated to that (receiver, channel) pair and never retried by the core.
    """

    channel: str
    receiver: int | str
    workflow_id: int

    def __init__(
        self,
        message: str,
        *,
        channel: str,
        receiver: int | str,
        workflow_id: int,
    ) -> None:
        super().__init__(message)
        self.channel = channel
        self.receiver = receiver
        self.workflow_id = workflow_id


class QueuePayloadError(WorkflowNotifierError):
    """Raised when a scheduled delivery payload cannot be decoded."""


class WorkflowRunError(WorkflowNotifierError):
    """Raised by the controller in strict mode when some workflows failed."""

    failures: tuple[RenderError, ...]

    def __init__(self, failures: Sequence[RenderError]) -> None:
        ids = ", ".join(str(failure.workflow_id) for failure in failures)
        super().__init__(f"{len(failures)} workflow run(s) failed: {ids}")
        self.failures = tuple(failures)
