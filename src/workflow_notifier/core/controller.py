"""Workflow controller: entry point for triggering events.

The controller selects the published workflows that apply to an event and
runs each of them. A failed run is logged and the remaining workflows still
run; strict hosts can ask for the failures to be raised afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from workflow_notifier.core.context import ensure_trigger_context
from workflow_notifier.core.errors import RenderError, WorkflowRunError
from workflow_notifier.core.workflow import RunResult, WorkflowRunner
from workflow_notifier.types.aliases import ChannelName, QueryFilter
from workflow_notifier.types.models import (
    EMAIL_CHANNEL,
    MUTE_CHANNEL,
    PUBLISHED_STATUS,
    TriggerContext,
    WorkflowQuery,
)
from workflow_notifier.types.protocols import ChannelPreferenceStore, WorkflowStore
from workflow_notifier.utils.logging import correlation_scope, get_logger, log_with_context

__all__ = ["WorkflowController"]


class WorkflowController:
    """Runs every matching published workflow for a triggering event.

    Args:
        workflow_store: Storage queried for workflow definitions
        runner: Runner executing one workflow
        preference_store: Bulk channel preference lookups for
            ``filtered_receivers_for_channel``
        query_filters: Callables contributing criteria to the workflow query
        default_channel: Channel for users without a stored preference
        raise_on_error: Raise ``WorkflowRunError`` after all workflows ran if
            any of them failed to render
    """

    def __init__(
        self,
        workflow_store: WorkflowStore,
        runner: WorkflowRunner,
        preference_store: ChannelPreferenceStore,
        *,
        query_filters: Sequence[QueryFilter] = (),
        default_channel: ChannelName = EMAIL_CHANNEL,
        raise_on_error: bool = False,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._workflow_store: WorkflowStore = workflow_store
        self._runner: WorkflowRunner = runner
        self._preference_store: ChannelPreferenceStore = preference_store
        self._query_filters: tuple[QueryFilter, ...] = tuple(query_filters)
        self._default_channel: ChannelName = default_channel
        self._raise_on_error: bool = raise_on_error
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._receivers_by_channel: dict[ChannelName, list[int]] = {}

    def build_query(self, context: TriggerContext) -> WorkflowQuery:
        """Return the query selecting published workflows for the event."""
        query = WorkflowQuery(status=PUBLISHED_STATUS)
        for query_filter in self._query_filters:
            query = query_filter(query, context)
        return query

    def on_trigger_event(self, context: TriggerContext | Mapping[str, object]) -> list[RunResult]:
        """Run all workflows matching the event, in storage order.

        Raises:
            TriggerContextError: If the event arguments are malformed
            WorkflowRunError: In strict mode, if any workflow failed to render
        """
        trigger = ensure_trigger_context(context)

        with correlation_scope():
            workflows = self._workflow_store.find_workflows(self.build_query(trigger))
            log_with_context(
                self._logger,
                logging.INFO,
                "Trigger event received",
                extra={
                    "trigger_action": trigger.action,
                    "post_id": trigger.post.id,
                    "workflow_count": len(workflows),
                },
            )

            results: list[RunResult] = []
            failures: list[RenderError] = []
            for workflow in workflows:
                try:
                    results.append(self._runner.run(workflow, trigger))
                except RenderError as exc:
                    failures.append(exc)
                    log_with_context(
                        self._logger,
                        logging.ERROR,
                        "Workflow run failed",
                        extra={"workflow_id": workflow.id, "error_message": str(exc)},
                    )

        if failures and self._raise_on_error:
            raise WorkflowRunError(failures)
        return results

    def filtered_receivers_for_channel(
        self,
        workflow_id: int,
        candidate_ids: Sequence[int],
        channel: ChannelName,
    ) -> list[int]:
        """Return the candidates that receive the workflow on a channel.

        Preferences are looked up in bulk. The per-channel lists are computed
        on the first call only and kept for the life of the controller, so
        later calls answer from that first computation whatever their
        ``workflow_id`` or candidates. Use ``reset_receiver_cache`` between
        events. Querying a channel nobody uses records an empty list.
        """
        if not self._receivers_by_channel:
            preferences = self._preference_store.get_channel_preferences(
                workflow_id, candidate_ids
            )
            for user_id in candidate_ids:
                preference = preferences.get(user_id)
                # Muted users are left out, not routed to the default channel
                if preference == MUTE_CHANNEL:
                    continue
                target = preference or self._default_channel
                self._receivers_by_channel.setdefault(target, []).append(user_id)

            self._logger.debug(
                "Cached receivers by channel",
                extra={
                    "workflow_id": workflow_id,
                    "channels": list(self._receivers_by_channel),
                },
            )

        return list(self._receivers_by_channel.setdefault(channel, []))

    def reset_receiver_cache(self) -> None:
        self._receivers_by_channel.clear()
