"""One-shot schedulers for deferred delivery units.

``InMemoryScheduler`` keeps events in a heap ordered by fire time and
scheduling order. ``JsonFileScheduler`` behaves the same and persists the
pending events to a JSON file after every change, so units survive between
CLI invocations.
"""

from __future__ import annotations

import heapq
import json
import logging
import os
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import cast, override

from workflow_notifier.core.errors import QueuePayloadError
from workflow_notifier.types.models import ScheduledEvent
from workflow_notifier.utils.logging import get_logger, log_with_context
from workflow_notifier.utils.sanitization import sanitize_exception

__all__ = ["EventHandler", "InMemoryScheduler", "JsonFileScheduler"]

type EventHandler = Callable[[Sequence[object]], None]

_QUEUE_FILE_VERSION = 1


class InMemoryScheduler:
    """Heap based scheduler executing due events on demand."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._heap: list[tuple[float, int, ScheduledEvent]] = []
        self._handlers: dict[str, EventHandler] = {}
        self._next_sequence: int = 0
        self._clock: Callable[[], float] = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def schedule_at(self, timestamp: float, action_name: str, payload: Sequence[object]) -> None:
        event = ScheduledEvent(
            timestamp=timestamp,
            action_name=action_name,
            payload=tuple(payload),
            sequence=self._next_sequence,
        )
        self._next_sequence += 1
        self._push(event)
        self._changed()

    def register_handler(self, action_name: str, handler: EventHandler) -> None:
        """Register the handler run for events scheduled under action_name."""
        if action_name in self._handlers:
            msg = f"Handler for {action_name!r} already registered"
            raise ValueError(msg)
        self._handlers[action_name] = handler

    def pending(self) -> list[ScheduledEvent]:
        """Return pending events in execution order."""
        return [event for _, _, event in sorted(self._heap)]

    def __len__(self) -> int:
        return len(self._heap)

    def run_due(self, now: float | None = None) -> int:
        """Execute every event due at ``now`` and return how many ran.

        Each due event is removed before its handler runs, so a failing
        handler is logged and its event is not retried. Events without a
        registered handler stay queued.
        """
        current = self._clock() if now is None else now
        unhandled: list[ScheduledEvent] = []
        executed = 0

        while self._heap and self._heap[0][0] <= current:
            _, _, event = heapq.heappop(self._heap)
            handler = self._handlers.get(event.action_name)
            if handler is None:
                unhandled.append(event)
                continue

            executed += 1
            try:
                handler(event.payload)
            except Exception as exc:
                log_with_context(
                    self._logger,
                    logging.ERROR,
                    "Scheduled event failed",
                    extra={
                        "action_name": event.action_name,
                        "sequence": event.sequence,
                        "error_message": sanitize_exception(exc),
                    },
                )

        for event in unhandled:
            self._push(event)

        if executed:
            self._changed()
        return executed

    def _push(self, event: ScheduledEvent) -> None:
        heapq.heappush(self._heap, (event.timestamp, event.sequence, event))

    def _changed(self) -> None:
        """Hook called after the set of pending events changed."""


class JsonFileScheduler(InMemoryScheduler):
    """Scheduler persisting pending events to a JSON file.

    Raises:
        QueuePayloadError: If an existing queue file cannot be read
    """

    storage_path: Path

    def __init__(
        self,
        storage_path: Path,
        *,
        clock: Callable[[], float] = time.time,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        super().__init__(clock=clock, logger_obj=logger_obj)
        self.storage_path = storage_path
        self._load()

    def _load(self) -> None:
        if not self.storage_path.exists():
            return

        try:
            with open(self.storage_path, encoding="utf-8") as f:
                data = cast(object, json.load(f))
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Failed to read queue file {self.storage_path}: {exc}"
            raise QueuePayloadError(msg) from exc

        if not isinstance(data, Mapping):
            msg = f"Queue file {self.storage_path} must contain a JSON object"
            raise QueuePayloadError(msg)
        state = cast(Mapping[str, object], data)

        events = state.get("events", [])
        if not isinstance(events, list):
            msg = f"Queue file {self.storage_path} has no event list"
            raise QueuePayloadError(msg)

        for raw_event in cast(list[object], events):
            event = _event_from_json(raw_event)
            self._push(event)
            self._next_sequence = max(self._next_sequence, event.sequence + 1)

    @override
    def _changed(self) -> None:
        state = {
            "version": _QUEUE_FILE_VERSION,
            "events": [
                {
                    "timestamp": event.timestamp,
                    "action_name": event.action_name,
                    "payload": list(event.payload),
                    "sequence": event.sequence,
                }
                for event in self.pending()
            ],
        }
        temp_path = self.storage_path.with_name(f"{self.storage_path.name}.tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2)
        os.replace(temp_path, self.storage_path)


def _event_from_json(raw_event: object) -> ScheduledEvent:
    if not isinstance(raw_event, Mapping):
        msg = "Queued event must be a JSON object"
        raise QueuePayloadError(msg)
    event = cast(Mapping[str, object], raw_event)

    timestamp = event.get("timestamp")
    action_name = event.get("action_name")
    payload = event.get("payload")
    sequence = event.get("sequence", 0)

    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        msg = "Queued event has an invalid timestamp"
        raise QueuePayloadError(msg)
    if not isinstance(action_name, str) or not action_name:
        msg = "Queued event has an invalid action name"
        raise QueuePayloadError(msg)
    if not isinstance(payload, list):
        msg = "Queued event payload must be a list"
        raise QueuePayloadError(msg)
    if isinstance(sequence, bool) or not isinstance(sequence, int):
        msg = "Queued event has an invalid sequence"
        raise QueuePayloadError(msg)

    return ScheduledEvent(
        timestamp=float(timestamp),
        action_name=action_name,
        payload=tuple(cast(list[object], payload)),
        sequence=sequence,
    )
