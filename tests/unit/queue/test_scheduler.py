"""Tests for the in-memory and JSON file schedulers."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

import pytest

from tests.fixtures.workflow_fakes import FixedClock
from workflow_notifier.core.errors import QueuePayloadError
from workflow_notifier.queue.scheduler import InMemoryScheduler, JsonFileScheduler


class _Collector:
    def __init__(self) -> None:
        self.payloads: list[tuple[object, ...]] = []

    def __call__(self, payload: Sequence[object]) -> None:
        self.payloads.append(tuple(payload))


@pytest.mark.unit
class TestInMemoryScheduler:
    def test_runs_due_events_in_time_then_scheduling_order(self, clock: FixedClock) -> None:
        scheduler = InMemoryScheduler(clock=clock)
        collector = _Collector()
        scheduler.register_handler("deliver", collector)

        scheduler.schedule_at(clock.now + 10, "deliver", ["late"])
        scheduler.schedule_at(clock.now, "deliver", ["first"])
        scheduler.schedule_at(clock.now, "deliver", ["second"])

        assert scheduler.run_due() == 2
        assert collector.payloads == [("first",), ("second",)]
        assert len(scheduler) == 1

        clock.now += 10
        assert scheduler.run_due() == 1
        assert collector.payloads[-1] == ("late",)
        assert len(scheduler) == 0

    def test_explicit_now_overrides_clock(self, clock: FixedClock) -> None:
        scheduler = InMemoryScheduler(clock=clock)
        collector = _Collector()
        scheduler.register_handler("deliver", collector)
        scheduler.schedule_at(clock.now + 60, "deliver", [1])

        assert scheduler.run_due(clock.now + 59) == 0
        assert scheduler.run_due(clock.now + 60) == 1

    def test_pending_is_in_execution_order(self, clock: FixedClock) -> None:
        scheduler = InMemoryScheduler(clock=clock)
        scheduler.schedule_at(30, "b", [])
        scheduler.schedule_at(10, "a", [])
        scheduler.schedule_at(30, "c", [])

        assert [event.action_name for event in scheduler.pending()] == ["a", "b", "c"]
        assert [event.sequence for event in scheduler.pending()] == [1, 0, 2]

    def test_events_without_handler_stay_queued(self, clock: FixedClock) -> None:
        scheduler = InMemoryScheduler(clock=clock)
        scheduler.schedule_at(clock.now, "unknown", [1])

        assert scheduler.run_due() == 0
        assert len(scheduler) == 1

        collector = _Collector()
        scheduler.register_handler("unknown", collector)
        assert scheduler.run_due() == 1
        assert collector.payloads == [(1,)]

    def test_failing_handler_is_logged_and_not_retried(
        self, clock: FixedClock, caplog: pytest.LogCaptureFixture
    ) -> None:
        scheduler = InMemoryScheduler(clock=clock)
        collector = _Collector()

        def failing(payload: Sequence[object]) -> None:
            raise RuntimeError("transport down for bob@example.com")

        scheduler.register_handler("fail", failing)
        scheduler.register_handler("ok", collector)
        scheduler.schedule_at(clock.now, "fail", [1])
        scheduler.schedule_at(clock.now, "ok", [2])

        with caplog.at_level(logging.ERROR):
            assert scheduler.run_due() == 2

        assert collector.payloads == [(2,)]
        assert len(scheduler) == 0
        (record,) = [r for r in caplog.records if r.getMessage() == "Scheduled event failed"]
        assert "b***@example.com" in getattr(record, "error_message")

    def test_duplicate_handler_rejected(self, clock: FixedClock) -> None:
        scheduler = InMemoryScheduler(clock=clock)
        scheduler.register_handler("deliver", _Collector())

        with pytest.raises(ValueError, match="already registered"):
            scheduler.register_handler("deliver", _Collector())


@pytest.mark.unit
class TestJsonFileScheduler:
    def test_schedule_persists_events(self, tmp_path: Path, clock: FixedClock) -> None:
        path = tmp_path / "queue.json"
        scheduler = JsonFileScheduler(path, clock=clock)

        scheduler.schedule_at(clock.now, "deliver", [4, "email", None])

        state = json.loads(path.read_text(encoding="utf-8"))
        assert state == {
            "version": 1,
            "events": [
                {
                    "timestamp": clock.now,
                    "action_name": "deliver",
                    "payload": [4, "email", None],
                    "sequence": 0,
                }
            ],
        }
        assert not (tmp_path / "queue.json.tmp").exists()

    def test_reload_restores_pending_events(self, tmp_path: Path, clock: FixedClock) -> None:
        path = tmp_path / "queue.json"
        first = JsonFileScheduler(path, clock=clock)
        first.schedule_at(clock.now + 5, "deliver", ["b"])
        first.schedule_at(clock.now, "deliver", ["a"])

        second = JsonFileScheduler(path, clock=clock)
        second.schedule_at(clock.now, "deliver", ["c"])
        collector = _Collector()
        second.register_handler("deliver", collector)

        assert second.run_due(clock.now + 5) == 3
        assert collector.payloads == [("a",), ("c",), ("b",)]

    def test_run_due_persists_removal(self, tmp_path: Path, clock: FixedClock) -> None:
        path = tmp_path / "queue.json"
        scheduler = JsonFileScheduler(path, clock=clock)
        scheduler.register_handler("deliver", _Collector())
        scheduler.schedule_at(clock.now, "deliver", [1])

        _ = scheduler.run_due()

        assert json.loads(path.read_text(encoding="utf-8"))["events"] == []
        assert len(JsonFileScheduler(path, clock=clock)) == 0

    def test_missing_file_starts_empty(self, tmp_path: Path, clock: FixedClock) -> None:
        scheduler = JsonFileScheduler(tmp_path / "queue.json", clock=clock)

        assert len(scheduler) == 0
        assert not (tmp_path / "queue.json").exists()

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[]",
            '{"events": {}}',
            '{"events": [42]}',
            '{"events": [{"timestamp": "soon", "action_name": "a", "payload": []}]}',
            '{"events": [{"timestamp": 1, "action_name": "", "payload": []}]}',
            '{"events": [{"timestamp": 1, "action_name": "a", "payload": "x"}]}',
            '{"events": [{"timestamp": 1, "action_name": "a", "payload": [], "sequence": 1.5}]}',
        ],
    )
    def test_corrupted_file_raises(self, tmp_path: Path, clock: FixedClock, content: str) -> None:
        path = tmp_path / "queue.json"
        _ = path.write_text(content, encoding="utf-8")

        with pytest.raises(QueuePayloadError):
            _ = JsonFileScheduler(path, clock=clock)
