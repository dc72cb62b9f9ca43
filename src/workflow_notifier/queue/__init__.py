"""Deferred delivery: queue, payload codec, schedulers and executor."""

from workflow_notifier.queue.async_queue import AsyncDeliveryQueue
from workflow_notifier.queue.codec import decode_content, decode_unit, encode_content, encode_unit
from workflow_notifier.queue.executor import DeferredDeliveryExecutor
from workflow_notifier.queue.scheduler import InMemoryScheduler, JsonFileScheduler

__all__ = [
    "AsyncDeliveryQueue",
    "DeferredDeliveryExecutor",
    "InMemoryScheduler",
    "JsonFileScheduler",
    "decode_content",
    "decode_unit",
    "encode_content",
    "encode_unit",
]
