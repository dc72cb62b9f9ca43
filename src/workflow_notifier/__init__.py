"""Workflow notifier - notification workflows for content-lifecycle events.

This package selects the published workflows an event applies to, resolves
their receivers per delivery channel (honouring per-user channel preferences
and opt-outs), renders the notification content once per workflow and hands
every (channel, receiver) pair to a delivery action, either immediately or
through a deferred delivery queue.
"""

from workflow_notifier.app.bootstrap import Notifier, build_notifier

__all__ = ["Notifier", "build_notifier"]
