"""Receiver resolution and per-channel partitioning.

The resolver turns the raw receiver list computed for a workflow run into a
``ReceiverChannelMap``:

- numeric receivers are user ids; duplicates are dropped (first wins)
- each user is routed to the channel stored in their preference for the
  workflow, or to the default channel when they have none
- users whose preference is the reserved ``mute`` channel are skipped
- ``email:``-prefixed receivers always go to the email channel, without the
  prefix, and are not deduplicated
- anything else is ignored
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from workflow_notifier.types.models import (
    EMAIL_CHANNEL,
    MUTE_CHANNEL,
    ReceiverChannelMap,
)
from workflow_notifier.types.protocols import ChannelPreferenceStore
from workflow_notifier.utils.logging import get_logger, log_with_context
from workflow_notifier.utils.sanitization import sanitize_receiver

__all__ = ["EMAIL_PREFIX", "ReceiverResolver", "parse_user_id"]

# Marker for literal email receivers at the receiver-source boundary
EMAIL_PREFIX = "email:"


def parse_user_id(receiver: object) -> int | None:
    """Return the user id for a numeric receiver, or None for anything else.

    Integers and strings of digits are user ids; booleans are not.
    """
    if isinstance(receiver, bool):
        return None
    if isinstance(receiver, int):
        return receiver
    if isinstance(receiver, str):
        stripped = receiver.strip()
        if stripped.isdigit():
            return int(stripped)
    return None


class ReceiverResolver:
    """Resolve raw receivers into a per-channel map for one workflow."""

    def __init__(
        self,
        preference_store: ChannelPreferenceStore,
        *,
        default_channel: str = EMAIL_CHANNEL,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if default_channel == MUTE_CHANNEL:
            msg = f"default_channel cannot be the reserved {MUTE_CHANNEL!r} channel"
            raise ValueError(msg)

        self._preference_store: ChannelPreferenceStore = preference_store
        self._default_channel: str = default_channel
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def default_channel(self) -> str:
        return self._default_channel

    def resolve(self, workflow_id: int, raw_receivers: Iterable[object]) -> ReceiverChannelMap:
        """Partition raw receivers by channel for the given workflow."""
        resolved = ReceiverChannelMap()
        seen_users: set[int] = set()

        for receiver in raw_receivers:
            user_id = parse_user_id(receiver)
            if user_id is not None:
                if user_id in seen_users:
                    continue
                seen_users.add(user_id)
                channel = self.channel_for_user(user_id, workflow_id)
                if channel == MUTE_CHANNEL:
                    self._logger.debug(
                        "Receiver muted workflow",
                        extra={"workflow_id": workflow_id, "receiver": user_id},
                    )
                    continue
                resolved.add(channel, user_id)
            elif isinstance(receiver, str) and receiver.startswith(EMAIL_PREFIX):
                resolved.add(EMAIL_CHANNEL, receiver.removeprefix(EMAIL_PREFIX))
            else:
                self._logger.debug(
                    "Ignoring unsupported receiver",
                    extra={
                        "workflow_id": workflow_id,
                        "receiver": sanitize_receiver(receiver),
                        "receiver_type": type(receiver).__name__,
                    },
                )

        log_with_context(
            self._logger,
            logging.DEBUG,
            "Resolved receivers",
            extra={
                "workflow_id": workflow_id,
                "channels": list(resolved.channels()),
                "receiver_count": len(resolved.all_receivers()),
            },
        )
        return resolved

    def channel_for_user(self, user_id: int, workflow_id: int) -> str:
        """Return the channel a user receives this workflow on.

        May return the mute channel; callers decide what muting means.
        """
        channel = self._preference_store.get_channel_preference(user_id, workflow_id)
        if not channel:
            return self._default_channel
        return channel
