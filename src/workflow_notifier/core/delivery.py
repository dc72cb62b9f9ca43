"""Delivery actions and channel transports.

The workflow runner never sends anything itself. For every (channel,
receiver) pair it asks the ``DeliveryActionPoint`` which action to run. By
default that is ``ImmediateDelivery``, which hands the request to the
transport registered for the channel. Interceptors registered on the action
point can replace the action, which is how deferred delivery redirects
every send into the scheduler without the runner knowing.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from workflow_notifier.core.errors import DeliveryError
from workflow_notifier.types.aliases import ChannelName, DeliveryAction
from workflow_notifier.types.models import MUTE_CHANNEL, DeliveryRequest, WorkflowDefinition
from workflow_notifier.types.protocols import ChannelTransport
from workflow_notifier.utils.logging import get_logger, log_with_context
from workflow_notifier.utils.sanitization import sanitize_exception, sanitize_receiver

__all__ = [
    "ActionInterceptor",
    "DeliveryActionPoint",
    "ImmediateDelivery",
    "LoggingTransport",
    "TransportRegistry",
    "action_name_for",
]

type ActionInterceptor = Callable[[ChannelName, WorkflowDefinition, DeliveryAction], DeliveryAction]

_IDENTIFIER_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


def action_name_for(channel: ChannelName) -> str:
    """Return the name of the default delivery action for a channel."""
    return f"send_notification_{channel}"


class TransportRegistry:
    """Registry of channel transports keyed by channel name."""

    def __init__(self) -> None:
        self._transports: dict[ChannelName, ChannelTransport] = {}

    def register(self, transport: ChannelTransport, *, channel: ChannelName | None = None) -> None:
        """Register a transport under its channel (or an explicit channel name)."""
        slug = self._normalize_channel(channel or transport.channel)
        if slug in self._transports:
            msg = f"Transport for channel {slug!r} already registered"
            raise ValueError(msg)
        self._transports[slug] = transport

    def unregister(self, channel: ChannelName) -> None:
        slug = self._normalize_channel(channel)
        _ = self._transports.pop(slug, None)

    def get(self, channel: ChannelName) -> ChannelTransport | None:
        return self._transports.get(channel.strip().lower())

    def channels(self) -> tuple[ChannelName, ...]:
        """Return registered channel names sorted alphabetically."""
        return tuple(sorted(self._transports))

    def __contains__(self, channel: object) -> bool:
        return isinstance(channel, str) and channel.strip().lower() in self._transports

    @staticmethod
    def _normalize_channel(channel: ChannelName) -> ChannelName:
        slug = channel.strip().lower()
        if slug == MUTE_CHANNEL:
            msg = f"{MUTE_CHANNEL!r} is reserved and cannot have a transport"
            raise ValueError(msg)
        if not _IDENTIFIER_PATTERN.match(slug):
            msg = (
                "Channel names must start with a letter and contain only "
                "lowercase letters, numbers, or underscores"
            )
            raise ValueError(msg)
        return slug


class ImmediateDelivery:
    """Default delivery action: send now through the channel's transport.

    Used as a delivery action (``__call__``) it isolates failures: a
    ``DeliveryError`` is logged and swallowed so the remaining receivers of
    the run are still delivered. ``deliver`` raises instead, for callers such
    as the deferred executor that report failures themselves.
    """

    def __init__(
        self,
        transports: TransportRegistry,
        *,
        dry_run_enabled: bool = False,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._transports: TransportRegistry = transports
        self._dry_run_enabled: bool = dry_run_enabled
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def __call__(self, request: DeliveryRequest) -> None:
        try:
            self.deliver(request)
        except DeliveryError as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Notification delivery failed",
                extra={
                    "workflow_id": exc.workflow_id,
                    "channel": exc.channel,
                    "receiver": sanitize_receiver(exc.receiver),
                    "error_message": str(exc),
                },
            )

    def deliver(self, request: DeliveryRequest) -> None:
        """Send the request through the channel transport.

        Raises:
            DeliveryError: If no transport serves the channel or the transport fails
        """
        if self._dry_run_enabled:
            log_with_context(
                self._logger,
                logging.INFO,
                "Dry-run delivery recorded",
                extra=_request_log_fields(request),
            )
            return

        transport = self._transports.get(request.channel)
        if transport is None:
            raise DeliveryError(
                f"No transport registered for channel {request.channel!r}",
                channel=request.channel,
                receiver=request.receiver,
                workflow_id=request.workflow.id,
            )

        try:
            transport.deliver(request)
        except Exception as exc:
            raise DeliveryError(
                f"Channel {request.channel!r} failed: {sanitize_exception(exc)}",
                channel=request.channel,
                receiver=request.receiver,
                workflow_id=request.workflow.id,
            ) from exc

        log_with_context(
            self._logger,
            logging.INFO,
            "Notification delivered",
            extra=_request_log_fields(request),
        )


class DeliveryActionPoint:
    """Resolves which delivery action runs for a channel.

    Interceptors are applied in registration order, each receiving the action
    chosen so far and returning the action to use.
    """

    def __init__(self, default_action: DeliveryAction) -> None:
        self._default_action: DeliveryAction = default_action
        self._interceptors: list[ActionInterceptor] = []

    def add_interceptor(self, interceptor: ActionInterceptor) -> None:
        self._interceptors.append(interceptor)

    def remove_interceptor(self, interceptor: ActionInterceptor) -> None:
        if interceptor in self._interceptors:
            self._interceptors.remove(interceptor)

    @property
    def default_action(self) -> DeliveryAction:
        return self._default_action

    def action_for(self, channel: ChannelName, workflow: WorkflowDefinition) -> DeliveryAction:
        action = self._default_action
        for interceptor in self._interceptors:
            action = interceptor(channel, workflow, action)
        return action


class LoggingTransport:
    """Transport that only logs what would have been sent."""

    def __init__(self, channel: ChannelName, *, logger_obj: logging.Logger | None = None) -> None:
        self.channel: ChannelName = channel
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def deliver(self, request: DeliveryRequest) -> None:
        log_with_context(
            self._logger,
            logging.INFO,
            "Logged notification",
            extra={**_request_log_fields(request), "subject": request.content.subject},
        )


def _request_log_fields(request: DeliveryRequest) -> dict[str, object]:
    return {
        "workflow_id": request.workflow.id,
        "trigger_action": request.context.action,
        "post_id": request.context.post.id,
        "channel": request.channel,
        "receiver": sanitize_receiver(request.receiver),
    }
