"""Scheduled delivery payload codec.

A deferred delivery is stored by the scheduler as a positional payload::

    [workflow_id, action, content_id, content, old_status, new_status, channel, receiver]

``content`` is the notification content serialized as JSON and then base64
encoded, so the payload only holds JSON scalars and survives any scheduler
persistence layer unchanged.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping, Sequence
from typing import cast

from workflow_notifier.core.errors import QueuePayloadError
from workflow_notifier.types.models import DeliveryUnit, NotificationContent

__all__ = ["PAYLOAD_FIELDS", "decode_content", "decode_unit", "encode_content", "encode_unit"]

PAYLOAD_FIELDS: tuple[str, ...] = (
    "workflow_id",
    "action",
    "content_id",
    "content",
    "old_status",
    "new_status",
    "channel",
    "receiver",
)


def encode_content(content: NotificationContent) -> str:
    """Serialize content into a transport-safe ASCII string."""
    serialized = json.dumps(content.as_dict(), separators=(",", ":"), sort_keys=True)
    return base64.b64encode(serialized.encode("utf-8")).decode("ascii")


def decode_content(encoded: str) -> NotificationContent:
    """Inverse of ``encode_content``.

    Raises:
        QueuePayloadError: If the string is not valid encoded content
    """
    try:
        raw = base64.b64decode(encoded.encode("ascii"), validate=True)
        data = cast(object, json.loads(raw.decode("utf-8")))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        msg = f"Invalid encoded content: {exc}"
        raise QueuePayloadError(msg) from exc

    if not isinstance(data, Mapping):
        msg = "Encoded content must be a JSON object"
        raise QueuePayloadError(msg)
    return NotificationContent.from_mapping(cast(Mapping[str, object], data))


def encode_unit(unit: DeliveryUnit) -> tuple[object, ...]:
    """Return the positional scheduler payload for a delivery unit."""
    return (
        unit.workflow_id,
        unit.action,
        unit.content_id,
        encode_content(unit.content),
        unit.old_status,
        unit.new_status,
        unit.channel,
        unit.receiver,
    )


def _require_int(value: object, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"Payload field {field_name!r} must be an integer, got {type(value).__name__}"
        raise QueuePayloadError(msg)
    return value


def _require_str(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        msg = f"Payload field {field_name!r} must be a non-empty string"
        raise QueuePayloadError(msg)
    return value


def _optional_str(value: object, field_name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    msg = f"Payload field {field_name!r} must be a string or null"
    raise QueuePayloadError(msg)


def decode_unit(payload: Sequence[object]) -> DeliveryUnit:
    """Rebuild a delivery unit from its positional payload.

    Raises:
        QueuePayloadError: If the payload has the wrong shape or field types
    """
    if isinstance(payload, (str, bytes)) or len(payload) != len(PAYLOAD_FIELDS):
        msg = f"Payload must have {len(PAYLOAD_FIELDS)} positional fields"
        raise QueuePayloadError(msg)

    workflow_id, action, content_id, content, old_status, new_status, channel, receiver = payload

    if isinstance(receiver, bool) or not isinstance(receiver, (int, str)):
        msg = "Payload field 'receiver' must be a user id or an email address"
        raise QueuePayloadError(msg)

    return DeliveryUnit(
        workflow_id=_require_int(workflow_id, "workflow_id"),
        action=_require_str(action, "action"),
        content_id=_require_int(content_id, "content_id"),
        content=decode_content(_require_str(content, "content")),
        old_status=_optional_str(old_status, "old_status"),
        new_status=_optional_str(new_status, "new_status"),
        channel=_require_str(channel, "channel"),
        receiver=receiver,
    )
