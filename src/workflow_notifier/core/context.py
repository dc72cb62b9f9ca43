"""Construction and validation of trigger contexts.

Hosts announce events with a loose argument bag (``action``, ``post``,
``old_status``, ``new_status`` and anything else the event carries). These
helpers turn such a bag into an immutable ``TriggerContext`` and reject
malformed events before any workflow work starts.
"""

from __future__ import annotations

from collections.abc import Mapping

from workflow_notifier.core.errors import TriggerContextError
from workflow_notifier.types.models import ContentItem, TriggerContext

_KNOWN_KEYS = frozenset({"action", "post", "old_status", "new_status"})


def _coerce_int(value: object, field_name: str) -> int:
    if isinstance(value, bool):
        raise TriggerContextError(f"'{field_name}' must be an integer id, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise TriggerContextError(f"'{field_name}' must be an integer id, got {value!r}")


def _optional_str(args: Mapping[str, object], key: str) -> str | None:
    value = args.get(key)
    if value is None or isinstance(value, str):
        return value
    raise TriggerContextError(f"'{key}' must be a string when present, got {type(value).__name__}")


def build_content_item(post: object) -> ContentItem:
    """Build a ContentItem from an id, a mapping or an existing item.

    Mappings may use either plain keys (``id``, ``title``, ``author_id``,
    ``status``) or the ``post_``-prefixed keys of the host platform.

    Raises:
        TriggerContextError: If the post reference is missing or malformed
    """
    if isinstance(post, ContentItem):
        return post
    if isinstance(post, Mapping):
        raw_id = post.get("id", post.get("ID"))  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        if raw_id is None:
            raise TriggerContextError("'post' mapping has no 'id'")
        author = post.get("author_id", post.get("post_author"))  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        status = post.get("status", post.get("post_status"))  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        return ContentItem(
            id=_coerce_int(raw_id, "post.id"),
            title=str(post.get("title", post.get("post_title", "")) or ""),  # pyright: ignore[reportUnknownMemberType, reportUnknownArgumentType]
            author_id=None if author is None else _coerce_int(author, "post.author_id"),
            status=None if status is None else str(status),  # pyright: ignore[reportUnknownArgumentType]
            post_type=str(post.get("post_type", "post")),  # pyright: ignore[reportUnknownMemberType, reportUnknownArgumentType]
        )
    if post is None:
        raise TriggerContextError("Trigger context has no 'post'")
    return ContentItem(id=_coerce_int(post, "post"))


def build_trigger_context(args: Mapping[str, object]) -> TriggerContext:
    """Build a TriggerContext from the raw arguments of an event.

    Raises:
        TriggerContextError: If ``action`` or ``post`` is missing or malformed

    Example:
        >>> ctx = build_trigger_context(
        ...     {"action": "transition_post_status", "post": {"id": 7},
        ...      "old_status": "draft", "new_status": "pending"}
        ... )
        >>> ctx.post.id
        7
    """
    action = args.get("action")
    if not isinstance(action, str) or not action:
        raise TriggerContextError("Trigger context requires a non-empty 'action'")

    if "post" not in args:
        raise TriggerContextError("Trigger context has no 'post'")

    return TriggerContext(
        action=action,
        post=build_content_item(args["post"]),
        old_status=_optional_str(args, "old_status"),
        new_status=_optional_str(args, "new_status"),
        extra={key: value for key, value in args.items() if key not in _KNOWN_KEYS},
    )


def ensure_trigger_context(value: TriggerContext | Mapping[str, object]) -> TriggerContext:
    """Return a validated TriggerContext for either a context or a raw mapping.

    Raises:
        TriggerContextError: If the context is malformed
    """
    if isinstance(value, TriggerContext):
        if not value.action:
            raise TriggerContextError("Trigger context requires a non-empty 'action'")
        return value
    return build_trigger_context(value)
