"""
Field extraction from Zalo GMF webhook events.

Zalo sends several payload shapes depending on event family and API
version; these helpers read the first field that is present.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class SenderInfo:
    id: str
    name: str
    user_id_by_app: Optional[str] = None


def _get(mapping: Any, *path: str) -> Any:
    """Walk nested dict keys, returning None on the first missing step."""
    current = mapping
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _first(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return None


def extract_event_type(event: dict) -> str:
    return str(_first(
        event.get("event_name"),
        event.get("event"),
        event.get("type"),
        event.get("event_type"),
    ) or "unknown")


def extract_group_id(event: dict) -> Optional[str]:
    """GMF format: recipient.id is the group id."""
    group_id = _first(
        _get(event, "recipient", "id"),
        event.get("group_id"),
        _get(event, "recipient", "group_id"),
        _get(event, "group", "id"),
        _get(event, "conversation", "id"),
    )
    return str(group_id) if group_id else None


def extract_sender(event: dict) -> SenderInfo:
    sender_id = _first(
        _get(event, "sender", "id"),
        event.get("user_id_by_app"),
        _get(event, "sender", "user_id"),
        event.get("user_id"),
    )
    sender_name = _first(
        _get(event, "sender", "name"),
        _get(event, "sender", "display_name"),
        event.get("user_name"),
    )
    return SenderInfo(
        id=str(sender_id) if sender_id else "Unknown",
        name=str(sender_name) if sender_name else "Unknown",
        user_id_by_app=event.get("user_id_by_app") or None,
    )


def extract_message_text(event: dict) -> str:
    message = event.get("message")
    if isinstance(message, str):
        return message
    text = _first(
        _get(event, "message", "text"),
        _get(event, "message", "content"),
        event.get("text"),
    )
    return text if isinstance(text, str) else ""


def extract_message_id(event: dict) -> Optional[str]:
    """Platform-assigned message id, if the event carries one."""
    message_id = _first(
        _get(event, "message", "msg_id"),
        _get(event, "message", "message_id"),
        _get(event, "message", "id"),
    )
    return str(message_id) if message_id else None
