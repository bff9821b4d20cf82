"""
Command dispatcher - classifies incoming webhook events.

Unclassified -> OtherEvent                       (not a message-like type)
             -> MessageEvent -> QueryCommand     ("/t ...")
                             -> SaveCommand      ("/p ...")
                             -> Ignored          (plain chat, empty command)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gmf_bot.utils.extractors import extract_event_type, extract_message_text

# Message event types from Zalo GMF
MESSAGE_EVENT_TYPES = frozenset([
    # User sends messages to group
    "user_send_group_text",
    "user_send_group_image",
    "user_send_group_link",
    "user_send_group_audio",
    "user_send_group_video",
    "user_send_group_business_card",
    "user_send_group_sticker",
    "user_send_group_gif",
    "user_send_group_file",
    # OA sends messages to group
    "oa_send_group_text",
    "oa_send_group_image",
    "oa_send_group_link",
    "oa_send_group_audio",
    "oa_send_group_location",
    "oa_send_group_video",
    "oa_send_group_business_card",
    "oa_send_group_sticker",
    "oa_send_group_gif",
    "oa_send_group_file",
    # Legacy/fallback event types
    "user_send_text",
    "oa_send_text",
    "user_send_message",
    "message",
    "text_message",
    "group_message",
    "gmf_message",
])

GROUP_CREATED_EVENTS = frozenset(["oa_create_group", "create_group", "group_created"])
MEMBER_ADDED_EVENTS = frozenset(["oa_add_member", "add_member", "member_added"])
MEMBER_REMOVED_EVENTS = frozenset(["oa_remove_member", "remove_member", "member_removed"])


class CommandType(Enum):
    QUERY = "/t"
    SAVE = "/p"


class DispatchState(Enum):
    OTHER_EVENT = "other_event"
    IGNORED = "ignored"
    QUERY_COMMAND = "query_command"
    SAVE_COMMAND = "save_command"
    DUPLICATE = "duplicate"


@dataclass
class Command:
    type: CommandType
    content: str
    original_text: str


@dataclass
class Dispatch:
    state: DispatchState
    event_type: str
    command: Optional[Command] = None


def is_message_event(event_type: str) -> bool:
    return event_type in MESSAGE_EVENT_TYPES


def parse_command(text: Optional[str]) -> Optional[Command]:
    """
    Extract a /t or /p command from message text.

    The prefix is case-insensitive and the space after it is optional:
    "/P\\nbuy milk" -> SAVE "buy milk". Returns None for plain chat and
    for a prefix with nothing after it.
    """
    if not text:
        return None

    stripped = text.strip()
    prefix = stripped[:2].lower()

    # /t is checked first
    for command_type in (CommandType.QUERY, CommandType.SAVE):
        if prefix == command_type.value:
            content = stripped[2:].strip()
            if not content:
                return None
            return Command(type=command_type, content=content, original_text=text)

    return None


def classify_event(event: dict) -> Dispatch:
    event_type = extract_event_type(event)

    if not is_message_event(event_type):
        return Dispatch(state=DispatchState.OTHER_EVENT, event_type=event_type)

    command = parse_command(extract_message_text(event))
    if command is None:
        return Dispatch(state=DispatchState.IGNORED, event_type=event_type)

    state = (
        DispatchState.QUERY_COMMAND
        if command.type == CommandType.QUERY
        else DispatchState.SAVE_COMMAND
    )
    return Dispatch(state=state, event_type=event_type, command=command)
