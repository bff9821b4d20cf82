"""
Webhook event handler.

Classifies the event, drops repeats through the deduplicator and routes
commands to their pipeline. The dispatcher itself never retries.
"""

from .context import BotServices
from .dispatcher import (
    GROUP_CREATED_EVENTS,
    MEMBER_ADDED_EVENTS,
    MEMBER_REMOVED_EVENTS,
    DispatchState,
    classify_event,
)
from gmf_bot.utils.extractors import extract_group_id
from .handlers import process_query_command, process_save_command
from gmf_bot.logging_config import bot_logger as logger


def _log_other_event(event: dict, event_type: str) -> None:
    group_id = extract_group_id(event)
    if event_type in GROUP_CREATED_EVENTS:
        logger.info(f"New group created: {group_id}")
    elif event_type in MEMBER_ADDED_EVENTS:
        logger.info(f"Member added to group: {group_id}")
    elif event_type in MEMBER_REMOVED_EVENTS:
        logger.info(f"Member removed from group: {group_id}")
    else:
        logger.info(f"Unhandled event type: {event_type}")
        logger.debug(f"Full event data: {event}")


async def handle_webhook_event(services: BotServices, event: dict) -> DispatchState:
    """
    Process one inbound webhook event.

    Returns the terminal dispatch state. A command already seen within
    the dedup window ends in DUPLICATE and runs no pipeline.
    """
    dispatch = classify_event(event)
    logger.info(f"Event type: {dispatch.event_type} (app_id={event.get('app_id') or 'N/A'}, oa_id={event.get('oa_id') or 'N/A'})")

    if dispatch.state == DispatchState.OTHER_EVENT:
        _log_other_event(event, dispatch.event_type)
        return dispatch.state

    if dispatch.state == DispatchState.IGNORED:
        logger.debug("Message event without a command, ignored")
        return dispatch.state

    dedup = services.deduplicator
    if dedup.is_duplicate(event):
        return DispatchState.DUPLICATE
    dedup.mark_processed(event)

    command = dispatch.command
    if dispatch.state == DispatchState.QUERY_COMMAND:
        await process_query_command(services, event, command.content)
    else:
        await process_save_command(services, event, command.content)

    return dispatch.state
