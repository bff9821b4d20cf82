"""
Command handlers for /p (analyze & save) and /t (query history).

FAILURE POLICY:
- /p: any failure before the reply is sent (analysis, persistence,
  export) aborts silently; the group gets no message. Logged server-side.
- /t: no stored data -> fixed "no data" reply without calling the analyzer;
  any other failure (history load, analyzer) -> fixed apology reply;
  empty answer -> nothing sent.
- NetworkError while sending a reply propagates to the webhook handler.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from .context import BotServices
from gmf_bot.utils.extractors import (
    extract_group_id,
    extract_message_id,
    extract_message_text,
    extract_sender,
)
from gmf_bot.errors import AnalysisError, ExportError, NetworkError, ValidationError
from gmf_bot.logging_config import bot_logger as logger
from gmf_bot.services.analyzer import AnalysisResult

NO_DATA_REPLY = "Không tìm thấy dữ liệu nào trong nhóm này."
QUERY_ERROR_REPLY = "❌ Bot gặp lỗi khi truy vấn dữ liệu. Vui lòng thử lại sau."


@dataclass
class SavedAnalysis:
    analysis: AnalysisResult
    db_id: int


@dataclass
class QueryAnswer:
    answer: str
    messages_count: int = 0
    items_count: int = 0
    has_data: bool = True


async def analyze_and_save(
    services: BotServices,
    group_id: str,
    message: str,
    author_id: Optional[str] = None,
    author_name: Optional[str] = None,
    original_message: Optional[str] = None,
    message_id: Optional[str] = None,
    user_id_by_app: Optional[str] = None,
    app_id: Optional[str] = None,
    oa_id: Optional[str] = None,
) -> SavedAnalysis:
    """
    Analyze message text and persist group, message and items.

    Nothing is written unless the analyzer succeeds with a JSON object.

    Raises:
        ValidationError: message or group_id missing
        AnalysisError: analyzer failed or payload unusable
    """
    if not message or not group_id:
        raise ValidationError("Missing required fields: message and group_id")

    logger.info(f"Analyzing message from {author_name or 'Unknown'} in group {group_id}")

    analysis = await services.analyzer.analyze_message(message)
    if not analysis.success or not isinstance(analysis.data, dict):
        raise AnalysisError(analysis.message or "Analyzer returned no structured data")

    saved = services.store.save_message(
        group_id=group_id,
        message=message,
        parsed_data=analysis.data,
        author_id=author_id,
        author_name=author_name,
        original_message=original_message,
        message_id=message_id,
        user_id_by_app=user_id_by_app,
        app_id=app_id,
        oa_id=oa_id,
    )
    return SavedAnalysis(analysis=analysis, db_id=saved["id"])


def build_save_reply(summary: str, file_url: str, view_url: str) -> str:
    return f"{summary}\n\n📄 File CSV: {file_url}\n👁 Xem trước: {view_url}"


async def process_save_command(services: BotServices, event: dict, content: str) -> Optional[str]:
    """
    Handle a /p command: analyze, persist, export to CSV, reply with links.

    Returns:
        The reply sent to the group, or None if the pipeline aborted.
    """
    group_id = extract_group_id(event)
    sender = extract_sender(event)
    message_id = extract_message_id(event)

    try:
        if not group_id:
            raise ValidationError("No group_id found in event")

        logger.info(f"New /p command from {sender.id} ({sender.name}) in group {group_id}")

        saved = await analyze_and_save(
            services,
            group_id=group_id,
            message=content,
            author_id=sender.id,
            author_name=sender.name,
            original_message=extract_message_text(event),
            message_id=message_id,
            user_id_by_app=sender.user_id_by_app,
            app_id=event.get("app_id"),
            oa_id=event.get("oa_id"),
        )

        exported = await services.exporter.export(saved.analysis.data, group_id, message_id)
        await asyncio.to_thread(services.exporter.cleanup_old_files)

    except ValidationError as e:
        logger.warning(f"Dropping /p command: {e}")
        return None
    except (AnalysisError, ExportError) as e:
        logger.error(f"/p pipeline aborted for group {group_id}: {e}")
        return None
    except Exception as e:
        logger.error(f"/p pipeline aborted for group {group_id}: {e}", exc_info=True)
        return None

    reply = build_save_reply(saved.analysis.message, exported.url, exported.view_url)
    await services.zalo.send_group_message(group_id, reply)
    logger.info(f"/p command completed for group {group_id}, message row {saved.db_id}")
    return reply


def build_query_context(messages: list[dict[str, Any]], items: list[dict[str, Any]]) -> dict[str, Any]:
    """Shape stored rows into the context object sent with a question."""
    return {
        "total_messages": len(messages),
        "total_items": len(items),
        "messages": [
            {
                "id": msg.get("id"),
                "author": msg.get("author_name"),
                "date": msg.get("created_at"),
                "parsed_data": msg.get("parsed_data"),
            }
            for msg in messages
        ],
        "items": [
            {
                **(item.get("item_data") or {}),
                "message_id": item.get("message_id"),
                "created_at": item.get("created_at"),
            }
            for item in items
        ],
    }


async def answer_group_question(services: BotServices, group_id: str, question: str) -> QueryAnswer:
    """
    Answer a question from a group's stored history.

    Raises:
        ValidationError: question or group_id missing
        NetworkError / AnalysisError: analyzer failed
    """
    if not question or not group_id:
        raise ValidationError("Missing required fields: question and group_id")

    history = services.store.get_group_data(group_id, limit=services.settings.query_history_limit)
    if history.count == 0:
        logger.info(f"No stored data for group {group_id}")
        return QueryAnswer(answer=NO_DATA_REPLY, has_data=False)

    logger.info(f"Found {len(history.messages)} messages and {len(history.items)} items for group {group_id}")

    context = build_query_context(history.messages, history.items)
    answer = await services.analyzer.answer_question(context, question)
    return QueryAnswer(
        answer=answer,
        messages_count=len(history.messages),
        items_count=len(history.items),
    )


async def process_query_command(services: BotServices, event: dict, question: str) -> Optional[str]:
    """
    Handle a /t command: answer from the group's history and relay the answer.

    Returns:
        The reply sent to the group, or None if nothing was sent.
    """
    group_id = extract_group_id(event)
    sender = extract_sender(event)

    if not group_id:
        logger.warning("Dropping /t command: no group_id found in event")
        return None

    logger.info(f"New /t query from {sender.id} ({sender.name}) in group {group_id}: {question}")

    try:
        result = await answer_group_question(services, group_id, question)
        reply = result.answer.strip()
    except ValidationError as e:
        logger.warning(f"Dropping /t command: {e}")
        return None
    except (NetworkError, AnalysisError) as e:
        logger.error(f"/t query failed for group {group_id}: {e}")
        reply = QUERY_ERROR_REPLY
    except Exception as e:
        logger.error(f"/t query failed for group {group_id}: {e}", exc_info=True)
        reply = QUERY_ERROR_REPLY

    if not reply:
        logger.info(f"Empty answer for group {group_id}, nothing sent")
        return None

    await services.zalo.send_group_message(group_id, reply)
    return reply
