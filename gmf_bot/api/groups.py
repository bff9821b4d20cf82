"""
Groups API

REST access to stored group data, the analyzer and the Zalo GMF
endpoints. Nothing here replies into a group except /groups/message.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from gmf_bot.agents.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    CreateGroupRequest,
    GroupStats,
    QueryRequest,
    QueryResponse,
    SendMessageRequest,
)
from gmf_bot.api import get_services
from gmf_bot.bot import BotServices
from gmf_bot.bot.handlers import analyze_and_save, answer_group_question
from gmf_bot.errors import BotError, ValidationError
from gmf_bot.logging_config import bot_logger as logger

router = APIRouter(prefix="/api", tags=["groups"])


def _http_error(e: BotError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"API request failed: {e}")
    return HTTPException(status_code=500, detail=str(e))


@router.get("/info")
async def api_info(services: BotServices = Depends(get_services)):
    """Service description and the configured Zalo identifiers."""
    settings = services.settings
    return {
        "name": "Zalo GMF Bot API",
        "version": "0.1.0",
        "oa_id": settings.zalo_oa_id or None,
        "app_id": settings.zalo_app_id or None,
        "commands": {
            "/p": "Phân tích tin nhắn và lưu vào cơ sở dữ liệu",
            "/t": "Truy vấn dữ liệu đã lưu của nhóm",
        },
    }


@router.get("/groups")
async def list_groups(services: BotServices = Depends(get_services)):
    groups = services.store.get_all_groups()
    return {"success": True, "count": len(groups), "groups": groups}


@router.get("/messages/{group_id}")
async def list_messages(
    group_id: str,
    limit: int = 100,
    offset: int = 0,
    services: BotServices = Depends(get_services),
):
    """Stored messages of a group, newest first."""
    if limit < 1 or offset < 0:
        raise HTTPException(status_code=400, detail="limit must be positive and offset non-negative")

    messages = services.store.get_messages_by_group(group_id, limit=limit, offset=offset)
    return {"success": True, "group_id": group_id, "count": len(messages), "messages": messages}


@router.get("/stats/{group_id}", response_model=GroupStats)
async def group_stats(group_id: str, services: BotServices = Depends(get_services)):
    return GroupStats(**services.store.get_group_stats(group_id))


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest, services: BotServices = Depends(get_services)):
    """
    Analyze a message and persist it like a /p command.

    The summary is returned to the caller; nothing is sent to the group.
    """
    try:
        saved = await analyze_and_save(services, **request.model_dump())
    except BotError as e:
        raise _http_error(e)

    return AnalyzeResponse(
        success=True,
        message=saved.analysis.message,
        data=saved.analysis.data,
        db_id=saved.db_id,
    )


@router.post("/query", response_model=QueryResponse)
async def query(request: QueryRequest, services: BotServices = Depends(get_services)):
    """Answer a question from a group's stored data without replying to the group."""
    try:
        result = await answer_group_question(services, request.group_id, request.question)
    except BotError as e:
        raise _http_error(e)

    return QueryResponse(
        success=result.has_data,
        message=result.answer.strip(),
        messages_count=result.messages_count,
        items_count=result.items_count,
    )


@router.post("/groups/message")
async def send_group_message(request: SendMessageRequest, services: BotServices = Depends(get_services)):
    try:
        data = await services.zalo.send_group_message(request.group_id, request.message)
    except BotError as e:
        raise _http_error(e)

    return {"success": data.get("error") == 0, "data": data}


@router.get("/groups/quota")
async def group_quota(
    product_type: Optional[str] = None,
    quota_type: Optional[str] = "sub_quota",
    services: BotServices = Depends(get_services),
):
    """GMF quota packages of the OA."""
    try:
        quota = await services.zalo.get_quota(product_type=product_type, quota_type=quota_type)
    except BotError as e:
        raise _http_error(e)

    available = [q for q in quota if q.get("status") == "available"]
    return {"success": True, "total": len(quota), "available": len(available), "data": quota}


@router.post("/groups/create")
async def create_group(request: CreateGroupRequest, services: BotServices = Depends(get_services)):
    """
    Create a GMF group with the OA.

    member_user_ids needs 1 to 99 entries and must include an OA admin.
    Without asset_id the first available quota package is used.
    """
    try:
        group = await services.zalo.create_group(
            request.group_name,
            request.member_user_ids,
            asset_id=request.asset_id,
            group_description=request.group_description,
        )
    except BotError as e:
        raise _http_error(e)

    logger.info(f"GMF group created via API: {group.get('group_id')}")
    return {"success": True, "data": group}
