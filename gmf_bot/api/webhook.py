"""
Webhook API

Receives Zalo OA events. Deliveries are always acknowledged with 200
(unless the signature is wrong) so Zalo does not retry on our failures.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from gmf_bot.api import get_services
from gmf_bot.bot import BotServices, handle_webhook_event
from gmf_bot.logging_config import bot_logger as logger
from gmf_bot.middleware.signature import verify_webhook_signature

router = APIRouter(tags=["webhook"])


@router.get("/webhook")
async def verify_webhook(
    mode: Optional[str] = None,
    verify_token: Optional[str] = None,
    challenge: Optional[str] = None,
    services: BotServices = Depends(get_services),
):
    """
    Webhook verification endpoint.

    Zalo calls this when the webhook URL is configured; the challenge is
    echoed back when the verify token matches WEBHOOK_VERIFY_TOKEN.
    """
    expected = services.settings.webhook_verify_token
    if mode == "subscribe" and expected and verify_token == expected:
        logger.info("Webhook verified successfully")
        return PlainTextResponse(challenge or "")

    logger.warning("Webhook verification failed")
    return PlainTextResponse("Forbidden", status_code=403)


async def _receive_event(request: Request, signature: Optional[str], services: BotServices) -> JSONResponse:
    raw_body = await request.body()

    if not verify_webhook_signature(raw_body, signature, services.settings.webhook_secret):
        return JSONResponse({"error": "Invalid signature"}, status_code=403)

    try:
        event = json.loads(raw_body or b"null")
    except ValueError:
        logger.warning("Webhook body is not valid JSON, dropping event")
        return JSONResponse({"success": False, "error": "Invalid JSON body"})

    if not isinstance(event, dict):
        logger.warning("Webhook body is not a JSON object, dropping event")
        return JSONResponse({"success": False, "error": "Event must be a JSON object"})

    try:
        state = await handle_webhook_event(services, event)
    except Exception as e:
        # Still 200 so Zalo does not retry excessively
        logger.error(f"Error processing webhook: {e}", exc_info=True)
        return JSONResponse({"success": False, "error": "Event processing failed"})

    return JSONResponse({"success": True, "result": state.value})


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    x_zevent_signature: Optional[str] = Header(None),
    services: BotServices = Depends(get_services),
):
    """Webhook endpoint for Zalo events (messages, group and member changes)."""
    return await _receive_event(request, x_zevent_signature, services)


@router.post("/")
async def receive_webhook_root(
    request: Request,
    x_zevent_signature: Optional[str] = Header(None),
    services: BotServices = Depends(get_services),
):
    """Zalo may post events to the root URL during webhook setup."""
    return await _receive_event(request, x_zevent_signature, services)
