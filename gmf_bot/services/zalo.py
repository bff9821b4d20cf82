"""
Zalo OpenAPI client for GMF (group messaging).

Wraps the endpoints the bot needs: send text to a group, read GMF quota,
create a group. Every call authenticates through the AccessTokenCache.
"""

import logging
from typing import Any, Optional

import httpx

from .token_cache import AccessTokenCache
from ..errors import NetworkError, ValidationError

logger = logging.getLogger(__name__)

MAX_GROUP_MEMBERS = 99


class ZaloClient:
    """
    Thin async client over https://openapi.zalo.me/v3.0/oa.

    USAGE:
        client = ZaloClient(http, token_cache, base_url, refresh_token, fallback_token)
        await client.send_group_message("group-id", "Xin chào")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_cache: AccessTokenCache,
        base_url: str,
        refresh_token: Optional[str],
        fallback_token: Optional[str] = None,
    ):
        self._http = http_client
        self._tokens = token_cache
        self._base_url = base_url.rstrip("/")
        self._refresh_token = refresh_token
        self._fallback_token = fallback_token

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        token = await self._tokens.get_valid_token(self._refresh_token, self._fallback_token)
        try:
            response = await self._http.post(
                f"{self._base_url}{path}",
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "access_token": token,
                },
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise NetworkError(f"Zalo API call {path} failed: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Zalo API call {path} returned invalid JSON: {e}") from e

    async def send_group_message(self, group_id: str, text: str) -> dict[str, Any]:
        """
        Send a text message to a GMF group.

        Returns the API response; a non-zero "error" is logged, not raised.
        """
        if not group_id:
            raise ValidationError("Group ID is required")
        if not text or not text.strip():
            raise ValidationError("Message content is required")

        logger.info(f"Sending message to group {group_id}")
        data = await self._post("/group/message", {
            "recipient": {"group_id": group_id},
            "message": {"text": text.strip()},
        })

        if data.get("error") == 0:
            logger.info("Message sent successfully")
        else:
            logger.warning(f"Error response from Zalo API: {data.get('message') or 'Unknown error'}")
        return data

    async def get_quota(
        self,
        product_type: Optional[str] = None,
        quota_type: Optional[str] = "sub_quota",
    ) -> list[dict[str, Any]]:
        """GMF quota packages (asset_id list) available for creating groups."""
        body: dict[str, Any] = {"quota_owner": "OA"}
        if product_type:
            body["product_type"] = product_type
        if quota_type:
            body["quota_type"] = quota_type

        data = await self._post("/quota/group", body)
        if data.get("error") != 0:
            raise NetworkError(data.get("message") or "Failed to get quota")
        return data.get("data") or []

    async def create_group(
        self,
        group_name: str,
        member_user_ids: list[str],
        asset_id: Optional[str] = None,
        group_description: str = "",
    ) -> dict[str, Any]:
        """
        Create a GMF group with the OA.

        When asset_id is omitted the first available quota package is used.
        """
        if not group_name or not group_name.strip():
            raise ValidationError("Group name is required")
        if not member_user_ids:
            raise ValidationError(
                "member_user_ids is required and cannot be empty (must have at least 1 admin of OA)"
            )
        if len(member_user_ids) > MAX_GROUP_MEMBERS:
            raise ValidationError(f"member_user_ids cannot exceed {MAX_GROUP_MEMBERS} members")

        if not asset_id:
            quota = await self.get_quota()
            available = next((q for q in quota if q.get("status") == "available"), None)
            if available is None:
                raise ValidationError("No available GMF quota found. All asset_ids are already in use.")
            asset_id = available["asset_id"]
            logger.info(f"Using asset_id {asset_id} ({available.get('product_type') or 'Default'})")

        body: dict[str, Any] = {
            "group_name": group_name.strip(),
            "member_user_ids": member_user_ids,
            "asset_id": asset_id,
        }
        if group_description and group_description.strip():
            body["group_description"] = group_description.strip()

        logger.info(f"Creating GMF group {group_name!r} with {len(member_user_ids)} members")
        data = await self._post("/group/creategroupwithoa", body)
        if data.get("error") != 0:
            raise NetworkError(f"Failed to create group: {data.get('message') or 'Unknown error'}")

        group = data.get("data") or {}
        logger.info(f"Group created: {group.get('group_id')}")
        return group
