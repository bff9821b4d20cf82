"""
Group Store

Persistence for groups, messages and items in Supabase (Postgres).

Tables:
- groups:   group_id (unique), group_name, oa_id, app_id, created_at, updated_at
- messages: id, group_id, author_id, author_name, message_text, original_message,
            parsed_data (JSON text), message_id, user_id_by_app, app_id, oa_id, created_at
- items:    id, message_id -> messages.id (ON DELETE CASCADE), group_id, item_data (JSON text), created_at

Message and item rows are insert-only.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

GROUPS_TABLE = "groups"
MESSAGES_TABLE = "messages"
ITEMS_TABLE = "items"

GROUP_INFO_FIELDS = ("group_name", "oa_id", "app_id")
QUANTITY_KEYS = ("Số lượng", "quantity")


@dataclass
class GroupData:
    """A group's history as loaded for /t questions."""
    messages: list[dict[str, Any]] = field(default_factory=list)
    items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.messages)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _decode_json(raw: Any) -> dict[str, Any]:
    """Decode a stored JSON column; rows with broken JSON decode to {}."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Skipping undecodable JSON column value")
        return {}
    return value if isinstance(value, dict) else {}


class GroupStore:
    """
    Repository over the Supabase client.

    USAGE:
        store = GroupStore(get_supabase_admin())
        saved = store.save_message(group_id="g1", message="...", parsed_data={...})
        history = store.get_group_data("g1")
    """

    def __init__(self, supabase):
        self.supabase = supabase

    # ── Groups ───────────────────────────────────────────────────

    def get_group(self, group_id: str) -> Optional[dict[str, Any]]:
        result = self.supabase.table(GROUPS_TABLE).select("*").eq("group_id", group_id).limit(1).execute()
        return result.data[0] if result.data else None

    def upsert_group(
        self,
        group_id: str,
        group_name: Optional[str] = None,
        oa_id: Optional[str] = None,
        app_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Get or create a group.

        An existing row keeps its values; incoming values only fill
        columns that are still null.
        """
        incoming = {"group_name": group_name, "oa_id": oa_id, "app_id": app_id}
        existing = self.get_group(group_id)

        if existing is None:
            now = _now_iso()
            result = self.supabase.table(GROUPS_TABLE).insert({
                "group_id": group_id,
                **incoming,
                "created_at": now,
                "updated_at": now,
            }).execute()
            logger.info(f"Created group {group_id}")
            return result.data[0]

        updates = {
            key: value
            for key, value in incoming.items()
            if value and not existing.get(key)
        }
        if not updates:
            return existing

        updates["updated_at"] = _now_iso()
        result = self.supabase.table(GROUPS_TABLE).update(updates).eq("group_id", group_id).execute()
        return result.data[0] if result.data else {**existing, **updates}

    def get_all_groups(self) -> list[dict[str, Any]]:
        result = self.supabase.table(GROUPS_TABLE).select("*").order("created_at", desc=True).execute()
        return result.data or []

    # ── Messages and items ───────────────────────────────────────

    def save_message(
        self,
        group_id: str,
        message: str,
        parsed_data: dict[str, Any],
        author_id: Optional[str] = None,
        author_name: Optional[str] = None,
        original_message: Optional[str] = None,
        message_id: Optional[str] = None,
        user_id_by_app: Optional[str] = None,
        app_id: Optional[str] = None,
        oa_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Persist one analyzed message and its line-items.

        Each entry of parsed_data["items"] is stored verbatim as item_data.
        If the items insert fails the message row is deleted again and the
        client error is re-raised.

        Returns:
            {"id": <messages.id>, "group_id": ..., "message_id": ..., "items_count": n}
        """
        self.upsert_group(group_id, oa_id=oa_id, app_id=app_id)

        message_result = self.supabase.table(MESSAGES_TABLE).insert({
            "group_id": group_id,
            "author_id": author_id,
            "author_name": author_name,
            "message_text": message,
            "original_message": original_message,
            "parsed_data": json.dumps(parsed_data, ensure_ascii=False),
            "message_id": message_id,
            "user_id_by_app": user_id_by_app,
            "app_id": app_id,
            "oa_id": oa_id,
            "created_at": _now_iso(),
        }).execute()

        saved_id = message_result.data[0]["id"]

        items = parsed_data.get("items")
        rows = []
        if isinstance(items, list):
            rows = [
                {
                    "message_id": saved_id,
                    "group_id": group_id,
                    "item_data": json.dumps(item, ensure_ascii=False),
                    "created_at": _now_iso(),
                }
                for item in items
            ]
        if rows:
            try:
                self.supabase.table(ITEMS_TABLE).insert(rows).execute()
            except Exception:
                # No message row without its items
                logger.error(f"Items insert failed, removing message {saved_id}")
                self.supabase.table(MESSAGES_TABLE).delete().eq("id", saved_id).execute()
                raise

        logger.info(f"Saved message {saved_id} with {len(rows)} items for group {group_id}")
        return {
            "id": saved_id,
            "group_id": group_id,
            "message_id": message_id,
            "items_count": len(rows),
        }

    def get_messages_by_group(self, group_id: str, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        result = (
            self.supabase.table(MESSAGES_TABLE)
            .select("*")
            .eq("group_id", group_id)
            .order("created_at", desc=True)
            .order("id", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [
            {**row, "parsed_data": _decode_json(row.get("parsed_data"))}
            for row in (result.data or [])
        ]

    def get_items_for_messages(self, message_ids: list[int]) -> list[dict[str, Any]]:
        if not message_ids:
            return []
        result = (
            self.supabase.table(ITEMS_TABLE)
            .select("id, message_id, group_id, item_data, created_at")
            .in_("message_id", message_ids)
            .order("message_id")
            .order("id")
            .execute()
        )
        return [
            {**row, "item_data": _decode_json(row.get("item_data"))}
            for row in (result.data or [])
        ]

    def get_group_data(self, group_id: str, limit: int = 1000) -> GroupData:
        """Load the most recent `limit` messages of a group plus their items."""
        messages = self.get_messages_by_group(group_id, limit=limit)
        items = self.get_items_for_messages([m["id"] for m in messages])
        return GroupData(messages=messages, items=items)

    def get_group_stats(self, group_id: str) -> dict[str, Any]:
        messages = (
            self.supabase.table(MESSAGES_TABLE)
            .select("author_id, created_at")
            .eq("group_id", group_id)
            .execute()
        ).data or []
        items = (
            self.supabase.table(ITEMS_TABLE)
            .select("item_data")
            .eq("group_id", group_id)
            .execute()
        ).data or []

        timestamps = sorted(str(m["created_at"]) for m in messages if m.get("created_at"))

        total_quantity = 0
        for row in items:
            item = _decode_json(row.get("item_data"))
            quantity = next((item[k] for k in QUANTITY_KEYS if k in item), 0)
            if isinstance(quantity, (int, float)) and not isinstance(quantity, bool):
                total_quantity += quantity

        return {
            "total_messages": len(messages),
            "first_message": timestamps[0] if timestamps else None,
            "last_message": timestamps[-1] if timestamps else None,
            "unique_authors": len({m.get("author_id") for m in messages if m.get("author_id")}),
            "total_items": len(items),
            "total_quantity": total_quantity,
        }
