"""
Shared fixtures: in-memory Supabase, stub analyzer, mocked Zalo HTTP.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import pytest

from gmf_bot.bot import BotServices
from gmf_bot.config import Settings
from gmf_bot.services.analyzer import AnalysisResult, build_summary_message
from gmf_bot.services.dedup import MessageDeduplicator
from gmf_bot.services.export import CsvExporter
from gmf_bot.services.storage import GroupStore
from gmf_bot.services.token_cache import AccessTokenCache
from gmf_bot.services.zalo import ZaloClient

OAUTH_URL = "https://oauth.test/v4/oa/access_token"
API_BASE_URL = "https://openapi.test/v3.0/oa"
PUBLIC_URL = "https://bot.test"


# ── Supabase ─────────────────────────────────────────────────────

@dataclass
class FakeResult:
    data: list[dict[str, Any]]


class FakeQuery:
    """Subset of the postgrest query builder used by GroupStore."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._filters = []
        self._orders = []
        self._range = None
        self._limit = None
        self._insert = None
        self._update = None
        self._delete = False

    def select(self, columns: str = "*"):
        return self

    def eq(self, column: str, value: Any):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column: str, desc: bool = False):
        self._orders.append((column, desc))
        return self

    def range(self, start: int, end: int):
        self._range = (start, end)
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def insert(self, payload):
        self._insert = payload
        return self

    def update(self, payload: dict):
        self._update = payload
        return self

    def delete(self):
        self._delete = True
        return self

    def execute(self) -> FakeResult:
        rows = self._db.tables.setdefault(self._table, [])

        if self._insert is not None:
            if self._table in self._db.failing_inserts:
                raise RuntimeError(f"insert into {self._table} failed")
            payload = self._insert if isinstance(self._insert, list) else [self._insert]
            inserted = []
            for row in payload:
                stored = {"id": self._db.next_id(self._table), **row}
                rows.append(stored)
                inserted.append(dict(stored))
            return FakeResult(data=inserted)

        matched = [row for row in rows if all(f(row) for f in self._filters)]

        if self._update is not None:
            for row in matched:
                row.update(self._update)
            return FakeResult(data=[dict(row) for row in matched])

        if self._delete:
            self._db.tables[self._table] = [row for row in rows if row not in matched]
            return FakeResult(data=[dict(row) for row in matched])

        # Stable sorts applied last-to-first give multi-column ordering
        for column, desc in reversed(self._orders):
            matched.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
        if self._range is not None:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[:self._limit]
        return FakeResult(data=[dict(row) for row in matched])


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self._ids: dict[str, int] = {}
        self.failing_inserts: set[str] = set()

    def next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> list[dict[str, Any]]:
        return self.tables.get(name, [])


# ── Analyzer ─────────────────────────────────────────────────────

class FakeAnalyzer:
    """Stands in for MessageAnalyzer; records every call."""

    def __init__(self, data: Optional[dict] = None, answer: str = "Câu trả lời", error: Optional[Exception] = None):
        self.data = data if data is not None else {
            "items": [{"Tên sản phẩm": "Gạo", "Số lượng": 2, "Giá": 15000}],
            "summary": {"Tổng tiền": 30000},
        }
        self.answer = answer
        self.error = error
        self.analyze_calls: list[str] = []
        self.question_calls: list[tuple[dict, str]] = []

    async def analyze_message(self, message: str) -> AnalysisResult:
        self.analyze_calls.append(message)
        if self.error is not None:
            return AnalysisResult(success=False, message=f"❌ Lỗi khi phân tích tin nhắn: {self.error}")
        return AnalysisResult(success=True, message=build_summary_message(self.data), data=self.data)

    async def answer_question(self, context: dict, question: str) -> str:
        self.question_calls.append((context, question))
        if self.error is not None:
            raise self.error
        return self.answer


# ── Zalo HTTP ────────────────────────────────────────────────────

class ZaloRecorder:
    """httpx.MockTransport handler for the OAuth and OpenAPI endpoints."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.access_token = "fresh-token"
        self.send_response = {"error": 0, "message": "Success"}
        self.quota = [
            {"asset_id": "asset-used", "status": "used", "product_type": "gmf10"},
            {"asset_id": "asset-free", "status": "available", "product_type": "gmf10"},
        ]
        self.fail_oauth = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url.startswith(OAUTH_URL):
            if self.fail_oauth:
                return httpx.Response(500, json={"error": -1})
            return httpx.Response(200, json={"access_token": self.access_token, "expires_in": "3600"})
        if url.endswith("/group/message"):
            return httpx.Response(200, json=self.send_response)
        if url.endswith("/quota/group"):
            return httpx.Response(200, json={"error": 0, "data": self.quota})
        if url.endswith("/group/creategroupwithoa"):
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "error": 0,
                "data": {"group_id": "new-group", "asset_id": body["asset_id"]},
            })
        return httpx.Response(404, json={"error": -1, "message": "not found"})

    @property
    def sent_messages(self) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if str(r.url).endswith("/group/message")
        ]


# ── Fixtures ─────────────────────────────────────────────────────

def make_settings(**overrides) -> Settings:
    values = {
        "supabase_url": "https://db.test",
        "supabase_service_role_key": "service-key",
        "zalo_oa_id": "oa-1",
        "zalo_app_id": "app-1",
        "zalo_access_token": "seed-token",
        "zalo_refresh_token": "refresh-1",
        "zalo_api_base_url": API_BASE_URL,
        "zalo_oauth_url": OAUTH_URL,
        "webhook_secret": "",
        "webhook_verify_token": "verify-me",
        "server_url": PUBLIC_URL,
        "openai_api_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(exports_dir=str(tmp_path / "exports"))


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def zalo_http():
    return ZaloRecorder()


@pytest.fixture
def services(settings, supabase, analyzer, zalo_http):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(zalo_http))
    token_cache = AccessTokenCache(http_client, settings.zalo_oauth_url)
    token_cache.initialize(settings.zalo_access_token)
    return BotServices(
        settings=settings,
        token_cache=token_cache,
        deduplicator=MessageDeduplicator(),
        zalo=ZaloClient(
            http_client,
            token_cache,
            settings.zalo_api_base_url,
            refresh_token=settings.zalo_refresh_token,
            fallback_token=settings.zalo_access_token,
        ),
        analyzer=analyzer,
        store=GroupStore(supabase),
        exporter=CsvExporter(settings.exports_dir, settings.public_base_url),
    )


def group_event(text: str, msg_id: Optional[str] = "m1", group_id: str = "g1", event_name: str = "user_send_group_text") -> dict:
    """A GMF text event as Zalo delivers it."""
    message: dict[str, Any] = {"text": text}
    if msg_id is not None:
        message["msg_id"] = msg_id
    return {
        "app_id": "app-1",
        "oa_id": "oa-1",
        "event_name": event_name,
        "sender": {"id": "u1", "name": "Lan"},
        "recipient": {"id": group_id},
        "message": message,
        "timestamp": "1700000000000",
    }

