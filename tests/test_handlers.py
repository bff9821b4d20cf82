"""
Tests for the /p and /t pipelines and the webhook event handler.
"""

import asyncio

import httpx
import pytest

from gmf_bot.bot import handle_webhook_event
from gmf_bot.bot.dispatcher import DispatchState
from gmf_bot.bot.handlers import (
    NO_DATA_REPLY,
    QUERY_ERROR_REPLY,
    analyze_and_save,
    build_query_context,
    build_save_reply,
    process_query_command,
    process_save_command,
)
from gmf_bot.errors import AnalysisError, NetworkError, ValidationError

from conftest import FakeAnalyzer, PUBLIC_URL, group_event


class TestSaveCommand:
    """Tests for the /p pipeline."""

    def test_saves_exports_and_replies(self, services, supabase, zalo_http):
        reply = asyncio.run(process_save_command(services, group_event("/p 2 bao gạo"), "2 bao gạo"))

        messages = supabase.rows("messages")
        assert len(messages) == 1
        assert messages[0]["message_text"] == "2 bao gạo"
        assert messages[0]["original_message"] == "/p 2 bao gạo"
        assert messages[0]["message_id"] == "m1"
        assert len(supabase.rows("items")) == 1
        assert supabase.rows("groups")[0]["group_id"] == "g1"

        assert "1. Tên sản phẩm: Gạo | Số lượng: 2 | Giá: 15.000đ" in reply
        assert "- Tổng tiền: 30.000đ" in reply
        assert f"📄 File CSV: {PUBLIC_URL}/exports/export_g1_m1_" in reply
        assert f"👁 Xem trước: {PUBLIC_URL}/exports/view/export_g1_m1_" in reply

        sent = zalo_http.sent_messages
        assert sent == [{"recipient": {"group_id": "g1"}, "message": {"text": reply}}]

    def test_csv_written(self, services):
        asyncio.run(process_save_command(services, group_event("/p x"), "x"))
        files = list(services.exporter.exports_dir.glob("*.csv"))
        assert len(files) == 1
        assert files[0].read_text(encoding="utf-8").splitlines()[0] == "Giá,Số lượng,Tên sản phẩm"

    def test_analysis_failure_is_silent(self, services, supabase, zalo_http):
        """Analyzer timeout: no row, no reply."""
        services.analyzer = FakeAnalyzer(error=NetworkError("Analyzer timeout after 30 seconds"))

        reply = asyncio.run(process_save_command(services, group_event("/p x"), "x"))

        assert reply is None
        assert supabase.rows("messages") == []
        assert zalo_http.sent_messages == []

    def test_export_failure_is_silent(self, services, zalo_http):
        services.exporter.base_url = ""

        reply = asyncio.run(process_save_command(services, group_event("/p x"), "x"))

        assert reply is None
        assert zalo_http.sent_messages == []

    def test_missing_group_id(self, services, supabase):
        event = group_event("/p x")
        del event["recipient"]

        assert asyncio.run(process_save_command(services, event, "x")) is None
        assert supabase.rows("messages") == []

    def test_no_items_reply(self, services):
        services.analyzer = FakeAnalyzer(data={"items": [], "summary": {}})

        reply = asyncio.run(process_save_command(services, group_event("/p hello"), "hello"))

        assert reply.startswith("✅ Đã nhận tin nhắn. Không tìm thấy thông tin sản phẩm/hàng hóa.")

    def test_send_failure_propagates(self, services, zalo_http):
        def unreachable(request):
            if str(request.url).endswith("/group/message"):
                raise httpx.ConnectError("connection refused", request=request)
            return zalo_http(request)

        services.zalo._http = httpx.AsyncClient(transport=httpx.MockTransport(unreachable))

        with pytest.raises(NetworkError):
            asyncio.run(process_save_command(services, group_event("/p x"), "x"))

    def test_storage_failure_is_silent(self, services, supabase, zalo_http):
        """A database error while saving aborts without reply or partial rows."""
        supabase.failing_inserts.add("items")

        reply = asyncio.run(process_save_command(services, group_event("/p x"), "x"))

        assert reply is None
        assert supabase.rows("messages") == []
        assert zalo_http.sent_messages == []
        assert list(services.exporter.exports_dir.glob("*.csv")) == []

    def test_build_save_reply(self):
        assert build_save_reply("S", "u", "v") == "S\n\n📄 File CSV: u\n👁 Xem trước: v"


class TestAnalyzeAndSave:
    """Tests for analyze_and_save."""

    def test_requires_message_and_group(self, services):
        with pytest.raises(ValidationError):
            asyncio.run(analyze_and_save(services, group_id="g1", message=""))

    def test_analysis_failure_raises(self, services, supabase):
        services.analyzer = FakeAnalyzer(error=AnalysisError("bad json"))
        with pytest.raises(AnalysisError):
            asyncio.run(analyze_and_save(services, group_id="g1", message="x"))
        assert supabase.rows("groups") == []

    def test_returns_db_id(self, services):
        saved = asyncio.run(analyze_and_save(services, group_id="g1", message="x"))
        assert saved.db_id == 1
        assert saved.analysis.success


class TestQueryCommand:
    """Tests for the /t pipeline."""

    def seed_history(self, services):
        asyncio.run(analyze_and_save(services, group_id="g1", message="2 bao gạo", author_name="Lan"))

    def test_no_data_reply_without_analyzer_call(self, services, analyzer, zalo_http):
        reply = asyncio.run(process_query_command(services, group_event("/t tổng?"), "tổng?"))

        assert reply == NO_DATA_REPLY
        assert analyzer.question_calls == []
        assert zalo_http.sent_messages[0]["message"]["text"] == NO_DATA_REPLY

    def test_answer_relayed(self, services, analyzer, zalo_http):
        self.seed_history(services)
        analyzer.answer = "  Tổng cộng 2 bao gạo.  "

        reply = asyncio.run(process_query_command(services, group_event("/t tổng?"), "tổng?"))

        assert reply == "Tổng cộng 2 bao gạo."
        context, question = analyzer.question_calls[0]
        assert question == "tổng?"
        assert context["total_messages"] == 1
        assert context["total_items"] == 1
        assert context["items"][0]["Tên sản phẩm"] == "Gạo"

    def test_analyzer_failure_sends_apology(self, services, analyzer, zalo_http):
        self.seed_history(services)
        analyzer.error = NetworkError("timeout")

        reply = asyncio.run(process_query_command(services, group_event("/t tổng?"), "tổng?"))

        assert reply == QUERY_ERROR_REPLY
        assert zalo_http.sent_messages[-1]["message"]["text"] == QUERY_ERROR_REPLY

    def test_empty_answer_sends_nothing(self, services, analyzer, zalo_http):
        self.seed_history(services)
        analyzer.answer = "   "

        reply = asyncio.run(process_query_command(services, group_event("/t tổng?"), "tổng?"))

        assert reply is None
        assert zalo_http.sent_messages == []

    def test_history_load_failure_sends_apology(self, services, analyzer, zalo_http):
        """A storage error while loading history still gets the apology."""
        def unavailable(group_id, limit=1000):
            raise RuntimeError("postgrest down")

        services.store.get_group_data = unavailable

        reply = asyncio.run(process_query_command(services, group_event("/t tổng?"), "tổng?"))

        assert reply == QUERY_ERROR_REPLY
        assert zalo_http.sent_messages[-1]["message"]["text"] == QUERY_ERROR_REPLY
        assert analyzer.question_calls == []

    def test_only_own_group_history(self, services, analyzer):
        self.seed_history(services)

        reply = asyncio.run(process_query_command(services, group_event("/t tổng?", group_id="g2"), "tổng?"))

        assert reply == NO_DATA_REPLY
        assert analyzer.question_calls == []


class TestBuildQueryContext:
    """Tests for build_query_context function."""

    def test_shape(self):
        messages = [{"id": 1, "author_name": "Lan", "created_at": "2024-01-01", "parsed_data": {"items": []}}]
        items = [{"message_id": 1, "created_at": "2024-01-01", "item_data": {"Tên": "Gạo"}}]

        context = build_query_context(messages, items)

        assert context == {
            "total_messages": 1,
            "total_items": 1,
            "messages": [{"id": 1, "author": "Lan", "date": "2024-01-01", "parsed_data": {"items": []}}],
            "items": [{"Tên": "Gạo", "message_id": 1, "created_at": "2024-01-01"}],
        }


class TestHandleWebhookEvent:
    """Tests for handle_webhook_event routing."""

    def test_duplicate_runs_pipeline_once(self, services, analyzer, zalo_http):
        event = group_event("/p 2 bao gạo", msg_id="abc")

        first = asyncio.run(handle_webhook_event(services, event))
        second = asyncio.run(handle_webhook_event(services, event))

        assert first == DispatchState.SAVE_COMMAND
        assert second == DispatchState.DUPLICATE
        assert len(analyzer.analyze_calls) == 1
        assert len(zalo_http.sent_messages) == 1

    def test_plain_chat_ignored(self, services, analyzer):
        state = asyncio.run(handle_webhook_event(services, group_event("hello")))
        assert state == DispatchState.IGNORED
        assert analyzer.analyze_calls == []
        assert len(services.deduplicator) == 0

    def test_lifecycle_event(self, services, zalo_http):
        state = asyncio.run(handle_webhook_event(services, {"event_name": "oa_create_group", "group_id": "g9"}))
        assert state == DispatchState.OTHER_EVENT
        assert zalo_http.requests == []

    def test_query_routed(self, services):
        state = asyncio.run(handle_webhook_event(services, group_event("/T tổng?")))
        assert state == DispatchState.QUERY_COMMAND

    def test_failed_save_still_marked(self, services, analyzer):
        """A redelivery after a failed /p is still dropped."""
        analyzer.error = NetworkError("timeout")
        event = group_event("/p x", msg_id="abc")

        asyncio.run(handle_webhook_event(services, event))
        assert asyncio.run(handle_webhook_event(services, event)) == DispatchState.DUPLICATE
        assert len(analyzer.analyze_calls) == 1
