"""
Message analyzer backed by OpenAI chat completions.

Two modes over the same model:
- analyze_message: free-form text -> structured JSON (items/summary/metadata)
- answer_question: group history + question -> short free-text answer
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from openai import AsyncOpenAI, APIError

from ..config import Settings, is_configured
from ..agents.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    ANALYSIS_USER_PROMPT,
    QUERY_SYSTEM_PROMPT,
    QUERY_USER_PROMPT,
)
from ..errors import AnalysisError, NetworkError
from ..utils import format_number

logger = logging.getLogger(__name__)

NO_ITEMS_MESSAGE = "✅ Đã nhận tin nhắn. Không tìm thấy thông tin sản phẩm/hàng hóa."
AMOUNT_KEY_HINTS = ("giá", "tiền", "price", "total", "amount")
SUMMARY_AMOUNT_KEY_HINTS = ("tiền", "amount", "total")


@dataclass
class AnalysisResult:
    """Outcome of analyze_message. data is the analyzer's JSON, key order kept."""
    success: bool
    message: str
    data: Optional[dict[str, Any]] = field(default=None)


class MessageAnalyzer:
    """
    AI text analyzer.

    FAILURE BEHAVIOR:
    - analyze_message never raises; failures come back as success=False
    - answer_question raises NetworkError / AnalysisError
    Both calls are bounded by settings.analyzer_timeout_seconds.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self._model = settings.openai_model
        self._timeout = settings.analyzer_timeout_seconds
        self._analysis_temperature = settings.analysis_temperature
        self._query_temperature = settings.query_temperature
        self._max_tokens = settings.max_output_tokens
        self._configured = is_configured(settings.openai_api_key) or client is not None
        self._client = client
        if self._client is None and self._configured:
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=self._timeout,
            )

        if not self._configured:
            logger.warning("No OPENAI_API_KEY set. Message analysis will fail until configured.")

    async def _complete(self, messages: list[dict], temperature: float, json_mode: bool) -> str:
        if not self._configured:
            raise AnalysisError("OPENAI_API_KEY chưa được cấu hình trong .env file")

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": self._max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Analyzer timeout after {self._timeout:g} seconds") from e
        except APIError as e:
            raise NetworkError(f"Analyzer API error: {e}") from e

        try:
            return response.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError):
            return ""

    async def analyze_message(self, message: str) -> AnalysisResult:
        """
        Analyze message text and convert it to structured data.

        Returns:
            AnalysisResult with success=True and a dict payload, or
            success=False with a diagnostic message (nothing raised).
        """
        logger.info(f"Analyzing message with {self._model} ({len(message)} characters)")

        try:
            content = await self._complete(
                [
                    {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                    {"role": "user", "content": ANALYSIS_USER_PROMPT.format(message=message)},
                ],
                temperature=self._analysis_temperature,
                json_mode=True,
            )
            data = parse_structured_payload(content)
        except (NetworkError, AnalysisError) as e:
            logger.error(f"Error analyzing message: {e}")
            return AnalysisResult(success=False, message=f"❌ Lỗi khi phân tích tin nhắn: {e}")

        logger.info(f"Message analyzed: {len(data.get('items') or [])} items")
        return AnalysisResult(success=True, message=build_summary_message(data), data=data)

    async def answer_question(self, context: dict[str, Any], question: str) -> str:
        """
        Answer a question about a group's stored data.

        Returns:
            The model's answer text, untrimmed.
        """
        data_text = json.dumps(context, ensure_ascii=False, indent=2, default=str)
        logger.info(f"Answering question over {len(data_text)} characters of data")

        return await self._complete(
            [
                {"role": "system", "content": QUERY_SYSTEM_PROMPT},
                {"role": "user", "content": QUERY_USER_PROMPT.format(data=data_text, question=question)},
            ],
            temperature=self._query_temperature,
            json_mode=False,
        )


def parse_structured_payload(content: str) -> dict[str, Any]:
    """
    Parse the analyzer's JSON answer.

    Tolerates a surrounding markdown code fence. Raises AnalysisError for
    empty output, invalid JSON, or a top-level value that is not an object.
    """
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()

    if not text:
        raise AnalysisError("Analyzer returned an empty response")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Analyzer returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise AnalysisError(f"Analyzer returned {type(data).__name__}, expected a JSON object")

    return data


def _display_value(key: str, value: Any, amount_hints: tuple[str, ...]) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        formatted = format_number(value)
        if any(hint in key.lower() for hint in amount_hints):
            return formatted + "đ"
        return formatted
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def build_summary_message(data: dict[str, Any]) -> str:
    """
    Build the group reply from a structured payload.

    Iterates keys generically: one numbered line per item, then the
    summary block.
    """
    items = data.get("items")
    if not isinstance(items, list) or not items:
        return NO_ITEMS_MESSAGE

    lines = ["✅ Đã phân tích và lưu tin nhắn:", ""]
    for index, item in enumerate(items, start=1):
        if isinstance(item, dict):
            fields = [
                f"{key}: {_display_value(key, value, AMOUNT_KEY_HINTS)}"
                for key, value in item.items()
                if not _is_blank(value)
            ]
            lines.append(f"{index}. " + " | ".join(fields))
        else:
            lines.append(f"{index}. {item}")

    summary = data.get("summary")
    if isinstance(summary, dict) and summary:
        lines.append("")
        lines.append("📊 Tổng kết:")
        for key, value in summary.items():
            if not _is_blank(value):
                lines.append(f"- {key}: {_display_value(key, value, SUMMARY_AMOUNT_KEY_HINTS)}")

    return "\n".join(lines)
