"""
Message Deduplicator

Drops webhook re-deliveries of the same logical message within a TTL
window. State is in-memory and owned by one instance per process.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from ..utils.extractors import (
    extract_group_id,
    extract_message_id,
    extract_message_text,
    extract_sender,
)
from ..utils import normalize_for_key

logger = logging.getLogger(__name__)

MAX_AGE_SECONDS = 10 * 60
SWEEP_INTERVAL_SECONDS = 10 * 60


def compute_key(event: dict, now: Optional[float] = None) -> str:
    """
    Build the idempotency key for an event.

    1. Platform message id: "msg_<id>"
    2. sender + group + normalized text
    3. sender + group + event timestamp (empty text; cannot catch true retries
       without a timestamp)
    """
    message_id = extract_message_id(event)
    if message_id:
        return f"msg_{message_id}"

    sender_id = extract_sender(event).id
    if sender_id == "Unknown":
        sender_id = "unknown"
    group_id = extract_group_id(event) or "unknown"

    normalized = normalize_for_key(extract_message_text(event))
    if not normalized:
        timestamp = event.get("timestamp") or int((now if now is not None else time.time()) * 1000)
        return f"fallback_empty_{sender_id}_{group_id}_{timestamp}"

    return f"fallback_{sender_id}_{group_id}_{normalized}"


class MessageDeduplicator:
    """
    Remembers idempotency keys for max_age seconds.

    USAGE:
        dedup = MessageDeduplicator()
        if dedup.is_duplicate(event):
            return
        dedup.mark_processed(event)
        ... side effects ...

    Entries older than max_age are expired: swept after every mark, on
    every check and by the periodic sweeper task.
    """

    def __init__(
        self,
        max_age: float = MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_age = max_age
        self._clock = clock
        self._seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def compute_key(self, event: dict) -> str:
        return compute_key(event, now=self._clock())

    def is_duplicate(self, event: dict) -> bool:
        self.sweep()
        key = self.compute_key(event)
        if key in self._seen:
            logger.info(f"Message already processed (deduplication): {key}")
            return True
        return False

    def mark_processed(self, event: dict) -> str:
        key = self.compute_key(event)
        self._seen[key] = self._clock()
        logger.debug(f"Message marked as processed: {key}")
        self.sweep()
        return key

    def sweep(self) -> int:
        """Remove entries older than max_age. Returns number removed."""
        now = self._clock()
        expired = [key for key, seen_at in self._seen.items() if now - seen_at > self.max_age]
        for key in expired:
            del self._seen[key]

        if expired:
            logger.debug(f"Cleaned up {len(expired)} old processed message entries")
        return len(expired)

    def clear(self) -> None:
        self._seen.clear()

    async def run_sweeper(self, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        """Sweep forever every `interval` seconds. Cancel the task to stop."""
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def start_sweeper(self, interval: float = SWEEP_INTERVAL_SECONDS) -> asyncio.Task:
        return asyncio.create_task(self.run_sweeper(interval))
