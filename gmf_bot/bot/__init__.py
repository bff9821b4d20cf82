"""
Zalo GMF bot module.

ARCHITECTURE: Thin routing layer
- Receives webhook events from Zalo
- Classifies them via dispatcher (/p save, /t query)
- Drops repeated deliveries via the deduplicator
- Runs the analysis or query pipeline and replies to the group
"""

from .bot import handle_webhook_event
from .context import BotServices
from .dispatcher import classify_event, parse_command

__all__ = [
    "handle_webhook_event",
    "BotServices",
    "classify_event",
    "parse_command",
]
