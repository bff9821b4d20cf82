"""
Service container handed to webhook handlers.

Built once per process (see main.lifespan) and passed explicitly;
tests build it from fakes.
"""

from dataclasses import dataclass

from gmf_bot.config import Settings
from gmf_bot.services.analyzer import MessageAnalyzer
from gmf_bot.services.dedup import MessageDeduplicator
from gmf_bot.services.export import CsvExporter
from gmf_bot.services.storage import GroupStore
from gmf_bot.services.token_cache import AccessTokenCache
from gmf_bot.services.zalo import ZaloClient


@dataclass
class BotServices:
    settings: Settings
    token_cache: AccessTokenCache
    deduplicator: MessageDeduplicator
    zalo: ZaloClient
    analyzer: MessageAnalyzer
    store: GroupStore
    exporter: CsvExporter
