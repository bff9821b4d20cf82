"""
Error kinds raised across the bot.

Handlers decide per kind whether an event is dropped silently,
answered with an apology, or acknowledged with a failure flag.
"""


class BotError(Exception):
    """Base exception for bot errors."""
    pass


class CredentialError(BotError):
    """Refresh credential is missing or still a placeholder."""
    pass


class NetworkError(BotError):
    """An outbound call failed or timed out."""
    pass


class AnalysisError(BotError):
    """Analyzer returned failure or a payload that is not usable JSON."""
    pass


class ExportError(BotError):
    """Export file could not be written or addressed."""
    pass


class ValidationError(BotError):
    """Inbound data is missing a required field."""
    pass
