from fastapi import Request

from gmf_bot.bot.context import BotServices


def get_services(request: Request) -> BotServices:
    """FastAPI dependency: the process-wide service container."""
    return request.app.state.services
