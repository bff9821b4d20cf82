from supabase import create_client, Client
from gmf_bot.config import Settings, get_settings


def get_supabase_admin(settings: Settings | None = None) -> Client:
    """Service role client for server-side access to the bot tables."""
    settings = settings or get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key
    )
