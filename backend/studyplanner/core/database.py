"""
Database connections: Supabase client setup.
"""

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from studyplanner.config import Settings
from studyplanner.core.storage import FileSessionStorage


async def create_supabase_client(settings: Settings, storage: FileSessionStorage) -> AsyncClient:
    """Create the async Supabase client for the signed-in user.

    The auth session is persisted in the durable ``storage`` (under the auth
    client's ``supabase.auth.token`` key) so it survives restarts. Automatic
    refresh stays on; expiry checks on our side still go through SessionManager.
    """
    options = AsyncClientOptions(
        storage=storage,
        persist_session=True,
        auto_refresh_token=True,
    )
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY, options=options)
