from supabase import create_client, PostgrestAPIError
from core.config import settings, logger
from core.errors import NotFound, StoreError
from typing import Optional, Dict, Any, Callable
import asyncio
from functools import partial

# Cache clients by type
_supabase_clients: Dict[str, any] = {}
_init_lock = asyncio.Lock()

async def get_supabase_client(use_service_key=False):
    """
    Initializes and returns the Supabase client (thread-safe).
    Args:
        use_service_key: If True, returns a client using the service role key to bypass RLS
    """
    global _supabase_clients

    # Determine client type
    client_type = "service" if use_service_key else "anon"

    # Check if we already have this client type initialized
    if client_type not in _supabase_clients:
        async with _init_lock:
            # Double check after acquiring lock
            if client_type not in _supabase_clients:
                url = settings.SUPABASE_URL
                # Choose the appropriate key based on client type
                key = settings.SUPABASE_SERVICE_KEY if use_service_key else settings.SUPABASE_KEY

                if url and key:
                    key_type_str = 'service role' if use_service_key else 'anon'
                    logger.info(f"Initializing Supabase client with {key_type_str} key...")
                    try:
                        # Run create_client in a thread pool since it's synchronous
                        loop = asyncio.get_running_loop()
                        client_instance = await loop.run_in_executor(
                            None,
                            partial(create_client, url, key)
                        )

                        # Cache the client
                        _supabase_clients[client_type] = client_instance
                        logger.info(f"Supabase client with {key_type_str} key initialized successfully.")
                    except Exception as e:
                        logger.error(f"Failed to initialize Supabase client with {key_type_str} key: {e}", exc_info=True)
                        raise RuntimeError(f"Failed to initialize Supabase client: {e}")
                else:
                    missing_key = "Service Role Key" if use_service_key else "Anon Key"
                    logger.error(f"Supabase URL or {missing_key} not configured. Cannot create client.")
                    raise ValueError(f"Supabase URL or {missing_key} not configured")

    # Return the cached client
    return _supabase_clients[client_type]


# PostgREST codes meaning "single row requested, none matched"
NO_ROWS_ERROR_CODES = {"204", "PGRST116"}

async def run_query(db_call: Callable[[], Any], job_prefix: str, action: str,
                    not_found_message: Optional[str] = None) -> Any:
    """
    Runs a synchronous Supabase call in a worker thread.

    PostgREST errors become StoreError, or NotFound when `not_found_message`
    is given and the error says no row matched.
    """
    try:
        return await asyncio.to_thread(db_call)
    except PostgrestAPIError as e:
        if not_found_message and str(e.code) in NO_ROWS_ERROR_CODES:
            logger.info(f"{job_prefix} No row matched while {action}.")
            raise NotFound(not_found_message)
        logger.error(f"{job_prefix} Supabase API error {action}: {e.message} (Code: {e.code}, Details: {e.details})", exc_info=False)
        raise StoreError(f"Error {action}: {e.message}")


async def get_current_user(db_client, access_token: Optional[str] = None) -> Optional[Any]:
    """
    Returns the user behind `access_token`, or the client's own session user
    when no token is given. None when nobody is signed in.
    """
    def auth_call():
        return db_client.auth.get_user(access_token)

    response = await asyncio.to_thread(auth_call)
    # gotrue returns None (no session) or a UserResponse whose .user may be None
    return getattr(response, "user", None) if response else None


async def has_active_session(db_client) -> bool:
    """Checks whether the client currently holds an auth session."""
    session = await asyncio.to_thread(db_client.auth.get_session)
    return session is not None

# Define Table names here for consistency
COLLECTIONS_TABLE = "collections"
IMAGES_TABLE = "images"
