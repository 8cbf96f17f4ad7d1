"""
Supabase Client
===============
Thin wrapper that provides a configured Supabase client for the remote
store and the auth service.

Uses the anon key, not the service_role key: this process acts on behalf
of the single signed-in user of the device, and RLS keeps every row in
the journals / chat_messages / conversations / moods tables scoped to
that user.
"""

from functools import lru_cache

from supabase import Client, create_client

from serenity.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_anon_key)
