"""
Service Wiring
==============
Builds the service graph once per process and hands pieces of it to
routers through FastAPI dependencies.

The lifespan in ``serenity.main`` calls ``build_services`` and stores the
result on ``app.state.services``. Tests skip the lifespan and override the
``get_*`` dependencies instead.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from supabase import Client

from serenity.config import Settings
from serenity.db.local import LocalCache
from serenity.db.remote import RemoteStore
from serenity.services.auth import AuthService
from serenity.services.chat import ChatService
from serenity.services.companion import CompanionClient
from serenity.services.connectivity import ConnectivityMonitor, ConnectivitySource
from serenity.services.journal import JournalService
from serenity.services.mood import MoodService
from serenity.services.sync_engine import SyncEngine


@dataclass
class AppServices:
    settings: Settings
    cache: LocalCache
    remote: RemoteStore
    auth: AuthService
    connectivity: ConnectivityMonitor
    engine: SyncEngine
    journal: JournalService
    moods: MoodService
    chat: ChatService


def build_services(settings: Settings, client: Client, source: ConnectivitySource) -> AppServices:
    """Construct (but do not open) every service."""
    cache = LocalCache(settings.local_db_path)
    auth = AuthService(client)
    remote = RemoteStore(client, auth.current_user_id)
    connectivity = ConnectivityMonitor(source)
    engine = SyncEngine(
        cache,
        remote,
        connectivity,
        write_timeout=settings.remote_write_timeout_seconds,
        max_attempts=settings.sync_max_attempts,
    )
    moods = MoodService(cache, engine)
    return AppServices(
        settings=settings,
        cache=cache,
        remote=remote,
        auth=auth,
        connectivity=connectivity,
        engine=engine,
        journal=JournalService(cache, engine),
        moods=moods,
        chat=ChatService(cache, engine, connectivity, CompanionClient(settings), moods, settings),
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_auth_service(services: AppServices = Depends(get_services)) -> AuthService:
    return services.auth


def get_journal_service(services: AppServices = Depends(get_services)) -> JournalService:
    return services.journal


def get_mood_service(services: AppServices = Depends(get_services)) -> MoodService:
    return services.moods


def get_chat_service(services: AppServices = Depends(get_services)) -> ChatService:
    return services.chat


def get_sync_engine(services: AppServices = Depends(get_services)) -> SyncEngine:
    return services.engine


def get_connectivity(services: AppServices = Depends(get_services)) -> ConnectivityMonitor:
    return services.connectivity
