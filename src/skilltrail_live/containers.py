"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from skilltrail_live.adapters.supabase_challenge_catalog import (
    SupabaseChallengeCatalog,
)
from skilltrail_live.adapters.supabase_session_archive import SupabaseSessionArchive
from skilltrail_live.config import Settings
from skilltrail_live.services.archive import SessionArchive
from skilltrail_live.services.broadcaster import SessionBroadcaster
from skilltrail_live.services.cache import InMemoryCache
from skilltrail_live.services.challenges import ChallengeCatalog, ChallengeService
from skilltrail_live.services.clock import Clock, SystemClock
from skilltrail_live.services.lifecycle import LiveChallengeController
from skilltrail_live.services.participants import ParticipantTracker
from skilltrail_live.services.registry import SessionRegistry
from skilltrail_live.services.session_store import InMemoryLiveSessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    broadcaster: SessionBroadcaster
    controller: LiveChallengeController
    session_archive: SessionArchive
    close_resources: Callable[[], Awaitable[None]]


def build_live_controller(
    settings: Settings,
    catalog: ChallengeCatalog,
    archive: SessionArchive,
    clock: Clock,
) -> tuple[LiveChallengeController, SessionBroadcaster]:
    """Wire the live challenge engine around its collaborators."""
    broadcaster = SessionBroadcaster(clock, queue_size=settings.subscriber_queue_size)
    store = InMemoryLiveSessionStore()
    challenge_service = ChallengeService(
        catalog=catalog,
        cache=InMemoryCache(clock),
        ttl_seconds=settings.challenge_cache_ttl_seconds,
    )
    tracker = ParticipantTracker(
        store=store,
        challenge_service=challenge_service,
        publisher=broadcaster,
        clock=clock,
    )
    controller = LiveChallengeController(
        store=store,
        registry=SessionRegistry(broadcaster),
        tracker=tracker,
        broadcaster=broadcaster,
        challenge_service=challenge_service,
        archive=archive,
        clock=clock,
        default_max_participants=settings.default_max_participants,
    )
    return controller, broadcaster


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    clock = SystemClock()
    session_archive = SupabaseSessionArchive(supabase_client)
    controller, broadcaster = build_live_controller(
        resolved_settings,
        catalog=SupabaseChallengeCatalog(supabase_client),
        archive=session_archive,
        clock=clock,
    )

    async def close_resources() -> None:
        broadcaster.close_all()

    return AppContainer(
        settings=resolved_settings,
        broadcaster=broadcaster,
        controller=controller,
        session_archive=session_archive,
        close_resources=close_resources,
    )
