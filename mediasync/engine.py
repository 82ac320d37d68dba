"""Composition root wiring the cache, remote store and coordinators together."""

import logging

from .cache import (
    EphemeralBackend,
    GuestSession,
    LocalCache,
    SessionMode,
    SQLiteBackend,
    StorageBackend,
)
from .clock import Clock
from .config import Config
from .events import EventBus
from .metadata import MetadataClient, TMDBClient
from .models import MediaKind
from .remote import HttpRemoteStore, InMemoryRemoteStore, RemoteStore
from .sync import (
    CatalogCoordinator,
    FollowingCoordinator,
    ManualSync,
    MetadataRefresher,
    NotificationCoordinator,
    ProgressCoordinator,
    RetentionPolicy,
    SmartSyncScheduler,
    SyncContext,
    SyncPolicy,
)

logger = logging.getLogger(__name__)


def build_remote_store(config: Config) -> RemoteStore:
    if config.remote.base_url:
        return HttpRemoteStore(
            base_url=config.remote.base_url,
            api_token=config.remote.api_token,
            timeout=config.remote.timeout_seconds,
        )
    logger.info("No remote URL configured, using in-memory remote store")
    return InMemoryRemoteStore()


class MediaSync:
    """One user session of the sync engine.

    Exposes a coordinator per collection (``catalogs``, ``progress``,
    ``following`` keyed by MediaKind, plus ``notifications``), the smart
    sync ``scheduler`` and the ``manual`` sync operations.
    """

    def __init__(
        self,
        config: Config | None = None,
        store: RemoteStore | None = None,
        metadata: MetadataClient | None = None,
        clock: Clock | None = None,
        durable: StorageBackend | None = None,
    ):
        self.config = config or Config()
        self.clock = clock or Clock()
        self.session = SessionMode()
        self.durable = durable or SQLiteBackend(self.config.cache.db_path)
        self.cache = LocalCache(self.session, self.durable, EphemeralBackend())
        self.store = store or build_remote_store(self.config)
        self.metadata = metadata or TMDBClient(
            api_key=self.config.metadata.api_key,
            base_url=self.config.metadata.base_url,
            language=self.config.metadata.language,
            timeout=self.config.metadata.timeout_seconds,
            clock=self.clock,
        )
        self._user_id = self.config.session.user_id

        self.context = SyncContext(
            cache=self.cache,
            store=self.store,
            user_id_provider=lambda: self._user_id,
            events=EventBus(),
            clock=self.clock,
        )

        self.progress = {kind: ProgressCoordinator(kind, self.context) for kind in MediaKind}
        self.catalogs = {
            kind: CatalogCoordinator(kind, self.context, self.progress[kind])
            for kind in MediaKind
        }
        self.notifications = NotificationCoordinator(
            self.context,
            RetentionPolicy(
                max_age_days=self.config.notifications.max_age_days,
                max_count=self.config.notifications.max_count,
            ),
        )
        self.following = {
            kind: FollowingCoordinator(kind, self.context, self.notifications, self.metadata)
            for kind in MediaKind
        }
        self.refresher = MetadataRefresher(
            self.catalogs, self.progress, self.metadata, self.context.events, self.notifications
        )

        sync_config = self.config.smart_sync
        self.scheduler = SmartSyncScheduler(
            self.context,
            self.catalogs,
            self.progress,
            self.refresher,
            SyncPolicy(
                movie_interval_days=sync_config.movie_interval_days,
                ended_interval_days=sync_config.ended_interval_days,
                min_interval_hours=sync_config.min_interval_hours,
                request_delay_seconds=sync_config.request_delay_seconds,
                max_retries=sync_config.max_retries,
                retry_delay_seconds=sync_config.retry_delay_seconds,
            ),
        )
        self.manual = ManualSync(self.cache, self.catalogs, self.progress, self.notifications)
        self.guest = GuestSession(self.cache, self.clock)

        if self.config.session.guest:
            self.guest.enable()

    @property
    def events(self) -> EventBus:
        return self.context.events

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        self._user_id = user_id
        self.context.guards.reset_all()
        logger.info(f"Signed in as {user_id}")

    def sign_out(self) -> None:
        self._user_id = None
        self.context.guards.reset_all()

    def handle_page_load(self, reloaded: bool) -> bool:
        """Reset the reconciliation guards on an explicit reload."""
        return self.context.guards.handle_page_load(reloaded)

    async def check_releases(self) -> int:
        """Run release detection for followed movies and series."""
        created = await self.following[MediaKind.MOVIE].check_movie_releases()
        created += await self.following[MediaKind.SERIES].check_series_releases()
        return created

    async def start(self) -> None:
        if self.config.smart_sync.enabled:
            await self.scheduler.start(self.config.smart_sync.interval_minutes)

    async def close(self) -> None:
        """Tear down the session.

        New background work is refused, in-flight work is awaited, then
        connections are closed.
        """
        await self.scheduler.shutdown()
        await self.context.tasks.drain()
        await self.store.close()
        await self.metadata.close()
        if isinstance(self.durable, SQLiteBackend):
            self.durable.close()
