import logging
from datetime import datetime, timezone

from shortlink_app.aliases.strategies import AliasStore
from shortlink_app.counters.strategies import CounterStore
from shortlink_app.queue.models import ClickEvent
from shortlink_app.queue.strategies import EventLog
from shortlink_app.schemas.url import URLResponse, URLStats
from shortlink_app.services.alias_generator import AliasGenerator

logger = logging.getLogger(__name__)


class URLService:
    """
    URL Service with dependency injection for the alias store, event log and counters.

    This follows the Dependency Injection pattern:
    - Stores are injected (not created internally)
    - Easy to test (inject in-memory stores)
    - Flexible (swap implementations without changing code)
    """

    def __init__(
        self,
        aliases: AliasStore,
        generator: AliasGenerator,
        event_log: EventLog,
        counters: CounterStore,
        base_url: str
    ):
        self.aliases = aliases
        self.generator = generator
        self.event_log = event_log
        self.counters = counters
        self.base_url = base_url.rstrip("/")

    async def create_short_url(self, long_url: str) -> URLResponse:
        """Allocate an alias for an already validated URL"""
        alias = await self.generator.allocate(long_url)
        return URLResponse(
            alias=alias,
            long_url=long_url,
            short_url=f"{self.base_url}/{alias}",
        )

    async def get_long_url_for_redirect(self, alias: str) -> str:
        """
        Get the target URL for a redirect.

        This method ONLY retrieves the URL (doesn't track clicks).
        Click tracking is done separately via publish_click().

        Raises:
            NotFound: unknown or expired alias
        """
        return await self.aliases.get(alias)

    async def publish_click(self, alias: str) -> None:
        """
        Append a click event for the alias. Best effort.

        Never raises: the redirect must succeed even when click tracking
        is down, so every failure is logged here and dropped.
        """
        event = ClickEvent(alias=alias, timestamp=datetime.now(timezone.utc))
        try:
            entry_id = await self.event_log.append(event)
        except Exception:
            logger.error("Failed to publish click event for %s", alias, exc_info=True)
            return
        logger.debug("Published click event %s for %s", entry_id, alias)

    async def get_url_stats(self, alias: str) -> URLStats:
        """
        Raises:
            NotFound: unknown or expired alias, whatever the counter says
        """
        long_url = await self.aliases.get(alias)
        clicks = await self.counters.get(alias)
        return URLStats(alias=alias, long_url=long_url, clicks=clicks)
