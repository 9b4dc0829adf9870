"""
FastAPI dependencies for dependency injection.

This module provides process-wide instances of the alias store, event log,
counter store and click aggregator, built once from settings and injected
into services and routes.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (override with in-memory stores)
- Flexible (swap implementations via config)
"""

from functools import lru_cache

from fastapi import Depends

from shortlink_app.aliases.factory import AliasStoreFactory, AliasBackend
from shortlink_app.aliases.strategies import AliasStore
from shortlink_app.config import settings
from shortlink_app.counters.factory import CounterStoreFactory, CounterBackend
from shortlink_app.counters.strategies import CounterStore
from shortlink_app.hit_processor.click_aggregator import ClickAggregator
from shortlink_app.queue.factory import EventLogFactory, EventLogBackend
from shortlink_app.queue.strategies import EventLog
from shortlink_app.services.alias_generator import AliasGenerator
from shortlink_app.services.url_service import URLService


@lru_cache()
def get_alias_store() -> AliasStore:
    """Alias store instance based on settings (singleton)"""
    return AliasStoreFactory.create(AliasBackend(settings.alias_backend))


@lru_cache()
def get_event_log() -> EventLog:
    """Event log instance based on settings (singleton)"""
    return EventLogFactory.create(EventLogBackend(settings.event_log_backend))


@lru_cache()
def get_counter_store() -> CounterStore:
    """Counter store instance based on settings (singleton)"""
    return CounterStoreFactory.create(CounterBackend(settings.counter_backend))


@lru_cache()
def get_click_aggregator() -> ClickAggregator:
    """Aggregator bound to the configured event log and counters (singleton)"""
    return ClickAggregator(
        event_log=get_event_log(),
        counters=get_counter_store(),
        group=settings.consumer_group,
        consumer=settings.consumer_name,
        batch_size=settings.aggregator_batch_size,
        interval_seconds=settings.aggregator_interval_seconds,
        claim_min_idle_ms=settings.aggregator_claim_min_idle_ms,
    )


def get_alias_generator(aliases: AliasStore = Depends(get_alias_store)) -> AliasGenerator:
    return AliasGenerator(
        store=aliases,
        length=settings.alias_length,
        ttl=settings.alias_ttl_seconds,
        max_attempts=settings.alias_max_attempts,
    )


def get_url_service(
    aliases: AliasStore = Depends(get_alias_store),
    generator: AliasGenerator = Depends(get_alias_generator),
    event_log: EventLog = Depends(get_event_log),
    counters: CounterStore = Depends(get_counter_store)
) -> URLService:
    """
    Get URLService with all dependencies injected.

    Controllers depend on the service; the service depends on the stores.
    """
    return URLService(
        aliases=aliases,
        generator=generator,
        event_log=event_log,
        counters=counters,
        base_url=settings.base_url,
    )
