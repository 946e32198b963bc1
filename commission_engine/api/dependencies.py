from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Header

from commission_engine.core.config import get_settings
from commission_engine.core.errors import UnauthorizedError
from commission_engine.repositories.commission_repository import CommissionRepository
from commission_engine.repositories.station_repository import StationRepository
from commission_engine.repositories.stock_repository import StockRepository
from commission_engine.services.access_scope import CallerIdentity, ProfileAccessScope
from commission_engine.services.commission_service import CommissionService
from commission_engine.services.period_ledger import PeriodLedger
from commission_engine.services.rate_resolver import RateResolver
from commission_engine.services.stats_cache import StatsCache
from commission_engine.services.stock_aggregator import StockAggregator


@lru_cache
def get_station_repository() -> StationRepository:
    return StationRepository()


@lru_cache
def get_stock_repository() -> StockRepository:
    return StockRepository()


@lru_cache
def get_commission_repository() -> CommissionRepository:
    return CommissionRepository()


@lru_cache
def get_stats_cache() -> StatsCache:
    return StatsCache(ttl_seconds=get_settings().stats_cache_ttl_seconds)


def get_commission_service() -> CommissionService:
    settings = get_settings()
    station_repository = get_station_repository()
    return CommissionService(
        access_scope=ProfileAccessScope(repository=station_repository),
        station_directory=station_repository,
        stock_aggregator=StockAggregator(repository=get_stock_repository()),
        ledger=PeriodLedger(repository=get_commission_repository()),
        rate_resolver=RateResolver(fallback_rate=settings.commission_fallback_rate),
        stats_cache=get_stats_cache(),
        max_workers=settings.commission_max_workers,
    )


def get_caller_identity(x_user_id: Optional[str] = Header(default=None)) -> CallerIdentity:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedError("X-User-Id header is required")
    return CallerIdentity(user_id=user_id)
