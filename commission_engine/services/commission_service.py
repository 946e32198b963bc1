from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

import httpx

from commission_engine.core.errors import PersistenceError, UpstreamUnavailableError
from commission_engine.models.commission import CommissionLedgerRecord
from commission_engine.repositories.station_repository import StationRepository
from commission_engine.schemas.commission import (
    CommissionCalculationResult,
    CommissionFailure,
    CommissionListFilters,
    CommissionRecord,
    CommissionStats,
    ProgressiveDayPoint,
)
from commission_engine.services.access_scope import AccessScope, CallerIdentity
from commission_engine.services.commission_calculator import CommissionCalculator
from commission_engine.services.commission_stats import (
    PeriodTotals,
    StatsAggregator,
    totals_from_ledger,
    totals_from_stock,
)
from commission_engine.services.period_ledger import PeriodLedger
from commission_engine.services.progressive_series import ProgressiveSeriesBuilder
from commission_engine.services.rate_resolver import RateResolver, ResolvedRate
from commission_engine.services.stats_cache import StatsCache
from commission_engine.services.stock_aggregator import StockAggregator
from commission_engine.shared.time import (
    current_period,
    format_period,
    parse_period,
    period_bounds,
    previous_period,
)

logger = logging.getLogger(__name__)


@contextmanager
def upstream_reads(operation: str) -> Iterator[None]:
    """Turn a failed stock, station or ledger read into a 502 before any write happens."""
    try:
        yield
    except httpx.HTTPError as exc:
        logger.error("upstream read failed operation=%s error=%s", operation, exc)
        raise UpstreamUnavailableError(f"Could not read commission inputs: {exc}") from exc


class CommissionService:
    def __init__(
        self,
        access_scope: AccessScope,
        station_directory: StationRepository,
        stock_aggregator: StockAggregator,
        ledger: PeriodLedger,
        rate_resolver: Optional[RateResolver] = None,
        stats_cache: Optional[StatsCache] = None,
        max_workers: int = 4,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.access_scope = access_scope
        self.station_directory = station_directory
        self.stock_aggregator = stock_aggregator
        self.ledger = ledger
        self.rate_resolver = rate_resolver or RateResolver()
        self.stats_cache = stats_cache or StatsCache(ttl_seconds=0)
        self.max_workers = max(max_workers, 1)
        self.calculator = CommissionCalculator()
        self.progressive_builder = ProgressiveSeriesBuilder()
        self.stats_aggregator = StatsAggregator()
        self._today = today

    def calculate_commissions(
        self,
        caller: CallerIdentity,
        period: str,
        station_ids: Optional[Iterable[str]] = None,
    ) -> CommissionCalculationResult:
        today = self._today()
        period_start = parse_period(period, today)
        period_label = format_period(period_start)
        result = CommissionCalculationResult(period=period_label)

        with upstream_reads("calculate"):
            stations = self._scoped_stations(caller, station_ids)
            if not stations:
                return result
            start, end = period_bounds(period_start)
            aggregates = self.stock_aggregator.aggregate(stations, start, end, today=today)
            rates = self._resolve_rates(aggregates.keys())

        result.skipped_station_ids = sorted(stations - aggregates.keys())
        if not aggregates:
            return result

        drafts = self.calculator.calculate_all(period_label, aggregates, rates, calculated_by=caller.user_id)

        completed: List[CommissionRecord] = []
        failed: List[CommissionFailure] = []
        workers = min(self.max_workers, len(drafts))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="commission") as pool:
            futures = [(draft, pool.submit(self.ledger.upsert, draft)) for draft in drafts]
            for draft, future in futures:
                try:
                    completed.append(self._to_schema(future.result()))
                except PersistenceError as exc:
                    failed.append(CommissionFailure(station_id=draft.station_id, reason=exc.message))
                except Exception as exc:
                    logger.exception("commission calculation failed station_id=%s", draft.station_id)
                    failed.append(CommissionFailure(station_id=draft.station_id, reason=str(exc) or type(exc).__name__))

        if completed:
            self.stats_cache.invalidate(record.station_id for record in completed)

        logger.info(
            "commission batch period=%s stations=%d completed=%d failed=%d skipped=%d",
            period_label,
            len(stations),
            len(completed),
            len(failed),
            len(result.skipped_station_ids),
        )
        result.completed = completed
        result.failed = failed
        return result

    def get_progressive_commissions(
        self,
        caller: CallerIdentity,
        period: str,
        station_id: Optional[str] = None,
    ) -> List[ProgressiveDayPoint]:
        today = self._today()
        period_start = parse_period(period, today)
        with upstream_reads("progressive"):
            stations = self._scoped_stations(caller, [station_id] if station_id else None)
            if not stations:
                return []
            start, end = period_bounds(period_start)
            records = self.stock_aggregator.load_records(stations, start, end, today=today)
            rates = self._resolve_rates({record.station_id for record in records})
        return self.progressive_builder.build(records, rates, today)

    def get_commission_stats(
        self,
        caller: CallerIdentity,
        period: Optional[str] = None,
        station_id: Optional[str] = None,
    ) -> CommissionStats:
        today = self._today()
        period_start = parse_period(period or current_period(today), today)
        period_label = format_period(period_start)
        with upstream_reads("stats"):
            stations = self._scoped_stations(caller, [station_id] if station_id else None)
            if not stations:
                return self.stats_aggregator.empty(period_label)
            return self.stats_cache.get_or_compute(
                stations,
                period_label,
                lambda: self._compute_stats(stations, period_start, today),
            )

    def list_commissions(
        self,
        caller: CallerIdentity,
        filters: CommissionListFilters,
    ) -> Tuple[List[CommissionRecord], int]:
        period_label = format_period(parse_period(filters.period, self._today())) if filters.period else None
        with upstream_reads("list"):
            stations = self._scoped_stations(caller, [filters.station_id] if filters.station_id else None)
            if not stations:
                return [], 0
            records, total = self.ledger.list_page(
                stations,
                period=period_label,
                status=filters.status,
                page=filters.page,
                page_size=filters.page_size,
            )
        return [self._to_schema(record) for record in records], total

    def _compute_stats(self, stations: FrozenSet[str], period_start: date, today: date) -> CommissionStats:
        period_label = format_period(period_start)
        previous_start = previous_period(period_start)
        previous_label = format_period(previous_start)
        stored = self.ledger.list_records([period_label, previous_label], stations)

        current_records = [record for record in stored if record.period == period_label]
        previous_records = [record for record in stored if record.period == previous_label]

        current, source = self._period_totals(stations, period_start, today, current_records)
        previous, _ = self._period_totals(stations, previous_start, today, previous_records)
        return self.stats_aggregator.summarize(period_start, today, current, previous, source)

    def _period_totals(
        self,
        stations: FrozenSet[str],
        period_start: date,
        today: date,
        stored: List[CommissionLedgerRecord],
    ) -> Tuple[PeriodTotals, str]:
        # Stations without a ledger row for the period are filled in live.
        missing = stations - {record.station_id for record in stored}
        live = self._live_totals(missing, period_start, today) if missing else PeriodTotals()
        if not stored:
            return live, "live"
        ledger = totals_from_ledger(stored)
        if live.station_count == 0:
            return ledger, "ledger"
        return ledger.merged(live), "mixed"

    def _live_totals(self, stations: FrozenSet[str], period_start: date, today: date) -> PeriodTotals:
        start, end = period_bounds(period_start)
        aggregates = self.stock_aggregator.aggregate(stations, start, end, today=today)
        if not aggregates:
            return PeriodTotals()
        return totals_from_stock(aggregates, self._resolve_rates(aggregates.keys()))

    def _scoped_stations(
        self,
        caller: CallerIdentity,
        requested: Optional[Iterable[str]],
    ) -> FrozenSet[str]:
        visible = frozenset(self.access_scope.resolve_stations(caller))
        if requested is None:
            return visible
        return visible & frozenset(requested)

    def _resolve_rates(self, station_ids: Iterable[str]) -> Dict[str, ResolvedRate]:
        stations = sorted(set(station_ids))
        if not stations:
            return {}
        raw_rates = self.station_directory.get_rates(stations)
        return {station_id: self.rate_resolver.resolve(raw_rates.get(station_id), station_id) for station_id in stations}

    @staticmethod
    def _to_schema(record: CommissionLedgerRecord) -> CommissionRecord:
        return CommissionRecord.model_validate(record.model_dump())
