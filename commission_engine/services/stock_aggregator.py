from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from commission_engine.models.commission import DailyStockRecord
from commission_engine.repositories.stock_repository import StockRepository
from commission_engine.shared.time import clamp_period_end

logger = logging.getLogger(__name__)


@dataclass
class StationVolume:
    volume: float = 0.0
    record_count: int = 0
    negative_record_count: int = 0


class StockAggregator:
    def __init__(self, repository: StockRepository) -> None:
        self.repository = repository

    def load_records(
        self,
        station_ids: Iterable[str],
        period_start: date,
        period_end: date,
        today: Optional[date] = None,
    ) -> List[DailyStockRecord]:
        stations = set(station_ids)
        if not stations:
            return []
        end = clamp_period_end(period_start, period_end, today or date.today())
        if end < period_start:
            return []
        records = self.repository.query(stations, period_start, end)
        # Stable date order so every consumer sums each station's volume in the same sequence.
        return sorted(
            (record for record in records if record.station_id in stations),
            key=lambda record: record.stock_date,
        )

    def aggregate(
        self,
        station_ids: Iterable[str],
        period_start: date,
        period_end: date,
        today: Optional[date] = None,
    ) -> Dict[str, StationVolume]:
        records = self.load_records(station_ids, period_start, period_end, today=today)
        return self.summarize(records)

    @staticmethod
    def summarize(records: Iterable[DailyStockRecord]) -> Dict[str, StationVolume]:
        totals: Dict[str, StationVolume] = {}
        for record in records:
            volume = record.dispensed_volume
            bucket = totals.setdefault(record.station_id, StationVolume())
            bucket.volume += volume
            bucket.record_count += 1
            if volume < 0:
                # Passed through unchanged; only surfaced for data-quality follow-up.
                bucket.negative_record_count += 1
                logger.warning(
                    "negative dispensed volume station_id=%s product_id=%s stock_date=%s volume=%s",
                    record.station_id,
                    record.product_id,
                    record.stock_date.isoformat(),
                    volume,
                )
        return totals
