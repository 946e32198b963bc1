from __future__ import annotations

from collections import defaultdict
from datetime import date
from itertools import groupby
from typing import Dict, Iterable, List, Mapping

from commission_engine.models.commission import DailyStockRecord
from commission_engine.schemas.commission import ProgressiveDayPoint
from commission_engine.services.commission_calculator import commission_for, round_amount, round_volume
from commission_engine.services.rate_resolver import ResolvedRate


class ProgressiveSeriesBuilder:
    """Day-ordered running totals of volume and commission within a period.

    Output is sparse: only dates with at least one stock record get a point.
    Cumulative commission is the sum of each station's ``commission_for`` on its
    running volume, the same figure the calculator stores once the period is
    complete. Daily commission is the step between cumulative values.
    """

    def build(
        self,
        records: Iterable[DailyStockRecord],
        rates: Mapping[str, ResolvedRate],
        today: date,
    ) -> List[ProgressiveDayPoint]:
        rated = sorted(
            (record for record in records if record.station_id in rates),
            key=lambda record: record.stock_date,
        )
        days = [(day, list(day_records)) for day, day_records in groupby(rated, key=lambda record: record.stock_date)]
        if not days:
            return []

        daily_volumes = [sum(record.dispensed_volume for record in day_records) for _, day_records in days]
        average_volume = sum(daily_volumes) / len(days)

        station_volumes: Dict[str, float] = defaultdict(float)
        points: List[ProgressiveDayPoint] = []
        raw_volume_total = 0.0
        previous_cumulative_commission = 0.0
        previous_point: ProgressiveDayPoint | None = None
        for (day, day_records), day_volume in zip(days, daily_volumes):
            for record in day_records:
                station_volumes[record.station_id] += record.dispensed_volume
            raw_volume_total += day_volume
            cumulative_commission = round_amount(
                sum(commission_for(volume, rates[station_id].rate) for station_id, volume in station_volumes.items())
            )

            point = ProgressiveDayPoint(
                date=day,
                daily_volume=round_volume(day_volume),
                daily_commission=round_amount(cumulative_commission - previous_cumulative_commission),
                cumulative_volume=round_volume(raw_volume_total),
                cumulative_commission=cumulative_commission,
                efficiency=self._efficiency(day_volume, average_volume),
                record_count=len(day_records),
                is_today=day == today,
            )
            if previous_point is not None:
                self._annotate_trend(point, previous_point)
            points.append(point)
            previous_point = point
            previous_cumulative_commission = cumulative_commission
        return points

    @staticmethod
    def _efficiency(volume: float, average_volume: float) -> float:
        if average_volume <= 0:
            return 0.0
        return round(volume / average_volume * 100, 1)

    @staticmethod
    def _annotate_trend(point: ProgressiveDayPoint, previous: ProgressiveDayPoint) -> None:
        volume_change = round_volume(point.daily_volume - previous.daily_volume)
        point.volume_change = volume_change
        point.commission_change = round_amount(point.daily_commission - previous.daily_commission)
        if previous.daily_volume:
            point.volume_change_pct = round(volume_change / abs(previous.daily_volume) * 100, 1)
        if volume_change > 0:
            point.trend = "up"
        elif volume_change < 0:
            point.trend = "down"
