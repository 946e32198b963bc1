from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from commission_engine.services.rate_resolver import ResolvedRate
from commission_engine.services.stock_aggregator import StationVolume

AMOUNT_PRECISION = 2
VOLUME_PRECISION = 3


def round_amount(value: float) -> float:
    return round(value + 0.0, AMOUNT_PRECISION)


def round_volume(value: float) -> float:
    return round(value + 0.0, VOLUME_PRECISION)


def commission_for(volume: float, rate: float) -> float:
    return round_amount(volume * rate)


@dataclass
class CommissionDraft:
    """Mutable ledger fields for one (station, period); carries no status."""

    station_id: str
    period: str
    total_volume: float
    commission_rate: float
    commission_amount: float
    calculated_at: datetime
    calculated_by: Optional[str] = None
    used_fallback_rate: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "station_id": self.station_id,
            "period": self.period,
            "total_volume": self.total_volume,
            "commission_rate": self.commission_rate,
            "commission_amount": self.commission_amount,
            "calculated_at": self.calculated_at.isoformat(),
            "calculated_by": self.calculated_by,
        }


class CommissionCalculator:
    @staticmethod
    def _now_utc() -> datetime:
        return datetime.now(timezone.utc)

    def calculate(
        self,
        station_id: str,
        period: str,
        aggregate: StationVolume,
        rate: ResolvedRate,
        calculated_by: Optional[str] = None,
    ) -> CommissionDraft:
        return CommissionDraft(
            station_id=station_id,
            period=period,
            total_volume=round_volume(aggregate.volume),
            commission_rate=rate.rate,
            commission_amount=commission_for(aggregate.volume, rate.rate),
            calculated_at=self._now_utc(),
            calculated_by=calculated_by,
            used_fallback_rate=rate.used_fallback,
        )

    def calculate_all(
        self,
        period: str,
        aggregates: Mapping[str, StationVolume],
        rates: Mapping[str, ResolvedRate],
        calculated_by: Optional[str] = None,
    ) -> List[CommissionDraft]:
        # Stations without stock records are absent from aggregates and get no draft.
        return [
            self.calculate(station_id, period, aggregates[station_id], rates[station_id], calculated_by)
            for station_id in sorted(aggregates)
        ]
