from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Mapping, Optional, Sequence

from commission_engine.models.commission import CommissionLedgerRecord
from commission_engine.schemas.commission import CommissionStats
from commission_engine.services.commission_calculator import commission_for, round_amount, round_volume
from commission_engine.services.rate_resolver import ResolvedRate
from commission_engine.services.stock_aggregator import StationVolume
from commission_engine.shared.time import format_period, month_progress


@dataclass
class PeriodTotals:
    commission: float = 0.0
    volume: float = 0.0
    paid: float = 0.0
    pending: float = 0.0
    approved: float = 0.0
    paid_count: int = 0
    pending_count: int = 0
    approved_count: int = 0
    rates: List[float] = field(default_factory=list)

    @property
    def station_count(self) -> int:
        return len(self.rates)

    def merged(self, other: PeriodTotals) -> PeriodTotals:
        return PeriodTotals(
            commission=self.commission + other.commission,
            volume=self.volume + other.volume,
            paid=self.paid + other.paid,
            pending=self.pending + other.pending,
            approved=self.approved + other.approved,
            paid_count=self.paid_count + other.paid_count,
            pending_count=self.pending_count + other.pending_count,
            approved_count=self.approved_count + other.approved_count,
            rates=self.rates + other.rates,
        )


def totals_from_ledger(records: Sequence[CommissionLedgerRecord]) -> PeriodTotals:
    totals = PeriodTotals()
    for record in records:
        amount = float(record.commission_amount or 0)
        totals.commission += amount
        totals.volume += float(record.total_volume or 0)
        totals.rates.append(float(record.commission_rate or 0))
        if record.status == "paid":
            totals.paid += amount
            totals.paid_count += 1
        elif record.status == "approved":
            totals.approved += amount
            totals.approved_count += 1
        else:
            totals.pending += amount
            totals.pending_count += 1
    return totals


def totals_from_stock(
    aggregates: Mapping[str, StationVolume],
    rates: Mapping[str, ResolvedRate],
) -> PeriodTotals:
    """Same figures calculate_commissions would store, all still pending."""
    totals = PeriodTotals()
    for station_id, aggregate in aggregates.items():
        rate = rates[station_id]
        amount = commission_for(aggregate.volume, rate.rate)
        totals.commission += amount
        totals.volume += round_volume(aggregate.volume)
        totals.pending += amount
        totals.pending_count += 1
        totals.rates.append(rate.rate)
    return totals


def growth_pct(current: float, previous: float) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    if current > 0:
        return 100.0
    return 0.0


class StatsAggregator:
    def summarize(
        self,
        period_start: date,
        today: date,
        current: PeriodTotals,
        previous: PeriodTotals,
        source: str,
    ) -> CommissionStats:
        period = format_period(period_start)
        if current.station_count == 0 and previous.station_count == 0:
            return self.empty(period)

        progress = round(month_progress(period_start, today), 2)
        current_commission = round_amount(current.commission)
        # Straight-line projection from the share of the month elapsed.
        estimated = round_amount(current_commission / progress * 100) if progress > 0 else 0.0
        average_rate = sum(current.rates) / len(current.rates) if current.rates else 0.0

        return CommissionStats(
            period=period,
            total_commission=current_commission,
            paid_commission=round_amount(current.paid),
            pending_commission=round_amount(current.pending),
            approved_commission=round_amount(current.approved),
            current_month_commission=current_commission,
            previous_month_commission=round_amount(previous.commission),
            total_volume=round_volume(current.volume),
            month_over_month_growth=growth_pct(current.commission, previous.commission),
            month_progress=progress,
            estimated_final_commission=estimated,
            average_commission_rate=round(average_rate, 6),
            station_count=current.station_count,
            paid_station_count=current.paid_count,
            pending_station_count=current.pending_count,
            approved_station_count=current.approved_count,
            source=source if current.station_count else "empty",
        )

    @staticmethod
    def empty(period: Optional[str]) -> CommissionStats:
        return CommissionStats(period=period or "")
