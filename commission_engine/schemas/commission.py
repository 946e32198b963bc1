from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import Field

from commission_engine.shared.base import BaseSchema, RequestSchema


CommissionStatus = Literal["pending", "approved", "paid"]
TrendDirection = Literal["up", "down", "flat"]
StatsSource = Literal["ledger", "live", "mixed", "empty"]


class CommissionRecord(BaseSchema):
    id: Optional[str] = None
    station_id: str
    period: str
    total_volume: float
    commission_rate: float
    commission_amount: float
    status: CommissionStatus = "pending"
    calculated_at: Optional[datetime] = None
    calculated_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    paid_by: Optional[str] = None
    paid_at: Optional[datetime] = None


class CommissionFailure(BaseSchema):
    station_id: str
    reason: str


class CommissionCalculationRequest(RequestSchema):
    period: str = Field(min_length=1)
    station_ids: Optional[List[str]] = None


class CommissionCalculationResult(BaseSchema):
    period: str
    completed: List[CommissionRecord] = Field(default_factory=list)
    failed: List[CommissionFailure] = Field(default_factory=list)
    skipped_station_ids: List[str] = Field(default_factory=list)


class ProgressiveDayPoint(BaseSchema):
    date: date
    daily_volume: float
    daily_commission: float
    cumulative_volume: float
    cumulative_commission: float
    volume_change: float = 0.0
    volume_change_pct: float = 0.0
    commission_change: float = 0.0
    trend: TrendDirection = "flat"
    efficiency: float = 0.0
    record_count: int = 0
    is_today: bool = False


class CommissionStats(BaseSchema):
    period: str
    total_commission: float = 0.0
    paid_commission: float = 0.0
    pending_commission: float = 0.0
    approved_commission: float = 0.0
    current_month_commission: float = 0.0
    previous_month_commission: float = 0.0
    total_volume: float = 0.0
    month_over_month_growth: float = 0.0
    month_progress: float = 0.0
    estimated_final_commission: float = 0.0
    average_commission_rate: float = 0.0
    station_count: int = 0
    paid_station_count: int = 0
    pending_station_count: int = 0
    approved_station_count: int = 0
    source: StatsSource = "empty"
    # estimated_final_commission is a straight-line projection, never a forecast.
    is_estimate: bool = True


class CommissionStatsFilters(RequestSchema):
    period: Optional[str] = None
    station_id: Optional[str] = None


class CommissionListFilters(RequestSchema):
    period: Optional[str] = None
    status: Optional[CommissionStatus] = None
    station_id: Optional[str] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=200)
