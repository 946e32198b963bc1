from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from commission_engine.api.dependencies import get_caller_identity, get_commission_service
from commission_engine.schemas.commission import (
    CommissionCalculationRequest,
    CommissionCalculationResult,
    CommissionListFilters,
    CommissionRecord,
    CommissionStats,
    ProgressiveDayPoint,
)
from commission_engine.services.access_scope import CallerIdentity
from commission_engine.services.commission_service import CommissionService
from commission_engine.shared.response import Meta, ResponseEnvelope, build_pagination

router = APIRouter(prefix="/commissions", tags=["commissions"])

COMMISSION_CALCULATION_VERSION = "v1"
STATS_META_SOURCES = {
    "ledger": "station_commissions",
    "mixed": "station_commissions,daily_tank_stocks",
}


def _build_meta(*, source: str, time_window: str, data_status: str = "live", is_estimate: Optional[bool] = None) -> Meta:
    return Meta(
        as_of_date=date.today().isoformat(),
        source=source,
        time_window=time_window,
        calculation_version=COMMISSION_CALCULATION_VERSION,
        currency=None,
        data_status=data_status,
        is_estimate=is_estimate,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def get_commission_list_filters(
    period: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None, pattern="^(pending|approved|paid)$"),
    station_id: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
) -> CommissionListFilters:
    return CommissionListFilters(
        period=period,
        status=status,
        station_id=station_id,
        page=page,
        page_size=page_size,
    )


@router.get("")
def commissions_list(
    filters: CommissionListFilters = Depends(get_commission_list_filters),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: CommissionService = Depends(get_commission_service),
) -> ResponseEnvelope[List[CommissionRecord]]:
    data, total_count = service.list_commissions(caller, filters)
    return ResponseEnvelope(
        data=data,
        pagination=build_pagination(page=filters.page, page_size=filters.page_size, total_items=total_count),
        meta=_build_meta(source="station_commissions", time_window=filters.period or "all"),
    )


@router.post("/calculate")
def commissions_calculate(
    request: CommissionCalculationRequest,
    caller: CallerIdentity = Depends(get_caller_identity),
    service: CommissionService = Depends(get_commission_service),
) -> ResponseEnvelope[CommissionCalculationResult]:
    result = service.calculate_commissions(caller, request.period, request.station_ids)
    data_status = "partial" if result.failed else "live"
    return ResponseEnvelope(
        data=result,
        pagination=None,
        meta=_build_meta(source="daily_tank_stocks,station_commissions", time_window=result.period, data_status=data_status),
    )


@router.get("/progressive")
def commissions_progressive(
    period: str = Query(...),
    station_id: Optional[str] = Query(default=None),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: CommissionService = Depends(get_commission_service),
) -> ResponseEnvelope[List[ProgressiveDayPoint]]:
    data = service.get_progressive_commissions(caller, period, station_id=station_id)
    return ResponseEnvelope(
        data=data,
        pagination=None,
        meta=_build_meta(source="daily_tank_stocks", time_window=period),
    )


@router.get("/stats")
def commissions_stats(
    period: Optional[str] = Query(default=None),
    station_id: Optional[str] = Query(default=None),
    caller: CallerIdentity = Depends(get_caller_identity),
    service: CommissionService = Depends(get_commission_service),
) -> ResponseEnvelope[CommissionStats]:
    data = service.get_commission_stats(caller, period=period, station_id=station_id)
    source = STATS_META_SOURCES.get(data.source, "daily_tank_stocks")
    return ResponseEnvelope(
        data=data,
        pagination=None,
        meta=_build_meta(source=source, time_window=data.period, is_estimate=True),
    )
