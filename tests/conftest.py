from __future__ import annotations

import os

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from commission_engine.api.dependencies import get_commission_service
from commission_engine.main import create_app
from commission_engine.models.commission import CommissionLedgerRecord, DailyStockRecord, ProfileRecord
from commission_engine.services.access_scope import CallerIdentity, ProfileAccessScope
from commission_engine.services.commission_service import CommissionService
from commission_engine.services.period_ledger import PeriodLedger
from commission_engine.services.stats_cache import StatsCache
from commission_engine.services.stock_aggregator import StockAggregator

TODAY = date(2024, 7, 15)
ADMIN = CallerIdentity(user_id="admin-1")


class StubStockRepository:
    def __init__(self) -> None:
        self.records: List[DailyStockRecord] = []
        self.queries: List[Tuple[Set[str], date, date]] = []

    def add(self, station_id: str, stock_date: date, sales: Optional[float] = None, **fields: Any) -> None:
        self.records.append(
            DailyStockRecord(
                id=f"stock-{len(self.records) + 1}",
                station_id=station_id,
                product_id=fields.pop("product_id", "pms"),
                stock_date=stock_date,
                sales=sales,
                **fields,
            )
        )

    def query(self, station_ids: Iterable[str], start_date: date, end_date: date) -> List[DailyStockRecord]:
        stations = set(station_ids)
        self.queries.append((stations, start_date, end_date))
        return [
            record
            for record in self.records
            if record.station_id in stations and start_date <= record.stock_date <= end_date
        ]


class StubStationRepository:
    def __init__(self) -> None:
        self.rates: Dict[str, Any] = {}
        self.stations: Dict[str, Dict[str, Optional[str]]] = {}
        self.profiles: Dict[str, ProfileRecord] = {
            ADMIN.user_id: ProfileRecord(id=ADMIN.user_id, role="admin", is_active=True),
        }

    def add_station(
        self,
        station_id: str,
        rate: Any = 0.05,
        omc_id: Optional[str] = None,
        dealer_id: Optional[str] = None,
    ) -> None:
        self.rates[station_id] = rate
        self.stations[station_id] = {"omc_id": omc_id, "dealer_id": dealer_id}

    def get_rate(self, station_id: str) -> Any:
        return self.rates.get(station_id)

    def get_rates(self, station_ids: Iterable[str]) -> Dict[str, Any]:
        return {station_id: self.rates[station_id] for station_id in station_ids if station_id in self.rates}

    def list_station_ids(self, omc_id: Optional[str] = None, dealer_id: Optional[str] = None) -> List[str]:
        return sorted(
            station_id
            for station_id, owners in self.stations.items()
            if (not omc_id or owners["omc_id"] == omc_id) and (not dealer_id or owners["dealer_id"] == dealer_id)
        )

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        return self.profiles.get(user_id)


class StubCommissionRepository:
    """Mimics a PostgREST merge-duplicates upsert on (station_id, period)."""

    def __init__(self) -> None:
        self.rows: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.fail_station_ids: Set[str] = set()
        self.upsert_calls = 0

    def upsert_commission(self, payload: Dict[str, Any]) -> CommissionLedgerRecord:
        self.upsert_calls += 1
        if payload["station_id"] in self.fail_station_ids:
            request = httpx.Request("POST", "http://localhost:54321/rest/v1/station_commissions")
            response = httpx.Response(503, text="upstream unavailable", request=request)
            raise httpx.HTTPStatusError("Service Unavailable", request=request, response=response)
        key = (payload["station_id"], payload["period"])
        now = datetime.now(timezone.utc).isoformat()
        row = self.rows.get(key)
        if row is None:
            row = {"id": f"commission-{len(self.rows) + 1}", "status": "pending", "created_at": now}
            self.rows[key] = row
        row.update(payload)
        row["updated_at"] = now
        return CommissionLedgerRecord.model_validate(row)

    def seed(self, station_id: str, period: str, **fields: Any) -> None:
        row = {
            "id": f"commission-{len(self.rows) + 1}",
            "station_id": station_id,
            "period": period,
            "status": "pending",
        }
        row.update(fields)
        self.rows[(station_id, period)] = row

    def list_for_periods(self, periods: Iterable[str], station_ids: Iterable[str]) -> List[CommissionLedgerRecord]:
        wanted_periods = set(periods)
        wanted_stations = set(station_ids)
        return [
            CommissionLedgerRecord.model_validate(row)
            for (station_id, period), row in sorted(self.rows.items())
            if period in wanted_periods and station_id in wanted_stations
        ]

    def list_commissions(
        self,
        station_ids: Iterable[str],
        period: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[CommissionLedgerRecord], int]:
        wanted = set(station_ids)
        rows = [
            row
            for row in self.rows.values()
            if row["station_id"] in wanted
            and (period is None or row["period"] == period)
            and (status is None or row["status"] == status)
        ]
        rows.sort(key=lambda row: (row["period"], row["station_id"]))
        rows.sort(key=lambda row: row["period"], reverse=True)
        page = rows[offset : offset + limit]
        return [CommissionLedgerRecord.model_validate(row) for row in page], len(rows)


@pytest.fixture()
def stock_repository() -> StubStockRepository:
    return StubStockRepository()


@pytest.fixture()
def station_repository() -> StubStationRepository:
    return StubStationRepository()


@pytest.fixture()
def commission_repository() -> StubCommissionRepository:
    return StubCommissionRepository()


@pytest.fixture()
def stats_cache() -> StatsCache:
    return StatsCache(ttl_seconds=300)


@pytest.fixture()
def service(
    stock_repository: StubStockRepository,
    station_repository: StubStationRepository,
    commission_repository: StubCommissionRepository,
    stats_cache: StatsCache,
) -> CommissionService:
    return CommissionService(
        access_scope=ProfileAccessScope(repository=station_repository),  # type: ignore[arg-type]
        station_directory=station_repository,  # type: ignore[arg-type]
        stock_aggregator=StockAggregator(repository=stock_repository),  # type: ignore[arg-type]
        ledger=PeriodLedger(repository=commission_repository),  # type: ignore[arg-type]
        stats_cache=stats_cache,
        max_workers=2,
        today=lambda: TODAY,
    )


@pytest.fixture()
def client(service: CommissionService) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_commission_service] = lambda: service
    return TestClient(app)
