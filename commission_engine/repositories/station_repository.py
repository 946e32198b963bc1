from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from commission_engine.core.supabase import SupabaseClient, in_filter
from commission_engine.models.commission import ProfileRecord, StationRateRecord
from commission_engine.repositories.stock_repository import STATION_CHUNK_SIZE, chunked

MAX_STATIONS = 5000


class StationRepository:
    """Station master data and caller profiles, read-only."""

    def __init__(self) -> None:
        self.client = SupabaseClient()

    def get_rate(self, station_id: str) -> Any:
        return self.get_rates([station_id]).get(station_id)

    def get_rates(self, station_ids: Iterable[str]) -> Dict[str, Any]:
        rates: Dict[str, Any] = {}
        for chunk in chunked(station_ids, STATION_CHUNK_SIZE):
            rows, _ = self.client.select(
                table="stations",
                select="id,commission_rate",
                filters=[("id", in_filter(chunk))],
                limit=len(chunk),
            )
            for row in rows:
                record = StationRateRecord.model_validate(row)
                rates[record.id] = record.commission_rate
        return rates

    def list_station_ids(
        self,
        omc_id: Optional[str] = None,
        dealer_id: Optional[str] = None,
    ) -> List[str]:
        filters: List[Tuple[str, str]] = []
        if omc_id:
            filters.append(("omc_id", f"eq.{omc_id}"))
        if dealer_id:
            filters.append(("dealer_id", f"eq.{dealer_id}"))
        rows, _ = self.client.select(
            table="stations",
            select="id",
            filters=filters,
            order="id.asc",
            limit=MAX_STATIONS,
        )
        return [str(row["id"]) for row in rows if row.get("id")]

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        rows, _ = self.client.select(
            table="profiles",
            select="id,role,omc_id,dealer_id,station_id,is_active",
            filters=[("id", f"eq.{user_id}")],
            limit=1,
        )
        return ProfileRecord.model_validate(rows[0]) if rows else None
