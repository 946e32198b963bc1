from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from commission_engine.core.supabase import SupabaseClient, in_filter
from commission_engine.models.commission import CommissionLedgerRecord
from commission_engine.repositories.stock_repository import STATION_CHUNK_SIZE, chunked

LEDGER_TABLE = "station_commissions"
LEDGER_COLUMNS = (
    "id,station_id,period,total_volume,commission_rate,commission_amount,status,"
    "calculated_at,calculated_by,approved_by,approved_at,paid_by,paid_at,created_at,updated_at"
)
MAX_QUERY_ROWS = 5000


class CommissionRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def upsert_commission(self, payload: Dict[str, Any]) -> CommissionLedgerRecord:
        rows = self.client.insert(
            table=LEDGER_TABLE,
            payload=payload,
            upsert=True,
            on_conflict="station_id,period",
        )
        if not rows:
            raise ValueError("Ledger upsert returned no row")
        return CommissionLedgerRecord.model_validate(rows[0])

    def list_for_periods(
        self,
        periods: Iterable[str],
        station_ids: Iterable[str],
    ) -> List[CommissionLedgerRecord]:
        period_list = sorted(set(periods))
        if not period_list:
            return []
        records: List[CommissionLedgerRecord] = []
        for chunk in chunked(station_ids, STATION_CHUNK_SIZE):
            rows, _ = self.client.select(
                table=LEDGER_TABLE,
                select=LEDGER_COLUMNS,
                filters=[("period", in_filter(period_list)), ("station_id", in_filter(chunk))],
                order="period.asc,station_id.asc",
                limit=MAX_QUERY_ROWS,
            )
            records.extend(CommissionLedgerRecord.model_validate(row) for row in rows)
        return records

    def list_commissions(
        self,
        station_ids: Iterable[str],
        period: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[CommissionLedgerRecord], int]:
        scoped = sorted(set(station_ids))
        if not scoped:
            return [], 0
        filters: List[Tuple[str, str]] = [("station_id", in_filter(scoped))]
        if period:
            filters.append(("period", f"eq.{period}"))
        if status:
            filters.append(("status", f"eq.{status}"))
        rows, total_count = self.client.select(
            table=LEDGER_TABLE,
            select=LEDGER_COLUMNS,
            filters=filters,
            order="period.desc,station_id.asc",
            limit=limit,
            offset=max(offset, 0),
            count="exact",
        )
        estimated_total = max(offset + len(rows), len(rows))
        return [CommissionLedgerRecord.model_validate(row) for row in rows], (
            total_count if total_count is not None else estimated_total
        )
