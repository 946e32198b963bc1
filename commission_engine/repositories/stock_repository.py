from __future__ import annotations

from datetime import date
from typing import Iterable, List

from commission_engine.core.supabase import SupabaseClient, in_filter
from commission_engine.models.commission import DailyStockRecord

PAGE_SIZE = 1000
STATION_CHUNK_SIZE = 100


def chunked(values: Iterable[str], size: int) -> List[List[str]]:
    items = sorted(set(values))
    return [items[index : index + size] for index in range(0, len(items), size)]


class StockRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def query(self, station_ids: Iterable[str], start_date: date, end_date: date) -> List[DailyStockRecord]:
        records: List[DailyStockRecord] = []
        for chunk in chunked(station_ids, STATION_CHUNK_SIZE):
            offset = 0
            while True:
                rows, _ = self.client.select(
                    table="daily_tank_stocks",
                    select="id,station_id,product_id,stock_date,opening_stock,closing_stock,deliveries,sales",
                    filters=[
                        ("station_id", in_filter(chunk)),
                        ("stock_date", f"gte.{start_date.isoformat()}"),
                        ("stock_date", f"lte.{end_date.isoformat()}"),
                    ],
                    order="stock_date.asc,station_id.asc,id.asc",
                    limit=PAGE_SIZE,
                    offset=offset,
                )
                records.extend(DailyStockRecord.model_validate(row) for row in rows)
                if len(rows) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE
        return records
