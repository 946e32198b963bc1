from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel


class DailyStockRecord(BaseModel):
    id: Optional[str] = None
    station_id: str
    product_id: Optional[str] = None
    stock_date: date
    opening_stock: Optional[float] = None
    closing_stock: Optional[float] = None
    deliveries: Optional[float] = None
    sales: Optional[float] = None

    @property
    def dispensed_volume(self) -> float:
        if self.sales is not None:
            return float(self.sales)
        return (
            float(self.opening_stock or 0)
            + float(self.deliveries or 0)
            - float(self.closing_stock or 0)
        )


class StationRateRecord(BaseModel):
    id: str
    # Untrusted master data; RateResolver does all coercion.
    commission_rate: Any = None


class ProfileRecord(BaseModel):
    id: str
    role: Optional[str] = None
    omc_id: Optional[str] = None
    dealer_id: Optional[str] = None
    station_id: Optional[str] = None
    is_active: Optional[bool] = None


class CommissionLedgerRecord(BaseModel):
    id: Optional[str] = None
    station_id: str
    period: str
    total_volume: float = 0.0
    commission_rate: float = 0.0
    commission_amount: float = 0.0
    status: str = "pending"
    calculated_at: Optional[datetime] = None
    calculated_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    paid_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
