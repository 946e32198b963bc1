from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import httpx

from commission_engine.core.errors import PersistenceError
from commission_engine.models.commission import CommissionLedgerRecord
from commission_engine.repositories.commission_repository import CommissionRepository
from commission_engine.services.commission_calculator import CommissionDraft

logger = logging.getLogger(__name__)


class PeriodLedger:
    """At most one commission row per (station_id, period).

    Uniqueness lives in the ``station_commissions`` unique constraint; writes
    go through a single upsert so concurrent recalculations of the same key
    collapse into one row. The payload never names status, approval or payment
    columns: inserts take the ``pending`` column default and updates leave
    whatever a human already set.
    """

    def __init__(self, repository: CommissionRepository) -> None:
        self.repository = repository

    def upsert(self, draft: CommissionDraft) -> CommissionLedgerRecord:
        try:
            return self.repository.upsert_commission(draft.to_payload())
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:200] or str(exc)
            logger.error(
                "ledger upsert failed station_id=%s period=%s status=%s",
                draft.station_id,
                draft.period,
                exc.response.status_code,
            )
            raise PersistenceError(draft.station_id, f"Ledger write failed: {detail}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("ledger upsert failed station_id=%s period=%s", draft.station_id, draft.period)
            raise PersistenceError(draft.station_id, f"Ledger write failed: {exc}") from exc

    def list_records(self, periods: Iterable[str], station_ids: Iterable[str]) -> List[CommissionLedgerRecord]:
        stations = set(station_ids)
        if not stations:
            return []
        return self.repository.list_for_periods(periods, stations)

    def list_page(
        self,
        station_ids: Iterable[str],
        period: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[CommissionLedgerRecord], int]:
        return self.repository.list_commissions(
            station_ids,
            period=period,
            status=status,
            limit=page_size,
            offset=(page - 1) * page_size,
        )
