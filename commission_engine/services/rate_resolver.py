from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

DEFAULT_FALLBACK_RATE = 0.05

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRate:
    rate: float
    used_fallback: bool = False
    unusually_high: bool = False


class RateResolver:
    """Turns an untrusted station commission rate into a usable fraction.

    Missing, non-numeric, zero and negative inputs fall back to the configured
    default. Rates above 1 are kept but flagged. Never raises.
    """

    def __init__(self, fallback_rate: float = DEFAULT_FALLBACK_RATE) -> None:
        self.fallback_rate = fallback_rate

    def resolve(self, raw_rate: object, station_id: Optional[str] = None) -> ResolvedRate:
        rate = self._coerce(raw_rate)
        if rate is None or rate <= 0:
            logger.warning(
                "commission rate fallback station_id=%s raw_rate=%r fallback=%s",
                station_id,
                raw_rate,
                self.fallback_rate,
            )
            return ResolvedRate(rate=self.fallback_rate, used_fallback=True)
        if rate > 1:
            logger.warning("unusually high commission rate station_id=%s rate=%s", station_id, rate)
            return ResolvedRate(rate=rate, unusually_high=True)
        return ResolvedRate(rate=rate)

    @staticmethod
    def _coerce(value: object) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float, Decimal)):
            parsed = float(value)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            try:
                parsed = float(text)
            except ValueError:
                return None
        else:
            return None
        if not math.isfinite(parsed):
            return None
        return parsed
