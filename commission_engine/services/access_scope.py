from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Protocol

from commission_engine.repositories.station_repository import StationRepository

logger = logging.getLogger(__name__)

NETWORK_WIDE_ROLES = frozenset({"admin", "npa", "supervisor"})
SINGLE_STATION_ROLES = frozenset({"station_manager", "attendant"})


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str


class AccessScope(Protocol):
    def resolve_stations(self, caller: CallerIdentity) -> FrozenSet[str]:
        ...


class ProfileAccessScope:
    """Visible stations derived from the caller's profile role.

    Role storage and policy live in the back-office; this only maps the stored
    profile onto station ids.
    """

    def __init__(self, repository: StationRepository) -> None:
        self.repository = repository

    def resolve_stations(self, caller: CallerIdentity) -> FrozenSet[str]:
        profile = self.repository.get_profile(caller.user_id)
        if profile is None or profile.is_active is False:
            logger.info("no active profile for caller user_id=%s", caller.user_id)
            return frozenset()
        role = (profile.role or "").lower()
        if role in NETWORK_WIDE_ROLES:
            return frozenset(self.repository.list_station_ids())
        if role == "omc" and profile.omc_id:
            return frozenset(self.repository.list_station_ids(omc_id=profile.omc_id))
        if role == "dealer" and profile.dealer_id:
            return frozenset(self.repository.list_station_ids(dealer_id=profile.dealer_id))
        if role in SINGLE_STATION_ROLES and profile.station_id:
            return frozenset({profile.station_id})
        return frozenset()
