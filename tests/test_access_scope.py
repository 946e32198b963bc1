from __future__ import annotations

import pytest

from commission_engine.models.commission import ProfileRecord
from commission_engine.services.access_scope import CallerIdentity, ProfileAccessScope
from conftest import StubStationRepository


@pytest.fixture()
def directory() -> StubStationRepository:
    repository = StubStationRepository()
    repository.add_station("S1", omc_id="OMC-1", dealer_id="D1")
    repository.add_station("S2", omc_id="OMC-1", dealer_id="D2")
    repository.add_station("S3", omc_id="OMC-2", dealer_id="D3")
    return repository


@pytest.mark.parametrize(
    ("profile", "expected"),
    [
        (ProfileRecord(id="u", role="admin"), {"S1", "S2", "S3"}),
        (ProfileRecord(id="u", role="NPA"), {"S1", "S2", "S3"}),
        (ProfileRecord(id="u", role="supervisor"), {"S1", "S2", "S3"}),
        (ProfileRecord(id="u", role="omc", omc_id="OMC-1"), {"S1", "S2"}),
        (ProfileRecord(id="u", role="dealer", dealer_id="D3"), {"S3"}),
        (ProfileRecord(id="u", role="station_manager", station_id="S2"), {"S2"}),
        (ProfileRecord(id="u", role="attendant", station_id="S1"), {"S1"}),
        (ProfileRecord(id="u", role="omc"), set()),
        (ProfileRecord(id="u", role="auditor"), set()),
        (ProfileRecord(id="u", role="admin", is_active=False), set()),
    ],
)
def test_profile_roles_map_to_stations(
    directory: StubStationRepository, profile: ProfileRecord, expected: set
) -> None:
    directory.profiles["u"] = profile

    stations = ProfileAccessScope(repository=directory).resolve_stations(CallerIdentity(user_id="u"))  # type: ignore[arg-type]

    assert stations == frozenset(expected)


def test_unknown_caller_sees_nothing(directory: StubStationRepository) -> None:
    scope = ProfileAccessScope(repository=directory)  # type: ignore[arg-type]
    assert scope.resolve_stations(CallerIdentity(user_id="nobody")) == frozenset()
