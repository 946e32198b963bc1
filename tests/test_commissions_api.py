from __future__ import annotations

from datetime import date

import httpx

HEADERS = {"X-User-Id": "admin-1"}


def _seed(stock_repository, station_repository) -> None:
    station_repository.add_station("S1", rate=0.05)
    station_repository.add_station("S2", rate=0.05)
    for day, sales in ((3, 100), (4, 150), (5, 200)):
        stock_repository.add("S1", date(2024, 6, day), sales=sales)


def test_calculate_returns_camel_case_envelope(client, stock_repository, station_repository):
    _seed(stock_repository, station_repository)

    response = client.post("/api/v1/commissions/calculate", json={"period": "2024-06"}, headers=HEADERS)

    assert response.status_code == 200
    payload = response.json()
    data = payload["data"]
    assert data["period"] == "2024-06"
    assert data["failed"] == []
    assert data["skippedStationIds"] == ["S2"]
    record = data["completed"][0]
    assert record["stationId"] == "S1"
    assert record["totalVolume"] == 450
    assert record["commissionAmount"] == 22.5
    assert record["status"] == "pending"
    assert payload["meta"]["dataStatus"] == "live"
    assert payload["meta"]["calculationVersion"] == "v1"


def test_calculate_reports_partial_batches(client, stock_repository, station_repository, commission_repository):
    _seed(stock_repository, station_repository)
    stock_repository.add("S2", date(2024, 6, 1), sales=10)
    commission_repository.fail_station_ids = {"S2"}

    response = client.post(
        "/api/v1/commissions/calculate",
        json={"period": "2024-06", "stationIds": ["S1", "S2"]},
        headers=HEADERS,
    )

    assert response.status_code == 200
    payload = response.json()
    assert [item["stationId"] for item in payload["data"]["completed"]] == ["S1"]
    assert payload["data"]["failed"][0]["stationId"] == "S2"
    assert payload["meta"]["dataStatus"] == "partial"


def test_missing_caller_is_unauthorized(client):
    response = client.post("/api/v1/commissions/calculate", json={"period": "2024-06"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthorized"


def test_bad_period_is_invalid_period(client):
    response = client.post("/api/v1/commissions/calculate", json={"period": "06-2024"}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_period"


def test_future_period_is_invalid_period(client):
    response = client.get("/api/v1/commissions/stats", params={"period": "2030-01"}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_period"


def test_unknown_body_field_is_validation_error(client):
    response = client.post(
        "/api/v1/commissions/calculate",
        json={"period": "2024-06", "rate": 0.5},
        headers=HEADERS,
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_progressive_endpoint(client, stock_repository, station_repository):
    _seed(stock_repository, station_repository)

    response = client.get(
        "/api/v1/commissions/progressive",
        params={"period": "2024-06", "station_id": "S1"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    points = response.json()["data"]
    assert [point["cumulativeCommission"] for point in points] == [5.0, 12.5, 22.5]
    assert points[0]["date"] == "2024-06-03"
    assert "isToday" in points[0]


def test_stats_endpoint_defaults_to_current_month(client, stock_repository, station_repository):
    station_repository.add_station("S1", rate=0.05)
    stock_repository.add("S1", date(2024, 7, 1), sales=1000)

    response = client.get("/api/v1/commissions/stats", headers=HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["period"] == "2024-07"
    assert payload["data"]["totalCommission"] == 50.0
    assert payload["data"]["source"] == "live"
    assert payload["data"]["isEstimate"] is True
    assert payload["meta"]["source"] == "daily_tank_stocks"
    assert payload["meta"]["isEstimate"] is True


def test_list_paginates_ledger(client, station_repository, commission_repository):
    for station_id in ("S1", "S2", "S3"):
        station_repository.add_station(station_id)
        commission_repository.seed(station_id, "2024-06", commission_amount=10, commission_rate=0.05, total_volume=200)
    commission_repository.seed("S1", "2024-05", status="paid", commission_amount=5, commission_rate=0.05, total_volume=100)

    response = client.get(
        "/api/v1/commissions",
        params={"period": "2024-06", "page": 2, "page_size": 2},
        headers=HEADERS,
    )

    assert response.status_code == 200
    payload = response.json()
    assert [item["stationId"] for item in payload["data"]] == ["S3"]
    assert payload["pagination"] == {"page": 2, "pageSize": 2, "totalItems": 3, "totalPages": 2}

    paid = client.get("/api/v1/commissions", params={"status": "paid"}, headers=HEADERS).json()
    assert [(item["stationId"], item["period"]) for item in paid["data"]] == [("S1", "2024-05")]


def test_list_rejects_unknown_status(client):
    response = client.get("/api/v1/commissions", params={"status": "void"}, headers=HEADERS)

    assert response.status_code == 422


def test_upstream_read_failure_returns_error_envelope(client, stock_repository, station_repository, monkeypatch):
    _seed(stock_repository, station_repository)

    def unavailable(*args, **kwargs):
        raise httpx.ConnectError("down")

    monkeypatch.setattr(stock_repository, "query", unavailable)

    response = client.post("/api/v1/commissions/calculate", json={"period": "2024-06"}, headers=HEADERS)

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "upstream_unavailable"


def test_stats_meta_names_both_sources_when_mixed(client, stock_repository, station_repository):
    _seed(stock_repository, station_repository)
    stock_repository.add("S2", date(2024, 6, 1), sales=10)
    client.post("/api/v1/commissions/calculate", json={"period": "2024-06", "stationIds": ["S1"]}, headers=HEADERS)

    payload = client.get("/api/v1/commissions/stats", params={"period": "2024-06"}, headers=HEADERS).json()

    assert payload["data"]["source"] == "mixed"
    assert payload["meta"]["source"] == "station_commissions,daily_tank_stocks"
