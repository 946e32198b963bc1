from __future__ import annotations

import argparse
import json
import os
from datetime import date
from typing import List, Optional
from urllib import error, request


def load_env_file(env_path: str) -> None:
    if not os.path.exists(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as env_file:
        for line in env_file:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key, value)


def call_calculate(
    api_url: str,
    user_id: str,
    period: str,
    station_ids: Optional[List[str]],
) -> dict:
    endpoint = f"{api_url.rstrip('/')}/commissions/calculate"
    body: dict = {"period": period}
    if station_ids:
        body["stationIds"] = station_ids
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "X-User-Id": user_id,
    }
    req = request.Request(endpoint, method="POST", data=json.dumps(body).encode("utf-8"), headers=headers)
    try:
        with request.urlopen(req, timeout=600) as response:
            payload = response.read().decode("utf-8")
    except error.HTTPError as exc:
        details = exc.read().decode("utf-8")
        raise RuntimeError(f"Commission calculation failed: HTTP {exc.code} {details}") from exc
    return json.loads(payload) if payload else {}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Trigger commission calculation for a period (defaults to the current month)."
    )
    parser.add_argument("--period", default=date.today().strftime("%Y-%m"), help="Period as YYYY-MM.")
    parser.add_argument(
        "--station-id",
        action="append",
        dest="station_ids",
        help="Limit the run to a station; repeat for several. Large networks should be run in chunks.",
    )
    parser.add_argument(
        "--env-file",
        default=os.path.join(os.path.dirname(__file__), "..", ".env"),
        help="Path to .env file.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    load_env_file(os.path.abspath(args.env_file))

    api_url = os.environ.get("COMMISSION_API_URL", "http://localhost:8000/api/v1")
    user_id = os.environ.get("COMMISSION_RUN_USER_ID")
    if not user_id:
        raise RuntimeError("COMMISSION_RUN_USER_ID must be set in .env")

    result = call_calculate(api_url, user_id, args.period, args.station_ids)
    data = result.get("data") or {}
    print(json.dumps(data, indent=2, default=str))
    if data.get("failed"):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
