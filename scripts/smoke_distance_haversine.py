#!/usr/bin/env python3
"""
Smoke test: great-circle distance helper.

Checks:
- coincident points are 0 miles apart
- one degree of latitude is about 69 miles
- distance is symmetric
- known city pair and antipodal points match the 3959 mi Earth radius

Run:
  python3 scripts/smoke_distance_haversine.py
"""

from __future__ import annotations

import math
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


def _run_checks() -> None:
    from directory.geo import EARTH_RADIUS_MILES, haversine_miles  # noqa: WPS433

    _assert(haversine_miles(30.2672, -97.7431, 30.2672, -97.7431) == 0.0, "coincident points must be 0 apart")

    one_degree = haversine_miles(30.0, -97.0, 31.0, -97.0)
    _assert(abs(one_degree - 69.0) <= 0.5, f"1 degree of latitude should be ~69 mi: {one_degree}")

    pairs = [
        ((30.2672, -97.7431), (32.7767, -96.7970)),
        ((40.7128, -74.0060), (34.0522, -118.2437)),
        ((-33.8688, 151.2093), (51.5074, -0.1278)),
        ((0.0, 179.9), (0.0, -179.9)),
    ]
    for a, b in pairs:
        forward = haversine_miles(a[0], a[1], b[0], b[1])
        backward = haversine_miles(b[0], b[1], a[0], a[1])
        _assert(forward == backward, f"distance must be symmetric: {a} {b} -> {forward} vs {backward}")

    austin_dallas = haversine_miles(30.2672, -97.7431, 32.7767, -96.7970)
    _assert(170 <= austin_dallas <= 195, f"Austin-Dallas distance unexpected: {austin_dallas}")

    antipodal = haversine_miles(0.0, 0.0, 0.0, 180.0)
    _assert(math.isclose(antipodal, math.pi * EARTH_RADIUS_MILES, rel_tol=1e-9), f"antipodal distance: {antipodal}")

    dateline = haversine_miles(0.0, 179.9, 0.0, -179.9)
    _assert(dateline < 15, f"points across the date line are close: {dateline}")


def main() -> None:
    sys.path.insert(0, str(REPO_ROOT / "src"))
    _run_checks()
    print("OK: haversine distance smoke test passed.")


if __name__ == "__main__":
    main()
