#!/usr/bin/env python3
"""
Smoke test: business directory dedup and search.

Checks:
- duplicate email (any case) and duplicate (name, location) are rejected
- new entries start with zero counters and keep optional fields absent on disk
- text search matches name/owner/type/description and narrows by location/zip/state/city
- distance filter includes a business at exactly the radius and excludes one just beyond it
- businesses without coordinates drop out only when a distance filter is active
- nearby search returns distance-annotated results, nearest first
- NaN, infinite or negative radius and NaN origin are rejected with ValueError

Run:
  python3 scripts/smoke_directory_search_policy.py
"""

from __future__ import annotations

import asyncio
import json
import shutil
import sys
import tempfile
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

ORIGIN = (30.2672, -97.7431)  # Austin, TX


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


async def _run_checks(data_dir: Path) -> None:
    from directory.errors import DuplicateEntryError, NotFoundError  # noqa: WPS433
    from directory.geo import haversine_miles  # noqa: WPS433
    from directory.repository import DirectoryRepository  # noqa: WPS433
    from directory.service import DirectoryService  # noqa: WPS433

    service = DirectoryService(DirectoryRepository.json_files(data_dir))

    acme = await service.add_business(
        business_name="Acme",
        owner_name="Ann Smith",
        email="a@x.com",
        phone="+15125550100",
        business_type="Food Truck",
        description="Tacos and burritos",
        location="Austin, TX",
        added_by="host-1",
    )
    _assert(acme.invitations_sent == 0 and acme.signup_conversions == 0, f"counters must start at 0: {acme}")

    try:
        await service.add_business(
            business_name="Other Name",
            owner_name="Bob",
            email="A@X.COM",
            phone="",
            business_type="Retail",
            description="",
            location="Dallas, TX",
            added_by="host-2",
        )
    except DuplicateEntryError as error:
        _assert(error.field == "email", f"email duplicate must name the field: {error.field}")
        _assert(error.existing_id == acme.id, "duplicate must point at the existing entry")
    else:
        raise AssertionError("duplicate email (different case) must be rejected")

    try:
        await service.add_business(
            business_name="ACME",
            owner_name="Someone Else",
            email="other@x.com",
            phone="",
            business_type="Retail",
            description="",
            location="austin, tx",
            added_by="host-2",
        )
    except DuplicateEntryError as error:
        _assert(error.field == "businessName+location", f"name+location duplicate field: {error.field}")
    else:
        raise AssertionError("duplicate (name, location) must be rejected")

    # Distance fixtures: half a degree and one degree north of the origin.
    near_lat = ORIGIN[0] + 0.5
    far_lat = ORIGIN[0] + 1.0
    near = await service.add_business(
        business_name="Bean There",
        owner_name="Carl",
        email="carl@beans.com",
        phone="+15125550101",
        business_type="Coffee",
        description="Espresso cart",
        location="Round Rock, TX",
        added_by="host-1",
        latitude=near_lat,
        longitude=ORIGIN[1],
        zip_code="78664",
        state="TX",
        city="Round Rock",
        website="https://beans.example",
    )
    far = await service.add_business(
        business_name="Far Coffee",
        owner_name="Dana",
        email="dana@far.com",
        phone="",
        business_type="Coffee Roaster",
        description="Roastery",
        location="Temple, TX",
        added_by="host-1",
        latitude=far_lat,
        longitude=ORIGIN[1],
        zip_code="76501",
    )

    on_disk = json.loads((data_dir / "business-directory.json").read_text(encoding="utf-8"))
    _assert(len(on_disk) == 4, f"directory file must hold 4 entries: {len(on_disk)}")
    acme_record = next(r for r in on_disk if r["id"] == acme.id)
    for key in ("website", "latitude", "longitude", "zipCode", "state", "city"):
        _assert(key not in acme_record, f"unset optional field must be absent on disk: {key}")
    for key in ("businessName", "isRevoVendMember", "addedBy", "addedAt", "invitationsSent", "signupConversions"):
        _assert(key in acme_record, f"required key missing on disk: {key}")

    everything = await service.search_by_text("")
    _assert(len(everything) == 4, f"empty query matches all: {len(everything)}")

    by_owner = await service.search_by_text("ann smith")
    _assert([e.id for e in by_owner] == [acme.id], f"owner search mismatch: {by_owner}")

    coffee = await service.search_by_text("COFFEE")
    _assert({e.id for e in coffee} == {near.id, far.id}, f"type search mismatch: {coffee}")

    by_zip = await service.search_by_text("", location="78664")
    _assert([e.id for e in by_zip] == [near.id], f"zip filter mismatch: {by_zip}")
    by_state = await service.search_by_text("coffee", location="tx")
    _assert(len(by_state) == 2, f"state filter mismatch: {by_state}")

    exact = haversine_miles(ORIGIN[0], ORIGIN[1], far_lat, ORIGIN[1])
    within = await service.search_by_text("", origin=ORIGIN, max_distance_miles=exact)
    _assert({e.id for e in within} == {near.id, far.id}, f"business at exactly the radius must be kept: {within}")
    _assert(acme.id not in {e.id for e in within}, "no coordinates -> excluded when distance filter is active")

    just_short = await service.search_by_text("", origin=ORIGIN, max_distance_miles=exact - 1e-6)
    _assert({e.id for e in just_short} == {near.id}, f"business beyond the radius must be dropped: {just_short}")

    no_radius = await service.search_by_text("", origin=ORIGIN)
    _assert(len(no_radius) == 4, "origin without radius must not filter")

    nearby = await service.search_by_distance(ORIGIN, 100)
    _assert([m.entry.id for m in nearby] == [near.id, far.id], f"nearby must sort ascending: {nearby}")
    _assert(nearby[0].distance_miles < nearby[1].distance_miles, "distances must increase")
    _assert("distanceMiles" in nearby[0].to_record(), "nearby records carry distanceMiles")

    roasters = await service.search_by_distance(ORIGIN, 100, category="roaster")
    _assert([m.entry.id for m in roasters] == [far.id], f"category filter mismatch: {roasters}")

    try:
        await service.add_business(
            business_name="Half Coordinates",
            owner_name="Eve",
            email="eve@x.com",
            phone="",
            business_type="Retail",
            description="",
            location="Waco, TX",
            added_by="host-1",
            latitude=31.5,
        )
    except ValueError:
        pass
    else:
        raise AssertionError("latitude without longitude must be rejected")

    for radius in (float("nan"), float("inf"), -1.0):
        for search in (
            service.search_by_text("", origin=ORIGIN, max_distance_miles=radius),
            service.search_by_distance(ORIGIN, radius),
        ):
            try:
                await search
            except ValueError:
                pass
            else:
                raise AssertionError(f"radius {radius} must be rejected")

    try:
        await service.search_by_distance((float("nan"), ORIGIN[1]), 10)
    except ValueError:
        pass
    else:
        raise AssertionError("NaN origin must be rejected")

    try:
        await service.get_business("missing")
    except NotFoundError as error:
        _assert(error.key == "missing", "not-found must carry the id")
    else:
        raise AssertionError("unknown business id must raise NotFoundError")

    bumped = await service.increment_invitation_count(near.id)
    _assert(bumped.invitations_sent == 1, f"invitation counter increment: {bumped}")
    reloaded = await service.get_business(near.id)
    _assert(reloaded.invitations_sent == 1 and reloaded.website == "https://beans.example", f"reload: {reloaded}")


def main() -> None:
    tmpdir = Path(tempfile.mkdtemp(prefix="directory-smoke-search-"))
    try:
        sys.path.insert(0, str(REPO_ROOT / "src"))
        asyncio.run(_run_checks(tmpdir))
        print("OK: directory dedup/search smoke test passed.")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    main()
