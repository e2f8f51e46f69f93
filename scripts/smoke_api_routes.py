#!/usr/bin/env python3
"""
Smoke test: directory HTTP API routes.

Checks:
- health is public; other routes require the API key when one is configured
- directory add/list/search/nearby, with 409 on duplicates and 400 on bad input
- reverse proposal send/status/list/notifications with conversion counters
- external proposal send, code lookup, connect (409 on reuse, 404 on unknown code)

Run:
  python3 scripts/smoke_api_routes.py
"""

from __future__ import annotations

import asyncio
import shutil
import sys
import tempfile
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

API_KEY = "smoke-key"
HEADERS = {"X-API-Key": API_KEY}


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


async def _call(client, method: str, path: str, *, expected: int, **kwargs) -> dict:
    kwargs.setdefault("headers", HEADERS)
    resp = await client.request(method, path, **kwargs)
    body = await resp.json()
    _assert(resp.status == expected, f"{method} {path}: expected {expected}, got {resp.status} {body}")
    return body


async def _run_checks(data_dir: Path) -> None:
    from aiohttp.test_utils import TestClient, TestServer  # noqa: WPS433

    from api_server import create_api_app  # noqa: WPS433
    from directory.repository import DirectoryRepository  # noqa: WPS433

    app = create_api_app(
        DirectoryRepository.json_files(data_dir),
        api_key=API_KEY,
        invitation_cost=1,
        conversion_reward=10,
    )

    async with TestClient(TestServer(app)) as client:
        health = await _call(client, "GET", "/api/v1/health", expected=200, headers={})
        _assert(health["status"] == "ok", f"health: {health}")

        denied = await _call(client, "GET", "/api/v1/directory", expected=401, headers={})
        _assert(denied["status"] == "error", f"missing key must be rejected: {denied}")
        await _call(client, "GET", "/api/v1/directory", expected=200, headers={"Authorization": f"Bearer {API_KEY}"})

        business = {
            "businessName": "Acme",
            "ownerName": "Ann",
            "email": "a@x.com",
            "phone": "+15125550100",
            "businessType": "Food Truck",
            "description": "Tacos",
            "location": "Austin, TX",
            "addedBy": "host-1",
            "latitude": 30.2672,
            "longitude": -97.7431,
        }
        created = await _call(client, "POST", "/api/v1/directory", json=business, expected=201)
        business_id = created["business"]["id"]
        _assert(created["business"]["invitationsSent"] == 0, f"new business counters: {created}")

        dup = await _call(client, "POST", "/api/v1/directory", json={**business, "location": "Dallas"}, expected=409)
        _assert("already exists" in dup["message"], f"duplicate message: {dup}")
        await _call(client, "POST", "/api/v1/directory", json={"businessName": "x"}, expected=400)
        await _call(client, "POST", "/api/v1/directory", data="not json", expected=400)

        search = await _call(client, "GET", "/api/v1/directory/search?query=taco&location=austin", expected=200)
        _assert([b["id"] for b in search["businesses"]] == [business_id], f"search: {search}")

        nearby = await _call(
            client,
            "GET",
            "/api/v1/directory/nearby?lat=30.3&lon=-97.7&max_distance=25",
            expected=200,
        )
        _assert(nearby["businesses"][0]["distanceMiles"] < 25, f"nearby: {nearby}")
        await _call(client, "GET", "/api/v1/directory/nearby?lat=30.3", expected=400)
        await _call(client, "GET", "/api/v1/directory/nearby?lat=abc&lon=1&max_distance=5", expected=400)
        await _call(client, "GET", "/api/v1/directory/nearby?lat=30.3&lon=-97.7&max_distance=nan", expected=400)
        await _call(
            client,
            "GET",
            "/api/v1/directory/search?lat=30.3&lon=-97.7&max_distance=nan",
            expected=400,
        )

        sent = await _call(
            client,
            "POST",
            "/api/v1/reverse-proposals",
            json={"hostId": "host-1", "businessId": business_id, "eventId": "E1"},
            expected=201,
        )
        proposal_id = sent["proposal"]["id"]
        _assert(sent["proposal"]["status"] == "sent", f"sent: {sent}")
        await _call(
            client,
            "POST",
            "/api/v1/reverse-proposals",
            json={"hostId": "host-1", "businessId": business_id, "eventId": "E1"},
            expected=409,
        )
        await _call(
            client,
            "POST",
            "/api/v1/reverse-proposals",
            json={"hostId": "host-1", "businessId": "missing", "eventId": "E1"},
            expected=404,
        )

        viewed = await _call(
            client,
            "POST",
            f"/api/v1/reverse-proposals/{proposal_id}/status",
            json={"status": "viewed"},
            expected=200,
        )
        _assert(viewed["proposal"]["viewedAt"], f"viewedAt: {viewed}")
        accepted = await _call(
            client,
            "POST",
            f"/api/v1/reverse-proposals/{proposal_id}/status",
            json={"status": "accepted", "isNewSignup": True},
            expected=200,
        )
        _assert(accepted["proposal"]["conversionReward"] == 10, f"reward: {accepted}")
        await _call(
            client,
            "POST",
            f"/api/v1/reverse-proposals/{proposal_id}/status",
            json={"status": "sent"},
            expected=400,
        )

        listing = await _call(client, "GET", "/api/v1/directory", expected=200)
        acme = listing["businesses"][0]
        _assert(acme["invitationsSent"] == 1 and acme["signupConversions"] == 1, f"counters: {acme}")

        by_host = await _call(client, "GET", "/api/v1/reverse-proposals?host_id=host-1", expected=200)
        _assert(len(by_host["proposals"]) == 1, f"list by host: {by_host}")
        await _call(client, "GET", "/api/v1/reverse-proposals", expected=400)

        notes = await _call(
            client,
            "POST",
            f"/api/v1/reverse-proposals/{proposal_id}/notifications",
            json={
                "hostName": "Hal",
                "eventTitle": "Spring Market",
                "eventDate": "2026-04-01",
                "eventLocation": "Austin, TX",
            },
            expected=200,
        )
        _assert(sorted(n["channel"] for n in notes["notifications"]) == ["email", "sms"], f"notes: {notes}")

        external = {
            "businessOwnerId": "owner-1",
            "businessOwnerName": "Ann",
            "businessName": "Acme",
            "eventId": "E1",
            "eventTitle": "Spring Market",
            "eventDate": "2026-04-01",
            "eventLocation": "1 Main St, Austin, TX",
            "hostName": "Hal",
            "proposedAmount": 150,
        }
        await _call(client, "POST", "/api/v1/external-proposals", json=external, expected=400)
        await _call(
            client,
            "POST",
            "/api/v1/external-proposals",
            json={**external, "hostPhone": "+1512", "proposedAmount": "lots"},
            expected=400,
        )
        out = await _call(
            client,
            "POST",
            "/api/v1/external-proposals",
            json={**external, "hostPhone": "+15125550199"},
            expected=201,
        )
        code = out["invitationCode"]
        _assert(out["proposal"]["isReverseProposal"] is False, f"discriminator: {out}")

        lookup = await _call(client, "GET", f"/api/v1/external-proposals/code/{code}", expected=200)
        _assert(lookup["found"] is True and lookup["proposal"]["id"] == out["proposal"]["id"], f"lookup: {lookup}")
        miss = await _call(client, "GET", f"/api/v1/external-proposals/reverse/code/{code}", expected=200)
        _assert(miss["found"] is False, f"reverse lookup must not match a business proposal: {miss}")

        connected = await _call(
            client,
            "POST",
            "/api/v1/external-proposals/connect-host",
            json={"invitationCode": code, "hostId": "host-new"},
            expected=200,
        )
        _assert(connected["proposal"]["connectedHostId"] == "host-new", f"connect: {connected}")
        _assert(connected["proposal"]["status"] == "viewed", f"connect status: {connected}")
        await _call(
            client,
            "POST",
            "/api/v1/external-proposals/connect-host",
            json={"invitationCode": code, "hostId": "host-other"},
            expected=409,
        )
        await _call(
            client,
            "POST",
            "/api/v1/external-proposals/connect-host",
            json={"invitationCode": "HOST_UNKNOWN", "hostId": "host-x"},
            expected=404,
        )

        reverse = await _call(
            client,
            "POST",
            "/api/v1/external-proposals/reverse",
            json={
                "hostId": "host-1",
                "hostName": "Hal",
                "eventId": "E1",
                "eventTitle": "Spring Market",
                "eventDate": "2026-04-01",
                "eventLocation": "Austin, TX",
                "proposedAmount": 75,
                "managementFee": 12.5,
                "businessEmail": "beans@x.com",
            },
            expected=201,
        )
        bound = await _call(
            client,
            "POST",
            "/api/v1/external-proposals/connect-business",
            json={"invitationCode": reverse["invitationCode"], "businessOwnerId": "owner-new"},
            expected=200,
        )
        _assert(bound["proposal"]["managementFee"] == 12.5, f"terms unchanged: {bound}")
        await _call(
            client,
            "POST",
            "/api/v1/external-proposals/connect-business",
            json={"invitationCode": reverse["invitationCode"], "businessOwnerId": "owner-other"},
            expected=409,
        )

        status = await _call(
            client,
            "POST",
            f"/api/v1/external-proposals/{bound['proposal']['id']}/status",
            json={"status": "declined"},
            expected=200,
        )
        _assert(status["proposal"]["status"] == "declined", f"external status: {status}")

        for_host = await _call(client, "GET", "/api/v1/external-proposals?host_id=host-new", expected=200)
        _assert([p["id"] for p in for_host["proposals"]] == [out["proposal"]["id"]], f"host view: {for_host}")
        for_owner = await _call(client, "GET", "/api/v1/external-proposals?business_id=owner-new", expected=200)
        _assert(len(for_owner["proposals"]) == 1, f"owner view: {for_owner}")


def main() -> None:
    tmpdir = Path(tempfile.mkdtemp(prefix="directory-smoke-api-"))
    try:
        sys.path.insert(0, str(REPO_ROOT / "src"))
        asyncio.run(_run_checks(tmpdir))
        print("OK: directory API smoke test passed.")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    main()
