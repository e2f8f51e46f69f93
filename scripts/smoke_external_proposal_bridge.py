#!/usr/bin/env python3
"""
Smoke test: external proposals and invitation codes.

Checks:
- phone-only send succeeds; send with no contact method fails and persists nothing
- codes are prefixed per shape, unique, and found case-insensitively by the matching lookup only
- connect_host binds once, moves sent -> viewed and keeps the monetary terms
- second redemption fails with AlreadyConnectedError; unknown code fails with NotFoundError
- reverse send without business email or phone fails and persists nothing
- reverse shape is bound by connect_business_owner exactly once
- expired codes are not found; declined proposals cannot be redeemed
- both parties see the proposal in their lists after redemption

Run:
  python3 scripts/smoke_external_proposal_bridge.py
"""

from __future__ import annotations

import asyncio
import json
import shutil
import sys
import tempfile
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

EVENT = {
    "event_id": "E1",
    "event_title": "Spring Market",
    "event_date": "2026-04-01",
    "event_location": "1 Main St, Austin, TX",
}


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


async def _run_checks(data_dir: Path) -> None:
    from directory.bridge import (  # noqa: WPS433
        BUSINESS_CODE_PREFIX,
        HOST_CODE_PREFIX,
        ExternalProposalBridge,
    )
    from directory.errors import (  # noqa: WPS433
        AlreadyConnectedError,
        InvalidStatusTransitionError,
        MissingContactMethodError,
        NotFoundError,
    )
    from directory.models import BusinessProposal, HostInvitation  # noqa: WPS433
    from directory.repository import DirectoryRepository  # noqa: WPS433

    bridge = ExternalProposalBridge(DirectoryRepository.json_files(data_dir))

    try:
        await bridge.send_external(
            business_owner_id="owner-1",
            business_owner_name="Ann",
            business_name="Acme",
            host_name="Hal",
            proposed_amount=150,
            host_email="  ",
            **EVENT,
        )
    except MissingContactMethodError as error:
        _assert(error.fields == ("hostEmail", "hostPhone"), f"missing contact fields: {error.fields}")
    else:
        raise AssertionError("send without any contact method must fail")
    _assert(not (data_dir / "external-proposals.json").exists(), "rejected send must not persist anything")

    outcome = await bridge.send_external(
        business_owner_id="owner-1",
        business_owner_name="Ann",
        business_name="Acme",
        host_name="Hal",
        proposed_amount=150,
        message="We would love a table.",
        contractors_needed=2,
        host_phone="+15125550199",
        **EVENT,
    )
    proposal = outcome.proposal
    _assert(isinstance(proposal, BusinessProposal), f"business shape expected: {type(proposal)}")
    _assert(proposal.status == "sent", "new external proposal starts as sent")
    _assert(proposal.invitation_code.startswith(HOST_CODE_PREFIX), f"host code prefix: {proposal.invitation_code}")
    _assert(proposal.sms_sent and not proposal.email_sent, "delivery flags follow the contact methods")
    _assert([n.channel for n in outcome.notifications] == ["sms"], f"phone only -> sms: {outcome.notifications}")
    _assert(proposal.invitation_code in outcome.notifications[0].body, "sms carries the code")
    _assert(outcome.to_record()["invitationCode"] == proposal.invitation_code, "outcome record exposes the code")

    stored = json.loads((data_dir / "external-proposals.json").read_text(encoding="utf-8"))
    _assert(stored[0]["isReverseProposal"] is False, "discriminator persisted for business shape")
    _assert("hostEmail" not in stored[0], "unset contact is absent on disk")

    found = await bridge.find_by_code(proposal.invitation_code.lower())
    _assert(found is not None and found.id == proposal.id, "code lookup must be case-insensitive")
    _assert(await bridge.find_reverse_by_code(proposal.invitation_code) is None, "shape-filtered lookup")
    _assert(await bridge.find_by_code("HOST_NOPE") is None, "unknown code -> None")

    connected = await bridge.connect_host(f"  {proposal.invitation_code} ", "host-new")
    _assert(connected.connected_host_id == "host-new", f"host bound: {connected}")
    _assert(connected.host_connected_at, "redemption timestamp set")
    _assert(connected.status == "viewed", f"connect moves sent -> viewed: {connected.status}")
    _assert(connected.proposed_amount == 150 and connected.contractors_needed == 2, "terms unchanged")
    _assert(connected.invitation_code == proposal.invitation_code, "code immutable")

    try:
        await bridge.connect_host(proposal.invitation_code, "host-other")
    except AlreadyConnectedError as error:
        _assert(error.connected_id == "host-new", f"already connected to: {error.connected_id}")
    else:
        raise AssertionError("second redemption must fail")

    try:
        await bridge.connect_host("HOST_DOESNOTEXIST", "host-x")
    except NotFoundError:
        pass
    else:
        raise AssertionError("unknown code must raise NotFoundError")

    stored_before = len(json.loads((data_dir / "external-proposals.json").read_text(encoding="utf-8")))
    try:
        await bridge.send_reverse_external(
            host_id="host-1",
            host_name="Hal",
            proposed_amount=75,
            host_email="hal@events.com",
            business_name="No Contact Co",
            business_email=" ",
            business_phone="",
            **EVENT,
        )
    except MissingContactMethodError as error:
        _assert(error.fields == ("businessEmail", "businessPhone"), f"missing contact fields: {error.fields}")
    else:
        raise AssertionError("reverse send without business contact must fail")
    stored_after = len(json.loads((data_dir / "external-proposals.json").read_text(encoding="utf-8")))
    _assert(stored_after == stored_before, "rejected reverse send must not persist anything")

    reverse = await bridge.send_reverse_external(
        host_id="host-1",
        host_name="Hal",
        proposed_amount=75,
        management_fee=12.5,
        message="Join us!",
        host_email="hal@events.com",
        business_name="Bean There",
        business_email="beans@x.com",
        business_phone="+15125550101",
        **EVENT,
    )
    invitation = reverse.proposal
    _assert(isinstance(invitation, HostInvitation), "reverse shape expected")
    _assert(invitation.invitation_code.startswith(BUSINESS_CODE_PREFIX), "business code prefix")
    _assert(invitation.invitation_code != proposal.invitation_code, "codes are unique")
    _assert(sorted(n.channel for n in reverse.notifications) == ["email", "sms"], "both channels")
    email = next(n for n in reverse.notifications if n.channel == "email")
    _assert(email.reply_to == "hal@events.com", f"reply-to host: {email.reply_to}")

    try:
        await bridge.connect_host(invitation.invitation_code, "host-x")
    except NotFoundError:
        pass
    else:
        raise AssertionError("host cannot redeem a business-bound code")

    bound = await bridge.connect_business_owner(invitation.invitation_code, "owner-new")
    _assert(bound.connected_business_owner_id == "owner-new", "business owner bound")
    _assert(bound.management_fee == 12.5 and bound.proposed_amount == 75, "reverse terms unchanged")

    try:
        await bridge.connect_business_owner(invitation.invitation_code.lower(), "owner-other")
    except AlreadyConnectedError as error:
        _assert(error.connected_id == "owner-new", f"business code already bound to: {error.connected_id}")
    else:
        raise AssertionError("second redemption of a business code must fail")
    still_bound = await bridge.get(invitation.id)
    _assert(still_bound.connected_business_owner_id == "owner-new", "failed redemption must not rebind")

    accepted = await bridge.update_status(bound.id, "accepted")
    _assert(accepted.status == "accepted", "redeemed proposal can be accepted")
    try:
        await bridge.update_status(bound.id, "declined")
    except InvalidStatusTransitionError:
        pass
    else:
        raise AssertionError("accepted is terminal")

    host_view = {p.id for p in await bridge.list_for_host("host-new")}
    _assert(host_view == {proposal.id}, f"redeeming host sees the business proposal: {host_view}")
    _assert({p.id for p in await bridge.list_for_host("host-1")} == {invitation.id}, "sender host sees its invite")
    _assert({p.id for p in await bridge.list_for_business("owner-1")} == {proposal.id}, "sender owner view")
    _assert({p.id for p in await bridge.list_for_business("owner-new")} == {invitation.id}, "redeeming owner view")

    stale = await bridge.send_reverse_external(
        host_id="host-stale",
        host_name="Sam",
        proposed_amount=40,
        business_email="stale@x.com",
        **EVENT,
    )
    await bridge.update_status(stale.proposal.id, "expired")
    _assert(await bridge.find_reverse_by_code(stale.proposal.invitation_code) is None, "expired code is not found")
    try:
        await bridge.connect_business_owner(stale.proposal.invitation_code, "owner-late")
    except NotFoundError:
        pass
    else:
        raise AssertionError("expired code must not be redeemable")

    refused = await bridge.send_external(
        business_owner_id="owner-2",
        business_owner_name="Bo",
        business_name="Bo's Bakes",
        host_name="Hal",
        proposed_amount=60,
        host_email="hal@events.com",
        **EVENT,
    )
    await bridge.update_status(refused.proposal.id, "declined")
    try:
        await bridge.connect_host(refused.proposal.invitation_code, "host-late")
    except InvalidStatusTransitionError as error:
        _assert(error.current == "declined", f"declined proposal transition: {error}")
    else:
        raise AssertionError("declined proposal must not be redeemable")
    unbound = await bridge.get(refused.proposal.id)
    _assert(unbound.connected_host_id is None, "refused redemption must not bind the host")

    codes = set()
    for idx in range(25):
        extra = await bridge.send_reverse_external(
            host_id="host-bulk",
            host_name="Bulk",
            proposed_amount=idx,
            business_phone=f"+1512555{idx:04d}",
            **EVENT,
        )
        codes.add(extra.proposal.invitation_code)
    _assert(len(codes) == 25, "bulk sends get distinct codes")

    fetched = await bridge.get(invitation.id)
    _assert(isinstance(fetched, HostInvitation) and fetched.status == "accepted", "get returns stored shape")


def main() -> None:
    tmpdir = Path(tempfile.mkdtemp(prefix="directory-smoke-bridge-"))
    try:
        sys.path.insert(0, str(REPO_ROOT / "src"))
        asyncio.run(_run_checks(tmpdir))
        print("OK: external proposal bridge smoke test passed.")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    main()
