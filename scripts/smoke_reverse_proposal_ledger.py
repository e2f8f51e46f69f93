#!/usr/bin/env python3
"""
Smoke test: host -> business reverse proposal ledger.

Checks:
- add -> send -> viewed -> accepted(new signup) end-to-end flow and business counters
- one live invitation per (business, event); dedup lifts once the first one expires
- conversion reward is applied and counted exactly once
- viewedAt is set once; terminal statuses reject further moves
- unknown business/proposal ids raise NotFoundError
- invitation notifications follow the delivery flags

Run:
  python3 scripts/smoke_reverse_proposal_ledger.py
"""

from __future__ import annotations

import asyncio
import shutil
import sys
import tempfile
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


async def _run_checks(data_dir: Path) -> None:
    from directory.errors import (  # noqa: WPS433
        DuplicateInvitationError,
        InvalidStatusTransitionError,
        NotFoundError,
    )
    from directory.repository import DirectoryRepository  # noqa: WPS433
    from directory.service import DirectoryService, ReverseProposalLedger  # noqa: WPS433

    repository = DirectoryRepository.json_files(data_dir)
    directory = DirectoryService(repository)
    ledger = ReverseProposalLedger(repository, directory, invitation_cost=1, conversion_reward=10)

    # 1) add business
    acme = await directory.add_business(
        business_name="Acme",
        owner_name="Ann",
        email="a@x.com",
        phone="+15125550100",
        business_type="Food Truck",
        description="Tacos",
        location="Austin, TX",
        added_by="host-1",
    )
    _assert(acme.invitations_sent == 0 and acme.signup_conversions == 0, "counters start at 0")

    # 2) send invitation for E1
    proposal = await ledger.send("host-1", acme.id, "E1")
    _assert(proposal.status == "sent", f"new proposal must be sent: {proposal.status}")
    _assert(proposal.invitation_cost == 1, f"default cost must be 1: {proposal.invitation_cost}")
    _assert(bool(proposal.sent_at), "sentAt must be set")
    _assert(proposal.viewed_at is None and proposal.responded_at is None, "no view/response yet")
    entry = await directory.get_business(acme.id)
    _assert(entry.invitations_sent == 1, f"invitation count must be 1: {entry.invitations_sent}")

    # 3) viewed
    viewed = await ledger.update_status(proposal.id, "viewed")
    _assert(viewed.status == "viewed" and viewed.viewed_at, f"viewedAt must be set: {viewed}")
    first_viewed_at = viewed.viewed_at

    await asyncio.sleep(0.01)
    again = await ledger.update_status(proposal.id, "VIEWED")
    _assert(again.viewed_at == first_viewed_at, "second viewed must keep the original viewedAt")

    # 4) accepted as a new signup
    accepted = await ledger.update_status(proposal.id, "accepted", is_new_signup=True)
    _assert(accepted.status == "accepted", f"status must be accepted: {accepted.status}")
    _assert(accepted.conversion_reward == 10, f"conversion reward must be 10: {accepted.conversion_reward}")
    _assert(accepted.is_new_signup is True and accepted.responded_at, "signup flag and respondedAt")
    entry = await directory.get_business(acme.id)
    _assert(entry.signup_conversions == 1, f"conversion count must be 1: {entry.signup_conversions}")

    repeat = await ledger.update_status(proposal.id, "accepted", is_new_signup=True)
    _assert(repeat.conversion_reward == 10, "reward stays fixed")
    entry = await directory.get_business(acme.id)
    _assert(entry.signup_conversions == 1, f"conversion must be counted once: {entry.signup_conversions}")

    # 5) duplicate send for (business, E1)
    try:
        await ledger.send("host-2", acme.id, "E1")
    except DuplicateInvitationError as error:
        _assert(error.existing_id == proposal.id, "duplicate must point at the live proposal")
    else:
        raise AssertionError("second send for the same (business, event) must fail")
    entry = await directory.get_business(acme.id)
    _assert(entry.invitations_sent == 1, "failed send must not bump the invitation counter")

    try:
        await ledger.update_status(proposal.id, "viewed")
    except InvalidStatusTransitionError as error:
        _assert(error.current == "accepted" and error.requested == "viewed", f"transition details: {error}")
    else:
        raise AssertionError("accepted is terminal")

    # Dedup lifts after expiry.
    e2 = await ledger.send("host-1", acme.id, "E2", email_sent=True, sms_sent=False)
    try:
        await ledger.send("host-1", acme.id, "E2")
    except DuplicateInvitationError:
        pass
    else:
        raise AssertionError("live E2 invitation must block a second one")
    expired = await ledger.update_status(e2.id, "expired")
    _assert(expired.status == "expired" and expired.responded_at, "expired records respondedAt")
    e2_again = await ledger.send("host-1", acme.id, "E2", cost_per_invitation=2)
    _assert(e2_again.id != e2.id and e2_again.invitation_cost == 2, "send after expiry must succeed")

    # sent -> declined skips viewed
    declined = await ledger.update_status(e2_again.id, "declined")
    _assert(declined.viewed_at is None and declined.responded_at, "declined from sent")

    entry = await directory.get_business(acme.id)
    _assert(entry.invitations_sent == 3, f"three successful sends: {entry.invitations_sent}")

    host_list = await ledger.list_for_host("host-1")
    _assert({p.id for p in host_list} == {proposal.id, e2.id, e2_again.id}, f"list_for_host: {host_list}")
    _assert(len(await ledger.list_for_business(acme.id)) == 3, "list_for_business must return 3")
    _assert(await ledger.list_for_host("nobody") == [], "unknown host -> empty list")

    notes = await ledger.build_invitation_notifications(
        e2.id,
        host_name="Hal Host",
        event_title="Spring Market",
        event_date="2026-04-01",
        event_location="1 Main St, Austin, TX",
    )
    _assert([n.channel for n in notes] == ["email"], f"sms flag off -> email only: {notes}")
    _assert(notes[0].recipient == "a@x.com", "email goes to the business")
    _assert("Spring Market" in notes[0].body, "email mentions the event")

    try:
        await ledger.send("host-1", "missing-business", "E9")
    except NotFoundError:
        pass
    else:
        raise AssertionError("sending to an unknown business must fail")

    try:
        await ledger.update_status("missing-proposal", "viewed")
    except NotFoundError:
        pass
    else:
        raise AssertionError("unknown proposal must raise NotFoundError")

    try:
        await ledger.update_status(proposal.id, "archived")
    except ValueError:
        pass
    else:
        raise AssertionError("unknown status must be rejected")


def main() -> None:
    tmpdir = Path(tempfile.mkdtemp(prefix="directory-smoke-ledger-"))
    try:
        sys.path.insert(0, str(REPO_ROOT / "src"))
        asyncio.run(_run_checks(tmpdir))
        print("OK: reverse proposal ledger smoke test passed.")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    main()
