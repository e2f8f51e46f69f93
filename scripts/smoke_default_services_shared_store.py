#!/usr/bin/env python3
"""
Smoke test: services built from config share one store.

Checks:
- default-constructed services resolve the same repository for the same DATA_DIR
- concurrent adds and sends through separately constructed services lose no writes
- invitation counters match the number of successful sends

Run:
  python3 scripts/smoke_default_services_shared_store.py
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


async def _run_checks() -> None:
    from directory.bridge import ExternalProposalBridge  # noqa: WPS433
    from directory.service import DirectoryService, ReverseProposalLedger  # noqa: WPS433

    directory = DirectoryService()
    ledger = ReverseProposalLedger(invitation_cost=1, conversion_reward=10)
    bridge = ExternalProposalBridge()
    _assert(directory.repository is ledger.repository, "default services must share the repository")
    _assert(bridge.repository is directory.repository, "bridge must share the repository")

    target = await directory.add_business(
        business_name="Target",
        owner_name="Tia",
        email="target@x.com",
        phone="+15125550100",
        business_type="Retail",
        description="",
        location="Austin, TX",
        added_by="host-1",
    )

    adds = [
        directory.add_business(
            business_name=f"Shop {idx}",
            owner_name="Owner",
            email=f"shop{idx}@x.com",
            phone="",
            business_type="Retail",
            description="",
            location="Austin, TX",
            added_by="host-1",
        )
        for idx in range(10)
    ]
    sends = [ledger.send("host-1", target.id, f"E{idx}") for idx in range(10)]
    await asyncio.gather(*adds, *sends)

    entries = await directory.list_businesses()
    _assert(len(entries) == 11, f"concurrent adds lost: {len(entries)} entries, expected 11")
    refreshed = await directory.get_business(target.id)
    _assert(refreshed.invitations_sent == 10, f"invitation counter lost updates: {refreshed.invitations_sent}")
    _assert(len(await ledger.list_for_business(target.id)) == 10, "every send must be stored")


def main() -> None:
    tmpdir = Path(tempfile.mkdtemp(prefix="directory-smoke-shared-"))
    try:
        sys.path.insert(0, str(REPO_ROOT / "src"))
        from config import CFG, STORAGE_BACKEND_JSON  # noqa: WPS433

        saved = (CFG.data_dir, CFG.storage_backend)
        CFG.data_dir = tmpdir
        CFG.storage_backend = STORAGE_BACKEND_JSON
        try:
            asyncio.run(_run_checks())
        finally:
            CFG.data_dir, CFG.storage_backend = saved
        print("OK: shared default store smoke test passed.")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    main()
