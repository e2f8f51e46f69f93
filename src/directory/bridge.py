"""Proposals addressed to contacts that have no platform account yet.

A registered sender reaches a host or business by email/phone only. The proposal
carries a single-use invitation code; when the recipient signs up with that code the
new account is bound to the proposal without touching its terms.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Any

from directory.notifications import (
    Notification,
    business_proposal_notifications,
    host_invitation_notifications,
)
from directory.errors import (
    AlreadyConnectedError,
    InvalidStatusTransitionError,
    MissingContactMethodError,
    NotFoundError,
)
from directory.models import (
    STATUS_EXPIRED,
    STATUS_SENT,
    STATUS_VIEWED,
    BusinessProposal,
    ExternalProposal,
    HostInvitation,
    external_proposal_from_record,
    is_transition_allowed,
    normalize_status,
)
from directory.repository import DirectoryRepository, get_repository
from directory.service import new_record_id
from directory.storage import Record, utc_now_iso

logger = logging.getLogger(__name__)

INVITATION_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITATION_CODE_LENGTH = 12
INVITATION_CODE_GENERATION_ATTEMPTS = 12
HOST_CODE_PREFIX = "HOST_"
BUSINESS_CODE_PREFIX = "BUSINESS_"


@dataclass(frozen=True)
class SendOutcome:
    proposal: ExternalProposal
    notifications: tuple[Notification, ...]

    def to_record(self) -> dict[str, Any]:
        return {
            "proposal": self.proposal.to_record(),
            "invitationCode": self.proposal.invitation_code,
            "notifications": [n.to_record() for n in self.notifications],
        }


def normalize_code(code: str) -> str:
    return str(code or "").strip().upper()


def _clean_contact(value: str | None) -> str | None:
    cleaned = str(value).strip() if value is not None else ""
    return cleaned or None


def _check_amount(name: str, value: int | float) -> None:
    if value < 0:
        raise ValueError(f"{name} must be >= 0")


class ExternalProposalBridge:
    """Send, look up, redeem and track external proposals."""

    def __init__(self, repository: DirectoryRepository | None = None) -> None:
        self.repository = repository or get_repository()

    def _generate_unique_code(self, prefix: str, records: list[Record]) -> str:
        taken = {normalize_code(r.get("invitationCode", "")) for r in records}
        for _ in range(INVITATION_CODE_GENERATION_ATTEMPTS):
            candidate = prefix + "".join(
                secrets.choice(INVITATION_CODE_ALPHABET) for _ in range(INVITATION_CODE_LENGTH)
            )
            if candidate not in taken:
                return candidate
        raise RuntimeError("Failed to generate a unique invitation code")

    async def _create(self, proposal: ExternalProposal, prefix: str) -> ExternalProposal:
        async with self.repository.external_proposals.transaction() as records:
            proposal.invitation_code = self._generate_unique_code(prefix, records)
            records.append(proposal.to_record())
        return proposal

    async def send_external(
        self,
        *,
        business_owner_id: str,
        business_owner_name: str,
        business_name: str,
        event_id: str,
        event_title: str,
        event_date: str,
        event_location: str,
        host_name: str,
        proposed_amount: int | float,
        message: str = "",
        contractors_needed: int | None = None,
        business_owner_contact_email: str | None = None,
        host_email: str | None = None,
        host_phone: str | None = None,
    ) -> SendOutcome:
        """Business owner proposes to a host that is not on the platform yet."""
        host_email = _clean_contact(host_email)
        host_phone = _clean_contact(host_phone)
        if not host_email and not host_phone:
            raise MissingContactMethodError(("hostEmail", "hostPhone"))
        _check_amount("proposed_amount", proposed_amount)

        proposal = BusinessProposal(
            id=new_record_id("proposal_"),
            event_id=event_id,
            event_title=event_title,
            event_date=event_date,
            event_location=event_location,
            message=message,
            proposed_amount=proposed_amount,
            invitation_code="",
            status=STATUS_SENT,
            created_at=utc_now_iso(),
            email_sent=bool(host_email),
            sms_sent=bool(host_phone),
            business_owner_id=str(business_owner_id),
            business_owner_name=business_owner_name,
            business_name=business_name,
            host_name=host_name,
            business_owner_contact_email=_clean_contact(business_owner_contact_email),
            host_email=host_email,
            host_phone=host_phone,
            contractors_needed=contractors_needed,
        )
        await self._create(proposal, HOST_CODE_PREFIX)
        logger.info("External proposal %s sent by business owner %s", proposal.id, business_owner_id)
        return SendOutcome(proposal, tuple(business_proposal_notifications(proposal)))

    async def send_reverse_external(
        self,
        *,
        host_id: str,
        host_name: str,
        event_id: str,
        event_title: str,
        event_date: str,
        event_location: str,
        proposed_amount: int | float,
        management_fee: int | float = 0,
        message: str = "",
        host_email: str | None = None,
        host_phone: str | None = None,
        business_name: str | None = None,
        business_email: str | None = None,
        business_phone: str | None = None,
    ) -> SendOutcome:
        """Host invites a business that is not on the platform yet."""
        business_email = _clean_contact(business_email)
        business_phone = _clean_contact(business_phone)
        if not business_email and not business_phone:
            raise MissingContactMethodError(("businessEmail", "businessPhone"))
        _check_amount("proposed_amount", proposed_amount)
        _check_amount("management_fee", management_fee)

        proposal = HostInvitation(
            id=new_record_id("proposal_"),
            event_id=event_id,
            event_title=event_title,
            event_date=event_date,
            event_location=event_location,
            message=message,
            proposed_amount=proposed_amount,
            invitation_code="",
            status=STATUS_SENT,
            created_at=utc_now_iso(),
            email_sent=bool(business_email),
            sms_sent=bool(business_phone),
            host_id=str(host_id),
            host_name=host_name,
            management_fee=management_fee,
            host_email=_clean_contact(host_email),
            host_phone=_clean_contact(host_phone),
            business_name=_clean_contact(business_name),
            business_email=business_email,
            business_phone=business_phone,
        )
        await self._create(proposal, BUSINESS_CODE_PREFIX)
        logger.info("Reverse external proposal %s sent by host %s", proposal.id, host_id)
        return SendOutcome(proposal, tuple(host_invitation_notifications(proposal)))

    async def _proposals(self) -> list[ExternalProposal]:
        records = await self.repository.external_proposals.read()
        return [external_proposal_from_record(r) for r in records]

    async def _find(self, code: str, shape: type) -> ExternalProposal | None:
        wanted = normalize_code(code)
        if not wanted:
            return None
        for proposal in await self._proposals():
            if isinstance(proposal, shape) and proposal.invitation_code == wanted:
                return None if proposal.status == STATUS_EXPIRED else proposal
        return None

    async def find_by_code(self, code: str) -> BusinessProposal | None:
        return await self._find(code, BusinessProposal)

    async def find_reverse_by_code(self, code: str) -> HostInvitation | None:
        return await self._find(code, HostInvitation)

    async def get(self, proposal_id: str) -> ExternalProposal:
        for proposal in await self._proposals():
            if proposal.id == proposal_id:
                return proposal
        raise NotFoundError("External proposal", proposal_id)

    async def _connect(self, code: str, shape: type, account_id: str) -> ExternalProposal:
        wanted = normalize_code(code)
        async with self.repository.external_proposals.transaction() as records:
            for idx, record in enumerate(records):
                proposal = external_proposal_from_record(record)
                if isinstance(proposal, shape) and wanted and proposal.invitation_code == wanted:
                    break
            else:
                raise NotFoundError("Invitation code", code)
            # Expired codes read as unknown.
            if proposal.status == STATUS_EXPIRED:
                raise NotFoundError("Invitation code", code)

            if proposal.connected_id:
                logger.warning("Invitation code for proposal %s already redeemed", proposal.id)
                raise AlreadyConnectedError(wanted, proposal.id, proposal.connected_id)
            if not is_transition_allowed(proposal.status, STATUS_VIEWED):
                raise InvalidStatusTransitionError(proposal.id, proposal.status, STATUS_VIEWED)

            now = utc_now_iso()
            if isinstance(proposal, BusinessProposal):
                proposal.connected_host_id = str(account_id)
                proposal.host_connected_at = now
            else:
                proposal.connected_business_owner_id = str(account_id)
                proposal.business_owner_connected_at = now
            if proposal.status == STATUS_SENT:
                proposal.status = STATUS_VIEWED
            records[idx] = {**record, **proposal.to_record()}

        logger.info("External proposal %s connected to account %s", proposal.id, account_id)
        return proposal

    async def connect_host(self, code: str, host_id: str) -> BusinessProposal:
        """Bind a newly registered host to the business proposal carrying ``code``."""
        return await self._connect(code, BusinessProposal, host_id)

    async def connect_business_owner(self, code: str, business_owner_id: str) -> HostInvitation:
        """Bind a newly registered business owner to the host invitation carrying ``code``."""
        return await self._connect(code, HostInvitation, business_owner_id)

    async def update_status(self, proposal_id: str, status: str) -> ExternalProposal:
        new_status = normalize_status(status)
        async with self.repository.external_proposals.transaction() as records:
            for idx, record in enumerate(records):
                if record.get("id") == proposal_id:
                    break
            else:
                raise NotFoundError("External proposal", proposal_id)

            proposal = external_proposal_from_record(record)
            if not is_transition_allowed(proposal.status, new_status):
                raise InvalidStatusTransitionError(proposal_id, proposal.status, new_status)
            if new_status != proposal.status:
                proposal.status = new_status
                records[idx] = {**record, **proposal.to_record()}

        logger.info("External proposal %s status=%s", proposal_id, proposal.status)
        return proposal

    async def list_for_host(self, host_id: str) -> list[ExternalProposal]:
        """Host-side view: invitations the host sent plus business proposals the host redeemed."""
        result: list[ExternalProposal] = []
        for proposal in await self._proposals():
            if isinstance(proposal, HostInvitation) and proposal.host_id == host_id:
                result.append(proposal)
            elif isinstance(proposal, BusinessProposal) and proposal.connected_host_id == host_id:
                result.append(proposal)
        return result

    async def list_for_business(self, business_owner_id: str) -> list[ExternalProposal]:
        """Business-side view: proposals the owner sent plus host invitations the owner redeemed."""
        result: list[ExternalProposal] = []
        for proposal in await self._proposals():
            if isinstance(proposal, BusinessProposal) and proposal.business_owner_id == business_owner_id:
                result.append(proposal)
            elif isinstance(proposal, HostInvitation) and proposal.connected_business_owner_id == business_owner_id:
                result.append(proposal)
        return result
