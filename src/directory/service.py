"""Business directory and reverse proposal ledger use-cases."""

from __future__ import annotations

import logging
import math
import secrets
import time
from typing import Any

from config import CFG
from directory import notifications
from directory.errors import (
    DuplicateEntryError,
    DuplicateInvitationError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from directory.geo import haversine_miles
from directory.models import (
    RESPONSE_STATUSES,
    STATUS_EXPIRED,
    STATUS_SENT,
    STATUS_VIEWED,
    BusinessDirectoryEntry,
    DirectoryMatch,
    ReverseProposal,
    is_transition_allowed,
    normalize_status,
)
from directory.repository import DirectoryRepository, get_repository
from directory.storage import utc_now_iso

logger = logging.getLogger(__name__)

Coordinates = tuple[float, float]


def new_record_id(prefix: str = "") -> str:
    """Millisecond timestamp id with a random suffix so fast inserts never collide."""
    return f"{prefix}{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def _fold(value: str | None) -> str:
    return str(value or "").strip().lower()


def _clean_optional(value: str | None) -> str | None:
    cleaned = str(value).strip() if value is not None else ""
    return cleaned or None


def _parse_coordinates(latitude: float | None, longitude: float | None) -> tuple[float | None, float | None]:
    if latitude is None and longitude is None:
        return None, None
    if latitude is None or longitude is None:
        raise ValueError("latitude and longitude must be given together")
    lat, lon = float(latitude), float(longitude)
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise ValueError(f"coordinates out of range: ({lat}, {lon})")
    return lat, lon


def _check_distance_args(origin: Coordinates, max_distance_miles: float) -> None:
    _parse_coordinates(origin[0], origin[1])
    if not math.isfinite(max_distance_miles) or max_distance_miles < 0:
        raise ValueError(f"max_distance_miles must be a finite number >= 0, got {max_distance_miles}")


class DirectoryService:
    """Business directory: add with dedup, text search and distance search."""

    def __init__(self, repository: DirectoryRepository | None = None) -> None:
        self.repository = repository or get_repository()

    async def _entries(self) -> list[BusinessDirectoryEntry]:
        records = await self.repository.businesses.read()
        return [BusinessDirectoryEntry.from_record(r) for r in records]

    async def add_business(
        self,
        *,
        business_name: str,
        owner_name: str,
        email: str,
        phone: str,
        business_type: str,
        description: str,
        location: str,
        added_by: str,
        website: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        zip_code: str | None = None,
        state: str | None = None,
        city: str | None = None,
        is_verified: bool = False,
        is_revovend_member: bool = False,
    ) -> BusinessDirectoryEntry:
        """Add a business unless one with the same email or (name, location) exists."""
        lat, lon = _parse_coordinates(latitude, longitude)
        email_key = _fold(email)
        name_key = (_fold(business_name), _fold(location))

        async with self.repository.businesses.transaction() as records:
            for record in records:
                existing = BusinessDirectoryEntry.from_record(record)
                if email_key and _fold(existing.email) == email_key:
                    logger.warning("Directory add rejected: duplicate email (existing=%s)", existing.id)
                    raise DuplicateEntryError("email", email, existing.id)
                if (_fold(existing.business_name), _fold(existing.location)) == name_key:
                    logger.warning("Directory add rejected: duplicate name+location (existing=%s)", existing.id)
                    raise DuplicateEntryError("businessName+location", f"{business_name} @ {location}", existing.id)

            entry = BusinessDirectoryEntry(
                id=new_record_id(),
                business_name=business_name.strip(),
                owner_name=owner_name.strip(),
                email=email.strip(),
                phone=phone.strip(),
                business_type=business_type.strip(),
                description=description.strip(),
                location=location.strip(),
                is_verified=bool(is_verified),
                is_revovend_member=bool(is_revovend_member),
                added_by=str(added_by),
                added_at=utc_now_iso(),
                invitations_sent=0,
                signup_conversions=0,
                website=_clean_optional(website),
                latitude=lat,
                longitude=lon,
                zip_code=_clean_optional(zip_code),
                state=_clean_optional(state),
                city=_clean_optional(city),
            )
            records.append(entry.to_record())

        logger.info("Business %s added to directory by host %s", entry.id, entry.added_by)
        return entry

    async def list_businesses(self) -> list[BusinessDirectoryEntry]:
        return await self._entries()

    async def get_business(self, business_id: str) -> BusinessDirectoryEntry:
        for entry in await self._entries():
            if entry.id == business_id:
                return entry
        raise NotFoundError("Business", business_id)

    async def search_by_text(
        self,
        query: str = "",
        location: str | None = None,
        origin: Coordinates | None = None,
        max_distance_miles: float | None = None,
    ) -> list[BusinessDirectoryEntry]:
        """Substring search over name/owner/type/description, optionally narrowed by place and radius."""
        term = _fold(query)
        place = _fold(location)
        distance_filter = origin is not None and max_distance_miles is not None
        if distance_filter:
            _check_distance_args(origin, max_distance_miles)

        results: list[BusinessDirectoryEntry] = []
        for entry in await self._entries():
            haystack = (entry.business_name, entry.owner_name, entry.business_type, entry.description)
            if term and not any(term in _fold(text) for text in haystack):
                continue
            if place:
                places = (entry.location, entry.zip_code, entry.state, entry.city)
                if not any(place in _fold(text) for text in places):
                    continue
            if distance_filter:
                if not entry.has_coordinates:
                    continue
                distance = haversine_miles(origin[0], origin[1], entry.latitude, entry.longitude)
                if distance > max_distance_miles:
                    continue
            results.append(entry)
        return results

    async def search_by_distance(
        self,
        origin: Coordinates,
        max_distance_miles: float,
        category: str | None = None,
    ) -> list[DirectoryMatch]:
        """Businesses with coordinates within the radius, nearest first."""
        _check_distance_args(origin, max_distance_miles)
        category_term = _fold(category)

        matches: list[DirectoryMatch] = []
        for entry in await self._entries():
            if not entry.has_coordinates:
                continue
            if category_term and category_term not in _fold(entry.business_type):
                continue
            distance = haversine_miles(origin[0], origin[1], entry.latitude, entry.longitude)
            if distance <= max_distance_miles:
                matches.append(DirectoryMatch(entry=entry, distance_miles=distance))
        matches.sort(key=lambda match: match.distance_miles)
        return matches

    async def _increment(self, business_id: str, field: str) -> BusinessDirectoryEntry:
        async with self.repository.businesses.transaction() as records:
            for idx, record in enumerate(records):
                if record.get("id") != business_id:
                    continue
                entry = BusinessDirectoryEntry.from_record(record)
                setattr(entry, field, getattr(entry, field) + 1)
                records[idx] = {**record, **entry.to_record()}
                return entry
            raise NotFoundError("Business", business_id)

    async def increment_invitation_count(self, business_id: str) -> BusinessDirectoryEntry:
        return await self._increment(business_id, "invitations_sent")

    async def increment_conversion_count(self, business_id: str) -> BusinessDirectoryEntry:
        return await self._increment(business_id, "signup_conversions")


class ReverseProposalLedger:
    """Host -> directory business invitations, priced per invitation."""

    def __init__(
        self,
        repository: DirectoryRepository | None = None,
        directory: DirectoryService | None = None,
        *,
        invitation_cost: int | float | None = None,
        conversion_reward: int | float | None = None,
    ) -> None:
        self.repository = repository or get_repository()
        self.directory = directory or DirectoryService(self.repository)
        self.invitation_cost = CFG.invitation_cost if invitation_cost is None else invitation_cost
        self.conversion_reward = CFG.conversion_reward if conversion_reward is None else conversion_reward

    async def send(
        self,
        host_id: str,
        business_id: str,
        event_id: str,
        cost_per_invitation: int | float | None = None,
        *,
        email_sent: bool = True,
        sms_sent: bool = True,
    ) -> ReverseProposal:
        """Record a new invitation; only one live invitation per (business, event)."""
        await self.directory.get_business(business_id)
        cost = self.invitation_cost if cost_per_invitation is None else cost_per_invitation
        if cost < 0:
            raise ValueError("invitation cost must be >= 0")

        async with self.repository.reverse_proposals.transaction() as records:
            for record in records:
                if (
                    record.get("businessId") == business_id
                    and record.get("eventId") == event_id
                    and record.get("status") != STATUS_EXPIRED
                ):
                    logger.warning(
                        "Reverse proposal rejected: business=%s event=%s already invited (%s)",
                        business_id,
                        event_id,
                        record.get("id"),
                    )
                    raise DuplicateInvitationError(business_id, event_id, str(record.get("id")))

            proposal = ReverseProposal(
                id=new_record_id(),
                host_id=str(host_id),
                business_id=business_id,
                event_id=event_id,
                invitation_cost=cost,
                status=STATUS_SENT,
                sent_at=utc_now_iso(),
                email_sent=bool(email_sent),
                sms_sent=bool(sms_sent),
            )
            records.append(proposal.to_record())

        await self.directory.increment_invitation_count(business_id)
        logger.info("Reverse proposal %s sent: host=%s business=%s", proposal.id, host_id, business_id)
        return proposal

    async def update_status(
        self,
        proposal_id: str,
        status: str,
        is_new_signup: bool | None = None,
    ) -> ReverseProposal:
        """Move a proposal along sent -> viewed -> accepted/declined, or to expired."""
        new_status = normalize_status(status)
        converted_now = False

        async with self.repository.reverse_proposals.transaction() as records:
            for idx, record in enumerate(records):
                if record.get("id") == proposal_id:
                    break
            else:
                raise NotFoundError("Reverse proposal", proposal_id)

            proposal = ReverseProposal.from_record(record)
            if not is_transition_allowed(proposal.status, new_status):
                raise InvalidStatusTransitionError(proposal_id, proposal.status, new_status)

            now = utc_now_iso()
            if new_status != proposal.status:
                proposal.status = new_status
                if new_status == STATUS_VIEWED and not proposal.viewed_at:
                    proposal.viewed_at = now
                if new_status in RESPONSE_STATUSES:
                    proposal.responded_at = now

            if is_new_signup and not proposal.is_converted:
                proposal.is_new_signup = True
                proposal.conversion_reward = self.conversion_reward
                converted_now = True
            elif is_new_signup is False and proposal.is_new_signup is None:
                proposal.is_new_signup = False

            records[idx] = {**record, **proposal.to_record()}

        if converted_now:
            await self.directory.increment_conversion_count(proposal.business_id)
            logger.info(
                "Reverse proposal %s converted: business=%s reward=%s",
                proposal_id,
                proposal.business_id,
                proposal.conversion_reward,
            )
        logger.info("Reverse proposal %s status=%s", proposal_id, proposal.status)
        return proposal

    async def _proposals(self) -> list[ReverseProposal]:
        records = await self.repository.reverse_proposals.read()
        return [ReverseProposal.from_record(r) for r in records]

    async def get(self, proposal_id: str) -> ReverseProposal:
        for proposal in await self._proposals():
            if proposal.id == proposal_id:
                return proposal
        raise NotFoundError("Reverse proposal", proposal_id)

    async def list_for_host(self, host_id: str) -> list[ReverseProposal]:
        return [p for p in await self._proposals() if p.host_id == host_id]

    async def list_for_business(self, business_id: str) -> list[ReverseProposal]:
        return [p for p in await self._proposals() if p.business_id == business_id]

    async def build_invitation_notifications(
        self,
        proposal_id: str,
        *,
        host_name: str,
        event_title: str,
        event_date: str,
        event_location: str,
    ) -> list[notifications.Notification]:
        """Email/SMS content for the channels flagged on the proposal."""
        proposal = await self.get(proposal_id)
        entry = await self.directory.get_business(proposal.business_id)
        details: dict[str, Any] = {
            "host_name": host_name,
            "event_title": event_title,
            "event_date": event_date,
            "event_location": event_location,
        }
        outbound: list[notifications.Notification] = []
        if proposal.email_sent and entry.email:
            outbound.append(notifications.directory_invitation_email(entry, proposal.id, **details))
        if proposal.sms_sent and entry.phone:
            outbound.append(notifications.directory_invitation_sms(entry, proposal.id, **details))
        return outbound
