"""Directory domain records and their persisted JSON shape.

Persisted keys are camelCase and optional fields are left out entirely when unset,
matching the files written by the mobile app backend.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar

STATUS_SENT = "sent"
STATUS_VIEWED = "viewed"
STATUS_ACCEPTED = "accepted"
STATUS_DECLINED = "declined"
STATUS_EXPIRED = "expired"

PROPOSAL_STATUSES = (STATUS_SENT, STATUS_VIEWED, STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED)
RESPONSE_STATUSES = {STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED}
TERMINAL_STATUSES = RESPONSE_STATUSES

# Same-status updates are allowed and treated as no-ops by the services.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    STATUS_SENT: {STATUS_SENT, STATUS_VIEWED, STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED},
    STATUS_VIEWED: {STATUS_VIEWED, STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED},
    STATUS_ACCEPTED: {STATUS_ACCEPTED},
    STATUS_DECLINED: {STATUS_DECLINED},
    STATUS_EXPIRED: {STATUS_EXPIRED},
}


def normalize_status(value: str) -> str:
    status = str(value or "").strip().lower()
    if status not in PROPOSAL_STATUSES:
        raise ValueError(f"Unknown proposal status: {value!r}")
    return status


def is_transition_allowed(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, set())


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class _Record:
    """Mixin mapping dataclass fields to camelCase JSON keys."""

    KEY_OVERRIDES: ClassVar[dict[str, str]] = {}

    @classmethod
    def _key(cls, attr: str) -> str:
        return cls.KEY_OVERRIDES.get(attr) or _camel(attr)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for field in fields(self):
            value = getattr(self, field.name)
            if value is None:
                continue
            record[self._key(field.name)] = value
        return record

    @classmethod
    def _coerce(cls, kwargs: dict[str, Any]) -> dict[str, Any]:
        return kwargs

    @classmethod
    def from_record(cls, data: dict[str, Any]):
        kwargs = {field.name: data.get(cls._key(field.name)) for field in fields(cls)}
        return cls(**cls._coerce(kwargs))


@dataclass(slots=True)
class BusinessDirectoryEntry(_Record):
    KEY_OVERRIDES: ClassVar[dict[str, str]] = {"is_revovend_member": "isRevoVendMember"}

    id: str
    business_name: str
    owner_name: str
    email: str
    phone: str
    business_type: str
    description: str
    location: str
    is_verified: bool
    is_revovend_member: bool
    added_by: str
    added_at: str
    invitations_sent: int
    signup_conversions: int
    website: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    zip_code: str | None = None
    state: str | None = None
    city: str | None = None

    @classmethod
    def _coerce(cls, kwargs: dict[str, Any]) -> dict[str, Any]:
        kwargs["is_verified"] = bool(kwargs["is_verified"])
        kwargs["is_revovend_member"] = bool(kwargs["is_revovend_member"])
        kwargs["invitations_sent"] = int(kwargs["invitations_sent"] or 0)
        kwargs["signup_conversions"] = int(kwargs["signup_conversions"] or 0)
        return kwargs

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class DirectoryMatch:
    """Directory entry annotated with its distance from a search origin."""

    entry: BusinessDirectoryEntry
    distance_miles: float

    def to_record(self) -> dict[str, Any]:
        record = self.entry.to_record()
        record["distanceMiles"] = self.distance_miles
        return record


@dataclass(slots=True)
class ReverseProposal(_Record):
    id: str
    host_id: str
    business_id: str
    event_id: str
    invitation_cost: int | float
    status: str
    sent_at: str
    email_sent: bool
    sms_sent: bool
    viewed_at: str | None = None
    responded_at: str | None = None
    is_new_signup: bool | None = None
    conversion_reward: int | float | None = None

    @property
    def is_converted(self) -> bool:
        return bool(self.is_new_signup) and self.conversion_reward is not None


@dataclass(slots=True)
class ProposalHeader(_Record):
    """Fields shared by both external proposal shapes."""

    IS_REVERSE: ClassVar[bool] = False

    id: str
    event_id: str
    event_title: str
    event_date: str
    event_location: str
    message: str
    proposed_amount: int | float
    invitation_code: str
    status: str
    created_at: str
    email_sent: bool
    sms_sent: bool

    def to_record(self) -> dict[str, Any]:
        record = _Record.to_record(self)
        record["isReverseProposal"] = self.IS_REVERSE
        return record


@dataclass(slots=True)
class BusinessProposal(ProposalHeader):
    """Business owner -> unregistered host. Redeemed by a host account."""

    IS_REVERSE: ClassVar[bool] = False

    business_owner_id: str
    business_owner_name: str
    business_name: str
    host_name: str
    business_owner_contact_email: str | None = None
    host_email: str | None = None
    host_phone: str | None = None
    contractors_needed: int | None = None
    connected_host_id: str | None = None
    host_connected_at: str | None = None

    @property
    def connected_id(self) -> str | None:
        return self.connected_host_id


@dataclass(slots=True)
class HostInvitation(ProposalHeader):
    """Host -> unregistered business. Redeemed by a business owner account."""

    IS_REVERSE: ClassVar[bool] = True

    host_id: str
    host_name: str
    management_fee: int | float
    host_email: str | None = None
    host_phone: str | None = None
    business_name: str | None = None
    business_email: str | None = None
    business_phone: str | None = None
    connected_business_owner_id: str | None = None
    business_owner_connected_at: str | None = None

    @property
    def connected_id(self) -> str | None:
        return self.connected_business_owner_id


ExternalProposal = BusinessProposal | HostInvitation


def external_proposal_from_record(data: dict[str, Any]) -> ExternalProposal:
    """Pick the proposal shape from the ``isReverseProposal`` discriminator."""
    if data.get("isReverseProposal"):
        return HostInvitation.from_record(data)
    return BusinessProposal.from_record(data)
