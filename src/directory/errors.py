"""Directory domain errors."""

from __future__ import annotations


class DirectoryError(RuntimeError):
    """Base directory domain error."""


class DuplicateEntryError(DirectoryError):
    """Raised when a business already exists by email or by (name, location)."""

    def __init__(self, field: str, value: str, existing_id: str) -> None:
        super().__init__(f"Business already exists in directory ({field}={value!r}, id={existing_id})")
        self.field = field
        self.value = value
        self.existing_id = existing_id


class DuplicateInvitationError(DirectoryError):
    """Raised when a live invitation exists for the same business and event."""

    def __init__(self, business_id: str, event_id: str, existing_id: str) -> None:
        super().__init__(
            f"Invitation already sent to business {business_id} for event {event_id} (id={existing_id})"
        )
        self.business_id = business_id
        self.event_id = event_id
        self.existing_id = existing_id


class MissingContactMethodError(DirectoryError):
    """Raised when neither an email nor a phone number is supplied."""

    def __init__(self, fields: tuple[str, ...]) -> None:
        super().__init__(f"At least one contact method is required: {', '.join(fields)}")
        self.fields = fields


class NotFoundError(DirectoryError):
    """Raised when requested object doesn't exist."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class AlreadyConnectedError(DirectoryError):
    """Raised when an invitation code has already been redeemed."""

    def __init__(self, code: str, proposal_id: str, connected_id: str) -> None:
        super().__init__(f"Invitation code {code} already connected to account {connected_id}")
        self.code = code
        self.proposal_id = proposal_id
        self.connected_id = connected_id


class InvalidStatusTransitionError(DirectoryError):
    """Raised when a status change breaks the proposal state machine."""

    def __init__(self, proposal_id: str, current: str, requested: str) -> None:
        super().__init__(f"Proposal {proposal_id} cannot move from {current} to {requested}")
        self.proposal_id = proposal_id
        self.current = current
        self.requested = requested


class StorageUnavailableError(DirectoryError):
    """Raised when a collection cannot be read or written."""

    def __init__(self, collection: str, reason: str) -> None:
        super().__init__(f"Storage for {collection} unavailable: {reason}")
        self.collection = collection
        self.reason = reason
