"""Business directory and cross-party invitation engine."""

from directory.bridge import ExternalProposalBridge, SendOutcome
from directory.errors import (
    AlreadyConnectedError,
    DirectoryError,
    DuplicateEntryError,
    DuplicateInvitationError,
    InvalidStatusTransitionError,
    MissingContactMethodError,
    NotFoundError,
    StorageUnavailableError,
)
from directory.geo import haversine_miles
from directory.repository import DirectoryRepository, get_repository
from directory.service import DirectoryService, ReverseProposalLedger

__all__ = [
    "AlreadyConnectedError",
    "DirectoryError",
    "DirectoryRepository",
    "DirectoryService",
    "DuplicateEntryError",
    "DuplicateInvitationError",
    "ExternalProposalBridge",
    "InvalidStatusTransitionError",
    "MissingContactMethodError",
    "NotFoundError",
    "ReverseProposalLedger",
    "SendOutcome",
    "StorageUnavailableError",
    "get_repository",
    "haversine_miles",
]
