"""
JSON API over the business directory and invitation engine.

All routes live under /api/v1. Request and response bodies use the same camelCase
keys as the persisted records, e.g.:

POST /api/v1/reverse-proposals
Body: {"hostId": "h1", "businessId": "b1", "eventId": "E1"}

Response: {"status": "ok", "proposal": {...}}
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from aiohttp import web

from config import CFG
from directory.bridge import ExternalProposalBridge
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
from directory.repository import DirectoryRepository, get_repository
from directory.service import DirectoryService, ReverseProposalLedger

logger = logging.getLogger(__name__)

DIRECTORY_KEY = web.AppKey("directory", DirectoryService)
LEDGER_KEY = web.AppKey("ledger", ReverseProposalLedger)
BRIDGE_KEY = web.AppKey("bridge", ExternalProposalBridge)
API_KEY_KEY = web.AppKey("api_key", str)

PUBLIC_PATHS = {"/", "/api/v1/health"}

ERROR_STATUS: tuple[tuple[type[DirectoryError], int], ...] = (
    (DuplicateEntryError, 409),
    (DuplicateInvitationError, 409),
    (AlreadyConnectedError, 409),
    (NotFoundError, 404),
    (MissingContactMethodError, 400),
    (InvalidStatusTransitionError, 400),
    (StorageUnavailableError, 503),
)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"status": "error", "message": message}, status=status)


def _extract_api_key_from_request(request: web.Request) -> str:
    """Extract API key from X-API-Key header, Bearer auth, or query param."""
    header_key = str(request.headers.get("X-API-Key") or "").strip()
    if header_key:
        return header_key

    auth_header = str(request.headers.get("Authorization") or "").strip()
    if auth_header.lower().startswith("bearer "):
        bearer = auth_header[7:].strip()
        if bearer:
            return bearer

    return str(request.query.get("api_key") or "").strip()


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    expected_key = request.app[API_KEY_KEY]
    if expected_key and request.path not in PUBLIC_PATHS:
        if _extract_api_key_from_request(request) != expected_key:
            logger.warning("Rejected request without valid API key: %s %s", request.method, request.path)
            return _error("Invalid API key", 401)
    try:
        return await handler(request)
    except StorageUnavailableError as error:
        logger.exception("Storage failure on %s %s", request.method, request.path)
        return _error(str(error), 503)
    except DirectoryError as error:
        for error_type, status in ERROR_STATUS:
            if isinstance(error, error_type):
                return _error(str(error), status)
        return _error(str(error), 400)
    except ValueError as error:
        return _error(str(error), 400)


async def _read_json(request: web.Request) -> dict[str, Any]:
    try:
        data = await request.json()
    except Exception:
        raise ValueError("Invalid JSON") from None
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object")
    return data


def _require(data: dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{key} is required")
    return value


def _amount(data: dict[str, Any], key: str, *, required: bool = True) -> int | float | None:
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise ValueError(f"{key} is required")
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number") from None
    return int(amount) if amount.is_integer() else amount


def _query_float(request: web.Request, key: str) -> float | None:
    raw = str(request.query.get(key) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number") from None


def _origin_from_query(request: web.Request) -> tuple[float, float] | None:
    lat = _query_float(request, "lat")
    lon = _query_float(request, "lon")
    if lat is None and lon is None:
        return None
    if lat is None or lon is None:
        raise ValueError("lat and lon must be given together")
    return lat, lon


def _ok(**payload: Any) -> web.Response:
    return web.json_response({"status": "ok", **payload})


async def health_handler(request: web.Request) -> web.Response:
    """Health check endpoint."""
    return web.json_response({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "directory-api",
    })


async def list_directory_handler(request: web.Request) -> web.Response:
    entries = await request.app[DIRECTORY_KEY].list_businesses()
    return _ok(businesses=[e.to_record() for e in entries])


async def add_business_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    entry = await request.app[DIRECTORY_KEY].add_business(
        business_name=_require(data, "businessName"),
        owner_name=_require(data, "ownerName"),
        email=_require(data, "email"),
        phone=str(data.get("phone") or ""),
        business_type=_require(data, "businessType"),
        description=str(data.get("description") or ""),
        location=_require(data, "location"),
        added_by=_require(data, "addedBy"),
        website=data.get("website"),
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
        zip_code=data.get("zipCode"),
        state=data.get("state"),
        city=data.get("city"),
        is_verified=bool(data.get("isVerified", False)),
        is_revovend_member=bool(data.get("isRevoVendMember", False)),
    )
    return web.json_response({"status": "ok", "business": entry.to_record()}, status=201)


async def search_directory_handler(request: web.Request) -> web.Response:
    entries = await request.app[DIRECTORY_KEY].search_by_text(
        query=str(request.query.get("query") or ""),
        location=request.query.get("location") or None,
        origin=_origin_from_query(request),
        max_distance_miles=_query_float(request, "max_distance"),
    )
    return _ok(businesses=[e.to_record() for e in entries])


async def nearby_directory_handler(request: web.Request) -> web.Response:
    origin = _origin_from_query(request)
    max_distance = _query_float(request, "max_distance")
    if origin is None or max_distance is None:
        raise ValueError("lat, lon and max_distance are required")
    matches = await request.app[DIRECTORY_KEY].search_by_distance(
        origin,
        max_distance,
        category=request.query.get("category") or None,
    )
    return _ok(businesses=[m.to_record() for m in matches])


async def send_reverse_proposal_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    proposal = await request.app[LEDGER_KEY].send(
        str(_require(data, "hostId")),
        str(_require(data, "businessId")),
        str(_require(data, "eventId")),
        _amount(data, "invitationCost", required=False),
        email_sent=bool(data.get("emailSent", True)),
        sms_sent=bool(data.get("smsSent", True)),
    )
    return web.json_response({"status": "ok", "proposal": proposal.to_record()}, status=201)


async def reverse_proposal_status_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    is_new_signup = data.get("isNewSignup")
    proposal = await request.app[LEDGER_KEY].update_status(
        request.match_info["proposal_id"],
        str(_require(data, "status")),
        None if is_new_signup is None else bool(is_new_signup),
    )
    return _ok(proposal=proposal.to_record())


async def reverse_proposal_notifications_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    outbound = await request.app[LEDGER_KEY].build_invitation_notifications(
        request.match_info["proposal_id"],
        host_name=str(_require(data, "hostName")),
        event_title=str(_require(data, "eventTitle")),
        event_date=str(_require(data, "eventDate")),
        event_location=str(_require(data, "eventLocation")),
    )
    return _ok(notifications=[n.to_record() for n in outbound])


async def list_reverse_proposals_handler(request: web.Request) -> web.Response:
    ledger = request.app[LEDGER_KEY]
    host_id = request.query.get("host_id")
    business_id = request.query.get("business_id")
    if host_id:
        proposals = await ledger.list_for_host(host_id)
    elif business_id:
        proposals = await ledger.list_for_business(business_id)
    else:
        raise ValueError("host_id or business_id is required")
    return _ok(proposals=[p.to_record() for p in proposals])


async def send_external_proposal_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    outcome = await request.app[BRIDGE_KEY].send_external(
        business_owner_id=str(_require(data, "businessOwnerId")),
        business_owner_name=str(_require(data, "businessOwnerName")),
        business_name=str(_require(data, "businessName")),
        event_id=str(_require(data, "eventId")),
        event_title=str(_require(data, "eventTitle")),
        event_date=str(_require(data, "eventDate")),
        event_location=str(_require(data, "eventLocation")),
        host_name=str(_require(data, "hostName")),
        proposed_amount=_amount(data, "proposedAmount"),
        message=str(data.get("message") or ""),
        contractors_needed=data.get("contractorsNeeded"),
        business_owner_contact_email=data.get("businessOwnerContactEmail"),
        host_email=data.get("hostEmail"),
        host_phone=data.get("hostPhone"),
    )
    return web.json_response({"status": "ok", **outcome.to_record()}, status=201)


async def send_reverse_external_proposal_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    outcome = await request.app[BRIDGE_KEY].send_reverse_external(
        host_id=str(_require(data, "hostId")),
        host_name=str(_require(data, "hostName")),
        event_id=str(_require(data, "eventId")),
        event_title=str(_require(data, "eventTitle")),
        event_date=str(_require(data, "eventDate")),
        event_location=str(_require(data, "eventLocation")),
        proposed_amount=_amount(data, "proposedAmount"),
        management_fee=_amount(data, "managementFee", required=False) or 0,
        message=str(data.get("message") or ""),
        host_email=data.get("hostEmail"),
        host_phone=data.get("hostPhone"),
        business_name=data.get("businessName"),
        business_email=data.get("businessEmail"),
        business_phone=data.get("businessPhone"),
    )
    return web.json_response({"status": "ok", **outcome.to_record()}, status=201)


async def find_by_code_handler(request: web.Request) -> web.Response:
    proposal = await request.app[BRIDGE_KEY].find_by_code(request.match_info["code"])
    if proposal is None:
        return _ok(found=False, message="Invitation code not found")
    return _ok(found=True, proposal=proposal.to_record())


async def find_reverse_by_code_handler(request: web.Request) -> web.Response:
    proposal = await request.app[BRIDGE_KEY].find_reverse_by_code(request.match_info["code"])
    if proposal is None:
        return _ok(found=False, message="Invitation code not found")
    return _ok(found=True, proposal=proposal.to_record())


async def connect_host_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    proposal = await request.app[BRIDGE_KEY].connect_host(
        str(_require(data, "invitationCode")),
        str(_require(data, "hostId")),
    )
    return _ok(proposal=proposal.to_record())


async def connect_business_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    proposal = await request.app[BRIDGE_KEY].connect_business_owner(
        str(_require(data, "invitationCode")),
        str(_require(data, "businessOwnerId")),
    )
    return _ok(proposal=proposal.to_record())


async def external_proposal_status_handler(request: web.Request) -> web.Response:
    data = await _read_json(request)
    proposal = await request.app[BRIDGE_KEY].update_status(
        request.match_info["proposal_id"],
        str(_require(data, "status")),
    )
    return _ok(proposal=proposal.to_record())


async def list_external_proposals_handler(request: web.Request) -> web.Response:
    bridge = request.app[BRIDGE_KEY]
    host_id = request.query.get("host_id")
    business_id = request.query.get("business_id")
    if host_id:
        proposals = await bridge.list_for_host(host_id)
    elif business_id:
        proposals = await bridge.list_for_business(business_id)
    else:
        raise ValueError("host_id or business_id is required")
    return _ok(proposals=[p.to_record() for p in proposals])


def create_api_app(
    repository: DirectoryRepository | None = None,
    *,
    api_key: str | None = None,
    invitation_cost: int | float | None = None,
    conversion_reward: int | float | None = None,
) -> web.Application:
    """Build the aiohttp application around one shared repository."""
    repo = repository or get_repository()
    directory = DirectoryService(repo)

    app = web.Application(middlewares=[error_middleware])
    app[API_KEY_KEY] = CFG.api_key if api_key is None else api_key
    app[DIRECTORY_KEY] = directory
    app[LEDGER_KEY] = ReverseProposalLedger(
        repo,
        directory,
        invitation_cost=invitation_cost,
        conversion_reward=conversion_reward,
    )
    app[BRIDGE_KEY] = ExternalProposalBridge(repo)

    app.router.add_get("/", health_handler)
    app.router.add_get("/api/v1/health", health_handler)

    app.router.add_get("/api/v1/directory", list_directory_handler)
    app.router.add_post("/api/v1/directory", add_business_handler)
    app.router.add_get("/api/v1/directory/search", search_directory_handler)
    app.router.add_get("/api/v1/directory/nearby", nearby_directory_handler)

    app.router.add_get("/api/v1/reverse-proposals", list_reverse_proposals_handler)
    app.router.add_post("/api/v1/reverse-proposals", send_reverse_proposal_handler)
    app.router.add_post("/api/v1/reverse-proposals/{proposal_id}/status", reverse_proposal_status_handler)
    app.router.add_post(
        "/api/v1/reverse-proposals/{proposal_id}/notifications",
        reverse_proposal_notifications_handler,
    )

    app.router.add_get("/api/v1/external-proposals", list_external_proposals_handler)
    app.router.add_post("/api/v1/external-proposals", send_external_proposal_handler)
    app.router.add_post("/api/v1/external-proposals/reverse", send_reverse_external_proposal_handler)
    app.router.add_get("/api/v1/external-proposals/code/{code}", find_by_code_handler)
    app.router.add_get("/api/v1/external-proposals/reverse/code/{code}", find_reverse_by_code_handler)
    app.router.add_post("/api/v1/external-proposals/connect-host", connect_host_handler)
    app.router.add_post("/api/v1/external-proposals/connect-business", connect_business_handler)
    app.router.add_post("/api/v1/external-proposals/{proposal_id}/status", external_proposal_status_handler)

    return app


async def start_api_server(app: web.Application) -> web.AppRunner:
    """Start the API server."""
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, CFG.api_host, CFG.api_port)
    await site.start()

    logger.info("API server started on %s:%s", CFG.api_host, CFG.api_port)

    return runner


async def stop_api_server(runner: web.AppRunner) -> None:
    """Stop the API server."""
    await runner.cleanup()
    logger.info("API server stopped")
