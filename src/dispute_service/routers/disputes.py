"""Dispute endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from dispute_service.core.state import get_app_state
from dispute_service.exceptions import ServiceError, ValidationError
from dispute_service.models import EvidenceFile, Party
from dispute_service.routers.validation import (
    optional_int,
    optional_string,
    parse_json_body,
    parse_optional_json_body,
    require_non_empty_string,
)
from dispute_service.schemas import DisputeListResponse, DisputeResponse

if TYPE_CHECKING:
    from dispute_service.services.dispute_service import DisputeService

router = APIRouter()


def _require_service() -> DisputeService:
    state = get_app_state()
    if state.dispute_service is None:
        msg = "Dispute service not initialized"
        raise RuntimeError(msg)
    return state.dispute_service


def _render(dispute: dict[str, Any], status_code: int = 200) -> JSONResponse:
    body = DisputeResponse.model_validate(dispute).model_dump()
    return JSONResponse(status_code=status_code, content=body)


@router.post("/disputes", status_code=201)
async def create_dispute(request: Request) -> JSONResponse:
    """Open a dispute against a contract."""
    service = _require_service()
    data = parse_json_body(await request.body())

    contract_id = require_non_empty_string(data, "contract_id")
    category = require_non_empty_string(data, "category")
    description = data.get("description")
    if not isinstance(description, str):
        raise ValidationError(
            "INVALID_PAYLOAD",
            "Request body must contain description",
            {"field": "description"},
        )

    created = await service.create_dispute(contract_id, category, description)
    return _render(created, status_code=201)


@router.get("/disputes")
async def list_disputes(
    contract_id: str | None = Query(default=None),
    status: str | None = Query(default=None),
    overdue: bool | None = Query(default=None),
) -> JSONResponse:
    """List dispute summaries with optional filters."""
    service = _require_service()
    disputes = await run_in_threadpool(service.list_disputes, contract_id, status, overdue)
    body = DisputeListResponse.model_validate({"disputes": disputes}).model_dump()
    return JSONResponse(status_code=200, content=body)


@router.get("/disputes/{dispute_id}")
async def get_dispute(dispute_id: str) -> JSONResponse:
    """Fetch full dispute details with evidence and timeline."""
    service = _require_service()
    dispute = await run_in_threadpool(service.get_dispute, dispute_id)
    return _render(dispute)


@router.post("/disputes/{dispute_id}/evidence", status_code=201)
async def add_evidence(dispute_id: str, request: Request) -> JSONResponse:
    """Attach an evidence file (multipart field "file")."""
    service = _require_service()

    async with request.form() as form:
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise ValidationError(
                "INVALID_PAYLOAD",
                "Multipart body must contain a file field",
                {"field": "file"},
            )
        description = form.get("description")
        submitted_by = form.get("submitted_by")
        if description is not None and not isinstance(description, str):
            raise ValidationError(
                "INVALID_PAYLOAD", "description must be text", {"field": "description"}
            )
        if submitted_by is not None and not isinstance(submitted_by, str):
            raise ValidationError(
                "INVALID_PAYLOAD", "submitted_by must be text", {"field": "submitted_by"}
            )
        evidence_file = EvidenceFile(
            filename=upload.filename or "evidence",
            content_type=upload.content_type or "application/octet-stream",
            content=await upload.read(),
        )

    updated = await service.add_evidence(
        dispute_id,
        evidence_file,
        description=description or None,
        submitted_by=submitted_by or Party.CUSTOMER.value,
    )
    return _render(updated, status_code=201)


@router.post("/disputes/{dispute_id}/respond")
async def respond(dispute_id: str, request: Request) -> JSONResponse:
    """Record the artisan response or the customer counter."""
    service = _require_service()
    data = parse_json_body(await request.body())
    content = data.get("content")
    if not isinstance(content, str):
        raise ValidationError(
            "INVALID_PAYLOAD",
            "Request body must contain content",
            {"field": "content"},
        )
    updated = await service.respond(dispute_id, content)
    return _render(updated)


@router.post("/disputes/{dispute_id}/escalate")
async def escalate(dispute_id: str) -> JSONResponse:
    """Send an unanswered dispute to review."""
    service = _require_service()
    updated = await service.escalate(dispute_id)
    return _render(updated)


@router.post("/disputes/{dispute_id}/resolve")
async def resolve(dispute_id: str, request: Request) -> JSONResponse:
    """Record the arbitration outcome and settle escrow."""
    service = _require_service()
    data = parse_json_body(await request.body())
    outcome = require_non_empty_string(data, "outcome")
    artisan_pct = optional_int(data, "artisan_pct")
    notes = optional_string(data, "notes")
    updated = await service.resolve(dispute_id, outcome, artisan_pct=artisan_pct, notes=notes)
    return _render(updated)


@router.post("/disputes/{dispute_id}/close")
async def close(dispute_id: str, request: Request) -> JSONResponse:
    """Close a resolved dispute or withdraw an active one."""
    service = _require_service()
    data = parse_optional_json_body(await request.body())
    reason = optional_string(data, "reason")
    updated = await service.close(dispute_id, reason=reason)
    return _render(updated)


@router.post("/disputes/{dispute_id}/escrow/retry")
async def retry_escrow(dispute_id: str) -> JSONResponse:
    """Re-issue the escrow call the dispute still owes."""
    service = _require_service()
    updated = await service.retry_escrow(dispute_id)
    return _render(updated)


@router.api_route("/disputes", methods=["PUT", "PATCH", "DELETE"])
async def disputes_collection_method_not_allowed(_request: Request) -> None:
    """Reject unsupported methods for disputes collection endpoint."""
    raise ServiceError("METHOD_NOT_ALLOWED", "Method not allowed", 405)


@router.api_route("/disputes/{dispute_id}", methods=["POST", "PUT", "PATCH", "DELETE"])
async def dispute_method_not_allowed(_request: Request) -> None:
    """Reject unsupported methods for a single dispute."""
    raise ServiceError("METHOD_NOT_ALLOWED", "Method not allowed", 405)
