"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from dispute_service.core.state import get_app_state
from dispute_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return service health and dispute counters."""
    state = get_app_state()
    counts = await run_in_threadpool(state.dispute_counts)
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_disputes=counts.total,
        active_disputes=counts.active,
        escrow_calls_pending=counts.escrow_calls_pending,
        sweeper_running=state.sweeper_running,
    )
