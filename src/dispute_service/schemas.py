"""Pydantic response models for the Dispute API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_disputes: int
    active_disputes: int
    escrow_calls_pending: int
    sweeper_running: bool


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")
    error: str
    message: str
    details: dict[str, object]


class EvidenceResponse(BaseModel):
    """One evidence item attached to a dispute."""

    model_config = ConfigDict(extra="forbid")
    evidence_id: str
    type: Literal["image", "video", "document"]
    content_type: str
    size_bytes: int
    filename: str
    url: str
    public_id: str
    description: str | None
    submitted_by: Literal["customer", "artisan"]
    uploaded_at: str


class TimelineEntryResponse(BaseModel):
    """One timeline entry."""

    model_config = ConfigDict(extra="forbid")
    action: str
    details: str | None
    timestamp: str


class DisputeResponse(BaseModel):
    """Full dispute response model."""

    model_config = ConfigDict(extra="forbid")
    dispute_id: str
    contract_id: str
    category: str
    description: str
    status: Literal["open", "awaiting_response", "under_review", "resolved", "closed"]
    response_deadline: str
    response_window_elapsed: bool
    artisan_response: str | None
    artisan_responded_at: str | None
    counter_deadline: str | None
    customer_counter: str | None
    customer_countered_at: str | None
    outcome: Literal["release", "refund", "split"] | None
    artisan_pct: int | None
    resolution_notes: str | None
    escrow_action_pending: Literal["pause", "settle", "resume"] | None
    opened_at: str
    resolved_at: str | None
    closed_at: str | None
    evidence: list[EvidenceResponse]
    timeline: list[TimelineEntryResponse]


class DisputeSummary(BaseModel):
    """List-view dispute summary model."""

    model_config = ConfigDict(extra="forbid")
    dispute_id: str
    contract_id: str
    category: str
    status: str
    response_deadline: str
    response_window_elapsed: bool
    artisan_responded_at: str | None
    escrow_action_pending: str | None
    opened_at: str
    resolved_at: str | None
    closed_at: str | None


class DisputeListResponse(BaseModel):
    """List disputes response model."""

    model_config = ConfigDict(extra="forbid")
    disputes: list[DisputeSummary]
