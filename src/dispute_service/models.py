"""Dispute domain vocabulary and value types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


def utc_now() -> datetime:
    """Current time, timezone-aware."""
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """Render a UTC datetime with a Z suffix."""
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def from_iso(value: str) -> datetime:
    """Parse an ISO timestamp written by to_iso()."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class DisputeStatus(StrEnum):
    OPEN = "open"
    AWAITING_RESPONSE = "awaiting_response"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    CLOSED = "closed"


ACTIVE_STATUSES = frozenset(
    {DisputeStatus.OPEN, DisputeStatus.AWAITING_RESPONSE, DisputeStatus.UNDER_REVIEW}
)


class DisputeCategory(StrEnum):
    QUALITY_ISSUE = "quality_issue"
    NON_COMPLETION = "non_completion"
    OVERCHARGE = "overcharge"
    TIMELINE = "timeline"
    MATERIALS = "materials"
    COMMUNICATION = "communication"
    OTHER = "other"


class SettlementOutcome(StrEnum):
    """What escrow should do with held funds once a dispute is resolved."""

    RELEASE = "release"
    REFUND = "refund"
    SPLIT = "split"


class EscrowAction(StrEnum):
    """Escrow call a dispute owes the escrow subsystem."""

    PAUSE = "pause"
    SETTLE = "settle"
    RESUME = "resume"


class EvidenceType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class EvidenceContentType(StrEnum):
    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"
    MP4 = "video/mp4"
    PDF = "application/pdf"


class Party(StrEnum):
    CUSTOMER = "customer"
    ARTISAN = "artisan"


class RejectionReason(StrEnum):
    UNSUPPORTED_TYPE = "UnsupportedType"
    TOO_LARGE = "TooLarge"


@dataclass(frozen=True)
class EvidenceFile:
    """An uploaded file awaiting acceptance."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class EvidenceCheck:
    """Outcome of evidence validation."""

    accepted: bool
    reason: RejectionReason | None = None


@dataclass(frozen=True)
class StoredUpload:
    """Reference to binary content held by the upload service."""

    url: str
    public_id: str


@dataclass(frozen=True)
class EvidenceItem:
    """Evidence accepted onto a dispute."""

    evidence_id: str
    type: EvidenceType
    content_type: str
    size_bytes: int
    filename: str
    url: str
    public_id: str
    description: str | None
    submitted_by: Party
    uploaded_at: str


@dataclass(frozen=True)
class TimelineEntry:
    """One immutable audit log line."""

    action: str
    details: str | None
    timestamp: str
