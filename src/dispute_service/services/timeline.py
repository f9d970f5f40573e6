"""Append-only dispute timeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dispute_service.models import TimelineEntry, to_iso, utc_now

if TYPE_CHECKING:
    from dispute_service.services.dispute_store import DisputeStore

DISPUTE_OPENED = "Dispute opened"
EVIDENCE_ADDED = "Evidence added"
ARTISAN_RESPONDED = "Artisan responded"
CUSTOMER_COUNTERED = "Customer countered"
ESCALATED = "Escalated for review"
MOVED_TO_REVIEW = "Moved to review"
DISPUTE_RESOLVED = "Dispute resolved"
DISPUTE_WITHDRAWN = "Dispute withdrawn"
DISPUTE_CLOSED = "Dispute closed"


class TimelineRecorder:
    """
    Builds and appends timeline entries.

    Every call appends; callers invoke it once per logical event. State
    transitions take an entry from entry() so the store can write it in the
    same transaction as the status change.
    """

    def __init__(self, store: DisputeStore) -> None:
        self._store = store

    @staticmethod
    def entry(action: str, details: str | None = None) -> TimelineEntry:
        return TimelineEntry(action=action, details=details, timestamp=to_iso(utc_now()))

    def record(self, dispute_id: str, action: str, details: str | None = None) -> TimelineEntry:
        entry = self.entry(action, details)
        self._store.append_timeline(dispute_id, entry)
        return entry
