"""Dispute lifecycle: creation, evidence, responses, resolution and closing."""

from __future__ import annotations

import re
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from dispute_service.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceError,
    StateError,
    UpstreamError,
    ValidationError,
)
from dispute_service.logging import get_logger
from dispute_service.models import (
    ACTIVE_STATUSES,
    DisputeCategory,
    DisputeStatus,
    EscrowAction,
    EvidenceItem,
    Party,
    SettlementOutcome,
    from_iso,
    to_iso,
    utc_now,
)
from dispute_service.services import timeline
from dispute_service.services.dispute_store import DuplicateDisputeError

if TYPE_CHECKING:
    from datetime import datetime

    from dispute_service.config import DisputesConfig
    from dispute_service.models import EvidenceFile, StoredUpload
    from dispute_service.services.contract_client import ContractClient
    from dispute_service.services.dispute_locks import DisputeLockRegistry
    from dispute_service.services.dispute_store import DisputeStore
    from dispute_service.services.escrow_interlock import EscrowInterlock
    from dispute_service.services.evidence_store import EvidenceStore
    from dispute_service.services.timeline import TimelineRecorder
    from dispute_service.services.upload_client import UploadClient

_ACTIVE_VALUES = frozenset(status.value for status in ACTIVE_STATUSES)

# Contract ids are used as URL path segments and as the one-active-dispute key.
_CONTRACT_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,128}")


class DisputeService:
    """
    Owns the dispute state machine.

    Transitions on one dispute run under that dispute's lock and persist as
    compare-and-set writes with their timeline entry. Escrow calls happen
    after the transition that owes them is persisted. Evidence uploads run
    without the lock; the item is appended afterwards with a status re-check.
    """

    def __init__(
        self,
        store: DisputeStore,
        recorder: TimelineRecorder,
        evidence_store: EvidenceStore,
        interlock: EscrowInterlock,
        locks: DisputeLockRegistry,
        policy: DisputesConfig,
        max_evidence_description_length: int,
        contract_client: ContractClient | None = None,
        upload_client: UploadClient | None = None,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._evidence_store = evidence_store
        self._interlock = interlock
        self._locks = locks
        self._policy = policy
        self._max_evidence_description_length = max_evidence_description_length
        self.contract_client = contract_client
        self.upload_client = upload_client
        self._logger = get_logger(__name__)

    @property
    def interlock(self) -> EscrowInterlock:
        return self._interlock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _window_elapsed(dispute: dict[str, Any], now: datetime) -> bool:
        if dispute.get("artisan_responded_at") is not None:
            return False
        return now >= from_iso(str(dispute["response_deadline"]))

    def _present(self, dispute: dict[str, Any]) -> dict[str, Any]:
        presented = dict(dispute)
        presented["response_window_elapsed"] = self._window_elapsed(dispute, utc_now())
        return presented

    def _require(self, dispute_id: str) -> dict[str, Any]:
        dispute = self._store.get_dispute(dispute_id)
        if dispute is None:
            raise NotFoundError(
                "DISPUTE_NOT_FOUND",
                "Dispute not found",
                {"dispute_id": dispute_id},
            )
        return dispute

    def get_dispute(self, dispute_id: str) -> dict[str, Any]:
        """Return the dispute with evidence and timeline."""
        return self._present(self._require(dispute_id))

    def list_disputes(
        self,
        contract_id: str | None = None,
        status: str | None = None,
        overdue: bool | None = None,
    ) -> list[dict[str, Any]]:
        """List summaries; overdue selects open disputes past the response window."""
        if status is not None and status not in {member.value for member in DisputeStatus}:
            raise ValidationError(
                "INVALID_STATUS_FILTER",
                f"Unknown dispute status: {status}",
                {"allowed": [member.value for member in DisputeStatus]},
            )
        now = utc_now()
        summaries = []
        for summary in self._store.list_disputes(contract_id, status):
            elapsed = self._window_elapsed(summary, now)
            is_overdue = elapsed and summary["status"] == DisputeStatus.OPEN.value
            if overdue is not None and is_overdue != overdue:
                continue
            summaries.append({**summary, "response_window_elapsed": elapsed})
        return summaries

    def count_disputes(self) -> int:
        return self._store.count_disputes()

    def count_active(self) -> int:
        return self._store.count_active()

    def count_escrow_pending(self) -> int:
        return self._store.count_escrow_pending()

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_category(value: str) -> DisputeCategory:
        try:
            return DisputeCategory(value)
        except ValueError as exc:
            raise ValidationError(
                "INVALID_CATEGORY",
                f"Unknown dispute category: {value}",
                {"allowed": [member.value for member in DisputeCategory]},
            ) from exc

    @staticmethod
    def _check_length(
        field: str,
        value: str,
        min_length: int,
        max_length: int,
        code_prefix: str,
    ) -> str:
        length = len(value)
        if length < min_length:
            raise ValidationError(
                f"{code_prefix}_TOO_SHORT",
                f"{field} must be at least {min_length} characters",
                {"field": field, "length": length, "min_length": min_length},
            )
        if length > max_length:
            raise ValidationError(
                f"{code_prefix}_TOO_LONG",
                f"{field} must be at most {max_length} characters",
                {"field": field, "length": length, "max_length": max_length},
            )
        return value

    @staticmethod
    def _wrong_status(dispute: dict[str, Any], operation: str) -> StateError:
        return StateError(
            "INVALID_DISPUTE_STATUS",
            f"Cannot {operation} a dispute in {dispute['status']} status",
            {"dispute_id": dispute["dispute_id"], "status": dispute["status"]},
        )

    @staticmethod
    def _resolve_artisan_pct(outcome: SettlementOutcome, artisan_pct: int | None) -> int:
        if outcome is SettlementOutcome.SPLIT:
            if artisan_pct is None or not 1 <= artisan_pct <= 99:
                raise ValidationError(
                    "INVALID_ARTISAN_PCT",
                    "A split outcome requires artisan_pct between 1 and 99",
                    {"artisan_pct": artisan_pct},
                )
            return artisan_pct
        implied = 100 if outcome is SettlementOutcome.RELEASE else 0
        if artisan_pct is not None and artisan_pct != implied:
            raise ValidationError(
                "INVALID_ARTISAN_PCT",
                f"Outcome {outcome.value} implies artisan_pct {implied}",
                {"artisan_pct": artisan_pct},
            )
        return implied

    def _hours(self, seconds: int) -> int:
        return seconds // 3600

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def _load_contract(self, contract_id: str) -> dict[str, Any]:
        if self.contract_client is None:
            raise UpstreamError(
                "CONTRACT_SERVICE_UNAVAILABLE",
                "Contract client not initialized",
            )
        try:
            return await self.contract_client.get_contract(contract_id)
        except ServiceError:
            raise
        except Exception as exc:
            raise UpstreamError(
                "CONTRACT_SERVICE_UNAVAILABLE",
                "Cannot reach contract service",
            ) from exc

    @staticmethod
    def _require_contract_id(contract_id: str) -> None:
        if not _CONTRACT_ID_RE.fullmatch(contract_id):
            raise ValidationError(
                "INVALID_CONTRACT_ID",
                "contract_id may only contain letters, digits, '-' and '_'",
                {"contract_id": contract_id},
            )

    @staticmethod
    def _canonical_contract_id(requested: str, contract: dict[str, Any]) -> str:
        returned = contract.get("contract_id", requested)
        if not isinstance(returned, str) or not _CONTRACT_ID_RE.fullmatch(returned):
            raise UpstreamError(
                "CONTRACT_SERVICE_UNAVAILABLE",
                "Contract service returned malformed contract response",
            )
        return returned

    async def create_dispute(
        self,
        contract_id: str,
        category: str,
        description: str,
    ) -> dict[str, Any]:
        """
        Open a dispute against a contract and pause escrow release.

        Input is checked before the contract lookup. The dispute is keyed on
        the contract id the contract service reports.
        """
        self._require_contract_id(contract_id)
        parsed_category = self._parse_category(category)
        self._check_length(
            "description",
            description,
            self._policy.min_description_length,
            self._policy.max_description_length,
            "DESCRIPTION",
        )

        contract = await self._load_contract(contract_id)
        contract_id = self._canonical_contract_id(contract_id, contract)
        contract_status = str(contract["status"])
        if contract_status not in self._policy.disputable_contract_statuses:
            raise StateError(
                "CONTRACT_NOT_DISPUTABLE",
                f"Cannot open a dispute for a contract in {contract_status} status",
                {"contract_id": contract_id, "contract_status": contract_status},
            )

        opened_at = utc_now()
        response_deadline = opened_at + timedelta(seconds=self._policy.response_window_seconds)
        try:
            dispute = self._store.insert_dispute(
                contract_id=contract_id,
                category=parsed_category.value,
                description=description,
                opened_at=to_iso(opened_at),
                response_deadline=to_iso(response_deadline),
                opened_entry=self._recorder.entry(
                    timeline.DISPUTE_OPENED, f"Category: {parsed_category.value}"
                ),
            )
        except DuplicateDisputeError as exc:
            raise ConflictError(
                "DISPUTE_ALREADY_OPEN",
                "An active dispute already exists for this contract",
                {"contract_id": contract_id},
            ) from exc

        dispute_id = str(dispute["dispute_id"])
        self._logger.info(
            "Dispute opened",
            extra={
                "dispute_id": dispute_id,
                "contract_id": contract_id,
                "category": parsed_category.value,
            },
        )

        async with self._locks.hold(dispute_id):
            await self._interlock.pause_release(dispute)
            return self._present(self._require(dispute_id))

    # ------------------------------------------------------------------
    # Evidence
    # ------------------------------------------------------------------

    async def _store_upload(self, file: EvidenceFile) -> StoredUpload:
        if self.upload_client is None:
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                "Upload client not initialized",
            )
        try:
            return await self.upload_client.store(file)
        except ServiceError:
            raise
        except Exception as exc:
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                "Cannot reach upload service",
            ) from exc

    async def _discard_upload(self, dispute_id: str, stored: StoredUpload) -> None:
        if self.upload_client is None:
            return
        try:
            await self.upload_client.delete(stored.public_id)
        except Exception:
            self._logger.warning(
                "Could not delete upload for rejected evidence",
                extra={"dispute_id": dispute_id, "public_id": stored.public_id},
            )

    async def add_evidence(
        self,
        dispute_id: str,
        file: EvidenceFile,
        description: str | None = None,
        submitted_by: str = Party.CUSTOMER.value,
    ) -> dict[str, Any]:
        """Validate, upload and attach an evidence file."""
        dispute = self._require(dispute_id)
        if dispute["status"] not in _ACTIVE_VALUES:
            raise self._wrong_status(dispute, "add evidence to")

        evidence_type = self._evidence_store.require_valid(file)
        if description is not None and len(description) > self._max_evidence_description_length:
            raise ValidationError(
                "EVIDENCE_DESCRIPTION_TOO_LONG",
                f"description must be at most {self._max_evidence_description_length} characters",
                {"max_length": self._max_evidence_description_length},
            )
        try:
            party = Party(submitted_by)
        except ValueError as exc:
            raise ValidationError(
                "INVALID_PARTY",
                f"submitted_by must be one of {[member.value for member in Party]}",
                {"submitted_by": submitted_by},
            ) from exc

        stored = await self._store_upload(file)

        item = EvidenceItem(
            evidence_id=f"evd-{uuid.uuid4()}",
            type=evidence_type,
            content_type=file.content_type,
            size_bytes=file.size_bytes,
            filename=file.filename,
            url=stored.url,
            public_id=stored.public_id,
            description=description or None,
            submitted_by=party,
            uploaded_at=to_iso(utc_now()),
        )
        entry = self._recorder.entry(
            timeline.EVIDENCE_ADDED, f"{evidence_type.value} from {party.value}"
        )

        async with self._locks.hold(dispute_id):
            appended = self._store.append_evidence(dispute_id, item, entry)
            if not appended:
                current = self._require(dispute_id)
                await self._discard_upload(dispute_id, stored)
                raise self._wrong_status(current, "add evidence to")
            updated = self._require(dispute_id)

        self._logger.info(
            "Evidence added to dispute",
            extra={
                "dispute_id": dispute_id,
                "evidence_id": item.evidence_id,
                "type": evidence_type.value,
                "size_bytes": item.size_bytes,
            },
        )
        return self._present(updated)

    # ------------------------------------------------------------------
    # Responses and escalation
    # ------------------------------------------------------------------

    def _transition(
        self,
        dispute: dict[str, Any],
        to_status: DisputeStatus,
        action: str,
        details: str | None = None,
        fields: dict[str, Any] | None = None,
        operation: str = "update",
    ) -> dict[str, Any]:
        dispute_id = str(dispute["dispute_id"])
        changed = self._store.transition(
            dispute_id,
            from_statuses=(str(dispute["status"]),),
            to_status=to_status.value,
            entry=self._recorder.entry(action, details),
            fields=fields,
        )
        if not changed:
            raise self._wrong_status(self._require(dispute_id), operation)
        return self._require(dispute_id)

    async def respond(self, dispute_id: str, content: str) -> dict[str, Any]:
        """
        Record the next response in the exchange.

        From open this is the artisan's response (within the response window);
        from awaiting_response it is the customer's counter, which sends the
        dispute to review.
        """
        async with self._locks.hold(dispute_id):
            dispute = self._require(dispute_id)
            now = utc_now()

            if dispute["status"] == DisputeStatus.OPEN.value:
                if self._window_elapsed(dispute, now):
                    raise StateError(
                        "RESPONSE_WINDOW_ELAPSED",
                        "The artisan response window has elapsed",
                        {
                            "dispute_id": dispute_id,
                            "response_deadline": dispute["response_deadline"],
                        },
                    )
                self._check_length(
                    "content",
                    content,
                    self._policy.min_response_length,
                    self._policy.max_response_length,
                    "RESPONSE",
                )
                counter_deadline = now + timedelta(seconds=self._policy.counter_window_seconds)
                updated = self._transition(
                    dispute,
                    DisputeStatus.AWAITING_RESPONSE,
                    timeline.ARTISAN_RESPONDED,
                    fields={
                        "artisan_response": content,
                        "artisan_responded_at": to_iso(now),
                        "counter_deadline": to_iso(counter_deadline),
                    },
                    operation="respond to",
                )
            elif dispute["status"] == DisputeStatus.AWAITING_RESPONSE.value:
                self._check_length(
                    "content",
                    content,
                    self._policy.min_counter_length,
                    self._policy.max_response_length,
                    "COUNTER",
                )
                updated = self._transition(
                    dispute,
                    DisputeStatus.UNDER_REVIEW,
                    timeline.CUSTOMER_COUNTERED,
                    "Dispute moved to review",
                    fields={
                        "customer_counter": content,
                        "customer_countered_at": to_iso(now),
                    },
                    operation="respond to",
                )
            else:
                raise self._wrong_status(dispute, "respond to")

        self._logger.info(
            "Dispute response recorded",
            extra={"dispute_id": dispute_id, "status": updated["status"]},
        )
        return self._present(updated)

    async def escalate(self, dispute_id: str) -> dict[str, Any]:
        """Send an open dispute to review once the artisan missed the window."""
        async with self._locks.hold(dispute_id):
            dispute = self._require(dispute_id)
            if dispute["status"] != DisputeStatus.OPEN.value:
                raise self._wrong_status(dispute, "escalate")
            if not self._window_elapsed(dispute, utc_now()):
                raise StateError(
                    "RESPONSE_WINDOW_OPEN",
                    "The artisan response window has not elapsed yet",
                    {
                        "dispute_id": dispute_id,
                        "response_deadline": dispute["response_deadline"],
                    },
                )
            hours = self._hours(self._policy.response_window_seconds)
            updated = self._transition(
                dispute,
                DisputeStatus.UNDER_REVIEW,
                timeline.ESCALATED,
                f"Artisan did not respond within {hours} hours",
                operation="escalate",
            )

        self._logger.info("Dispute escalated", extra={"dispute_id": dispute_id})
        return self._present(updated)

    # ------------------------------------------------------------------
    # Resolution and closing
    # ------------------------------------------------------------------

    async def resolve(
        self,
        dispute_id: str,
        outcome: str,
        artisan_pct: int | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Record the arbitration outcome, then settle escrow exactly once."""
        async with self._locks.hold(dispute_id):
            dispute = self._require(dispute_id)
            if dispute["status"] == DisputeStatus.RESOLVED.value:
                raise StateError(
                    "DISPUTE_ALREADY_RESOLVED",
                    "Dispute has already been resolved",
                    {"dispute_id": dispute_id},
                )
            if dispute["status"] != DisputeStatus.UNDER_REVIEW.value:
                raise self._wrong_status(dispute, "resolve")

            try:
                parsed_outcome = SettlementOutcome(outcome)
            except ValueError as exc:
                raise ValidationError(
                    "INVALID_OUTCOME",
                    f"Unknown resolution outcome: {outcome}",
                    {"allowed": [member.value for member in SettlementOutcome]},
                ) from exc
            pct = self._resolve_artisan_pct(parsed_outcome, artisan_pct)
            if notes is not None and len(notes) > self._policy.max_notes_length:
                raise ValidationError(
                    "NOTES_TOO_LONG",
                    f"notes must be at most {self._policy.max_notes_length} characters",
                    {"max_length": self._policy.max_notes_length},
                )

            resolved = self._transition(
                dispute,
                DisputeStatus.RESOLVED,
                timeline.DISPUTE_RESOLVED,
                f"Outcome: {parsed_outcome.value}",
                fields={
                    "outcome": parsed_outcome.value,
                    "artisan_pct": pct,
                    "resolution_notes": notes,
                    "resolved_at": to_iso(utc_now()),
                    "escrow_action_pending": EscrowAction.SETTLE.value,
                },
                operation="resolve",
            )
            self._logger.info(
                "Dispute resolved",
                extra={
                    "dispute_id": dispute_id,
                    "contract_id": resolved["contract_id"],
                    "outcome": parsed_outcome.value,
                    "artisan_pct": pct,
                },
            )

            await self._interlock.resume_or_settle(resolved)
            return self._present(self._require(dispute_id))

    async def close(self, dispute_id: str, reason: str | None = None) -> dict[str, Any]:
        """Close a resolved dispute, or withdraw an active one."""
        async with self._locks.hold(dispute_id):
            dispute = self._require(dispute_id)
            if dispute["status"] == DisputeStatus.CLOSED.value:
                raise self._wrong_status(dispute, "close")
            if reason is not None and len(reason) > self._policy.max_response_length:
                raise ValidationError(
                    "REASON_TOO_LONG",
                    f"reason must be at most {self._policy.max_response_length} characters",
                    {"max_length": self._policy.max_response_length},
                )
            closed_at = to_iso(utc_now())

            if dispute["status"] == DisputeStatus.RESOLVED.value:
                closed = self._transition(
                    dispute,
                    DisputeStatus.CLOSED,
                    timeline.DISPUTE_CLOSED,
                    reason,
                    fields={"closed_at": closed_at},
                    operation="close",
                )
                self._logger.info("Dispute closed", extra={"dispute_id": dispute_id})
                return self._present(closed)

            if dispute["status"] not in _ACTIVE_VALUES:
                raise self._wrong_status(dispute, "close")

            withdrawn = self._transition(
                dispute,
                DisputeStatus.CLOSED,
                timeline.DISPUTE_WITHDRAWN,
                reason,
                fields={
                    "closed_at": closed_at,
                    "escrow_action_pending": EscrowAction.RESUME.value,
                },
                operation="close",
            )
            self._logger.info(
                "Dispute withdrawn",
                extra={"dispute_id": dispute_id, "contract_id": withdrawn["contract_id"]},
            )
            await self._interlock.resume_release(withdrawn)
            return self._present(self._require(dispute_id))

    async def retry_escrow(self, dispute_id: str) -> dict[str, Any]:
        """Re-issue the escrow call the dispute still owes, if any."""
        async with self._locks.hold(dispute_id):
            dispute = self._require(dispute_id)
            action = await self._interlock.issue_owed(dispute)
            if action is not None:
                self._logger.info(
                    "Owed escrow call re-issued",
                    extra={"dispute_id": dispute_id, "escrow_action": action.value},
                )
            return self._present(self._require(dispute_id))

    # ------------------------------------------------------------------
    # Deadline sweeps
    # ------------------------------------------------------------------

    async def move_overdue_counters_to_review(self) -> int:
        """Send disputes whose customer counter window elapsed to review."""
        hours = self._hours(self._policy.counter_window_seconds)
        moved = 0
        due = self._store.list_due(
            DisputeStatus.AWAITING_RESPONSE.value, "counter_deadline", to_iso(utc_now())
        )
        for dispute_id in due:
            async with self._locks.hold(dispute_id):
                changed = self._store.transition(
                    dispute_id,
                    from_statuses=(DisputeStatus.AWAITING_RESPONSE.value,),
                    to_status=DisputeStatus.UNDER_REVIEW.value,
                    entry=self._recorder.entry(
                        timeline.MOVED_TO_REVIEW,
                        f"Customer did not counter within {hours} hours",
                    ),
                )
            if changed:
                moved += 1
        return moved

    async def close_resolved_after_grace(self) -> int:
        """Close resolved disputes whose grace period has passed."""
        cutoff = utc_now() - timedelta(seconds=self._policy.resolved_grace_seconds)
        closed = 0
        for dispute_id in self._store.list_due(
            DisputeStatus.RESOLVED.value, "resolved_at", to_iso(cutoff)
        ):
            async with self._locks.hold(dispute_id):
                changed = self._store.transition(
                    dispute_id,
                    from_statuses=(DisputeStatus.RESOLVED.value,),
                    to_status=DisputeStatus.CLOSED.value,
                    entry=self._recorder.entry(timeline.DISPUTE_CLOSED, "Grace period elapsed"),
                    fields={"closed_at": to_iso(utc_now())},
                )
            if changed:
                closed += 1
        return closed

    async def retry_owed_escrow_calls(self) -> int:
        """Re-issue every owed escrow call; returns how many escrow acknowledged."""
        acknowledged = 0
        for dispute_id in self._store.list_escrow_pending():
            async with self._locks.hold(dispute_id):
                dispute = self._store.get_dispute(dispute_id)
                if dispute is None:
                    continue
                try:
                    action = await self._interlock.issue_owed(dispute)
                except UpstreamError:
                    # Already logged at ERROR by the interlock; stays pending.
                    continue
            if action is not None:
                acknowledged += 1
        return acknowledged

    def close_store(self) -> None:
        """Close the underlying database connection."""
        self._store.close()
