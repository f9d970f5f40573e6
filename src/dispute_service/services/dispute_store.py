"""SQLite-backed dispute storage."""

from __future__ import annotations

import contextlib
import sqlite3
import uuid
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any, cast

from dispute_service.models import ACTIVE_STATUSES, DisputeStatus, EscrowAction

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator

    from dispute_service.models import EvidenceItem, TimelineEntry

_ACTIVE_SQL = ", ".join(f"'{status.value}'" for status in sorted(ACTIVE_STATUSES))

_UPDATABLE_COLUMNS = frozenset(
    {
        "artisan_response",
        "artisan_responded_at",
        "counter_deadline",
        "customer_counter",
        "customer_countered_at",
        "outcome",
        "artisan_pct",
        "resolution_notes",
        "escrow_action_pending",
        "resolved_at",
        "closed_at",
    }
)

_DEADLINE_COLUMNS = frozenset({"response_deadline", "counter_deadline", "resolved_at"})


class DuplicateDisputeError(Exception):
    """Raised when a contract already carries an active dispute."""


class DisputeStore:
    """SQLite-backed dispute storage with thread-safe transactions."""

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(
                f"""
                CREATE TABLE IF NOT EXISTS disputes (
                    dispute_id TEXT PRIMARY KEY,
                    contract_id TEXT NOT NULL,
                    category TEXT NOT NULL,
                    description TEXT NOT NULL,
                    status TEXT NOT NULL,
                    response_deadline TEXT NOT NULL,
                    artisan_response TEXT,
                    artisan_responded_at TEXT,
                    counter_deadline TEXT,
                    customer_counter TEXT,
                    customer_countered_at TEXT,
                    outcome TEXT,
                    artisan_pct INTEGER,
                    resolution_notes TEXT,
                    escrow_action_pending TEXT,
                    opened_at TEXT NOT NULL,
                    resolved_at TEXT,
                    closed_at TEXT
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_disputes_one_active_per_contract
                    ON disputes(contract_id)
                    WHERE status IN ({_ACTIVE_SQL});

                CREATE INDEX IF NOT EXISTS idx_disputes_status ON disputes(status);

                CREATE TABLE IF NOT EXISTS evidence (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    evidence_id TEXT NOT NULL UNIQUE,
                    dispute_id TEXT NOT NULL REFERENCES disputes(dispute_id),
                    type TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    size_bytes INTEGER NOT NULL,
                    filename TEXT NOT NULL,
                    url TEXT NOT NULL,
                    public_id TEXT NOT NULL,
                    description TEXT,
                    submitted_by TEXT NOT NULL,
                    uploaded_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS timeline (
                    entry_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    dispute_id TEXT NOT NULL REFERENCES disputes(dispute_id),
                    action TEXT NOT NULL,
                    details TEXT,
                    timestamp TEXT NOT NULL
                );
                """
            )

    @staticmethod
    def _new_dispute_id() -> str:
        return f"disp-{uuid.uuid4()}"

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._db.execute("BEGIN IMMEDIATE")
            try:
                yield self._db
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise
            self._db.execute("COMMIT")

    @staticmethod
    def _insert_timeline(db: sqlite3.Connection, dispute_id: str, entry: TimelineEntry) -> None:
        db.execute(
            "INSERT INTO timeline (dispute_id, action, details, timestamp) VALUES (?, ?, ?, ?)",
            (dispute_id, entry.action, entry.details, entry.timestamp),
        )

    def _load_evidence(self, dispute_id: str) -> list[dict[str, Any]]:
        rows = self._db.execute(
            """
            SELECT evidence_id, type, content_type, size_bytes, filename, url, public_id,
                   description, submitted_by, uploaded_at
            FROM evidence
            WHERE dispute_id = ?
            ORDER BY seq
            """,
            (dispute_id,),
        ).fetchall()
        return [
            {
                "evidence_id": str(row["evidence_id"]),
                "type": str(row["type"]),
                "content_type": str(row["content_type"]),
                "size_bytes": int(row["size_bytes"]),
                "filename": str(row["filename"]),
                "url": str(row["url"]),
                "public_id": str(row["public_id"]),
                "description": str(row["description"]) if row["description"] is not None else None,
                "submitted_by": str(row["submitted_by"]),
                "uploaded_at": str(row["uploaded_at"]),
            }
            for row in rows
        ]

    def _load_timeline(self, dispute_id: str) -> list[dict[str, Any]]:
        rows = self._db.execute(
            """
            SELECT action, details, timestamp
            FROM timeline
            WHERE dispute_id = ?
            ORDER BY entry_id
            """,
            (dispute_id,),
        ).fetchall()
        return [
            {
                "action": str(row["action"]),
                "details": str(row["details"]) if row["details"] is not None else None,
                "timestamp": str(row["timestamp"]),
            }
            for row in rows
        ]

    @staticmethod
    def _optional_str(row: sqlite3.Row, column: str) -> str | None:
        value = row[column]
        return str(value) if value is not None else None

    def _row_to_dispute(
        self,
        row: sqlite3.Row,
        evidence: list[dict[str, Any]],
        timeline: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return {
            "dispute_id": str(row["dispute_id"]),
            "contract_id": str(row["contract_id"]),
            "category": str(row["category"]),
            "description": str(row["description"]),
            "status": str(row["status"]),
            "response_deadline": str(row["response_deadline"]),
            "artisan_response": self._optional_str(row, "artisan_response"),
            "artisan_responded_at": self._optional_str(row, "artisan_responded_at"),
            "counter_deadline": self._optional_str(row, "counter_deadline"),
            "customer_counter": self._optional_str(row, "customer_counter"),
            "customer_countered_at": self._optional_str(row, "customer_countered_at"),
            "outcome": self._optional_str(row, "outcome"),
            "artisan_pct": int(row["artisan_pct"]) if row["artisan_pct"] is not None else None,
            "resolution_notes": self._optional_str(row, "resolution_notes"),
            "escrow_action_pending": self._optional_str(row, "escrow_action_pending"),
            "opened_at": str(row["opened_at"]),
            "resolved_at": self._optional_str(row, "resolved_at"),
            "closed_at": self._optional_str(row, "closed_at"),
            "evidence": evidence,
            "timeline": timeline,
        }

    def insert_dispute(
        self,
        contract_id: str,
        category: str,
        description: str,
        opened_at: str,
        response_deadline: str,
        opened_entry: TimelineEntry,
    ) -> dict[str, Any]:
        """
        Create an open dispute owing an escrow pause.

        The partial unique index makes the active-dispute check and the insert
        one atomic write.
        """
        dispute_id = self._new_dispute_id()
        try:
            with self._transaction() as db:
                db.execute(
                    """
                    INSERT INTO disputes (
                        dispute_id, contract_id, category, description, status,
                        response_deadline, escrow_action_pending, opened_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        dispute_id,
                        contract_id,
                        category,
                        description,
                        DisputeStatus.OPEN.value,
                        response_deadline,
                        EscrowAction.PAUSE.value,
                        opened_at,
                    ),
                )
                self._insert_timeline(db, dispute_id, opened_entry)
        except sqlite3.IntegrityError as exc:
            if "unique" in str(exc).lower():
                raise DuplicateDisputeError(
                    f"An active dispute already exists for contract_id={contract_id}"
                ) from exc
            raise

        dispute = self.get_dispute(dispute_id)
        if dispute is None:
            msg = "Failed to load newly created dispute"
            raise RuntimeError(msg)
        return dispute

    def get_dispute(self, dispute_id: str) -> dict[str, Any] | None:
        """Get dispute with its evidence and timeline."""
        with self._lock:
            row = self._db.execute(
                "SELECT * FROM disputes WHERE dispute_id = ?", (dispute_id,)
            ).fetchone()
            if row is None:
                return None
            evidence = self._load_evidence(dispute_id)
            timeline = self._load_timeline(dispute_id)
        return self._row_to_dispute(cast("sqlite3.Row", row), evidence, timeline)

    def transition(
        self,
        dispute_id: str,
        from_statuses: Collection[str],
        to_status: str,
        entry: TimelineEntry,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """
        Compare-and-set the status and append one timeline entry atomically.

        Returns False (and writes nothing) when the current status is not one
        of from_statuses.
        """
        updates = dict(fields or {})
        unknown = set(updates) - _UPDATABLE_COLUMNS
        if unknown:
            msg = f"Cannot update columns: {sorted(unknown)}"
            raise ValueError(msg)
        if len(from_statuses) == 0:
            return False

        assignments = ", ".join(["status = ?", *(f"{column} = ?" for column in updates)])
        placeholders = ", ".join("?" for _ in from_statuses)
        params: list[object] = [to_status, *updates.values(), dispute_id, *from_statuses]

        with self._transaction() as db:
            cursor = db.execute(
                f"UPDATE disputes SET {assignments} "  # noqa: S608
                f"WHERE dispute_id = ? AND status IN ({placeholders})",
                params,
            )
            if cursor.rowcount == 0:
                return False
            self._insert_timeline(db, dispute_id, entry)
        return True

    def append_evidence(self, dispute_id: str, item: EvidenceItem, entry: TimelineEntry) -> bool:
        """Append evidence and its timeline entry while the dispute is still active."""
        with self._transaction() as db:
            row = db.execute(
                f"SELECT 1 FROM disputes "  # noqa: S608
                f"WHERE dispute_id = ? AND status IN ({_ACTIVE_SQL})",
                (dispute_id,),
            ).fetchone()
            if row is None:
                return False
            db.execute(
                """
                INSERT INTO evidence (
                    evidence_id, dispute_id, type, content_type, size_bytes, filename,
                    url, public_id, description, submitted_by, uploaded_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.evidence_id,
                    dispute_id,
                    item.type.value,
                    item.content_type,
                    item.size_bytes,
                    item.filename,
                    item.url,
                    item.public_id,
                    item.description,
                    item.submitted_by.value,
                    item.uploaded_at,
                ),
            )
            self._insert_timeline(db, dispute_id, entry)
        return True

    def append_timeline(self, dispute_id: str, entry: TimelineEntry) -> None:
        """Append a standalone timeline entry."""
        with self._transaction() as db:
            self._insert_timeline(db, dispute_id, entry)

    def clear_escrow_action(self, dispute_id: str, action: str) -> bool:
        """Clear the owed escrow call if it is still the given action."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE disputes SET escrow_action_pending = NULL "
                "WHERE dispute_id = ? AND escrow_action_pending = ?",
                (dispute_id, action),
            )
        return cursor.rowcount > 0

    def list_disputes(self, contract_id: str | None, status: str | None) -> list[dict[str, Any]]:
        """List dispute summaries with optional AND filters."""
        query = (
            "SELECT dispute_id, contract_id, category, status, response_deadline, "
            "artisan_responded_at, escrow_action_pending, opened_at, resolved_at, closed_at "
            "FROM disputes"
        )
        clauses: list[str] = []
        params: list[object] = []

        if contract_id is not None:
            clauses.append("contract_id = ?")
            params.append(contract_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY opened_at, dispute_id"

        with self._lock:
            rows = self._db.execute(query, params).fetchall()

        return [
            {
                "dispute_id": str(row["dispute_id"]),
                "contract_id": str(row["contract_id"]),
                "category": str(row["category"]),
                "status": str(row["status"]),
                "response_deadline": str(row["response_deadline"]),
                "artisan_responded_at": self._optional_str(row, "artisan_responded_at"),
                "escrow_action_pending": self._optional_str(row, "escrow_action_pending"),
                "opened_at": str(row["opened_at"]),
                "resolved_at": self._optional_str(row, "resolved_at"),
                "closed_at": self._optional_str(row, "closed_at"),
            }
            for row in rows
        ]

    def list_due(self, status: str, deadline_column: str, now_iso: str) -> list[str]:
        """Return ids of disputes in status whose deadline column is at or before now."""
        if deadline_column not in _DEADLINE_COLUMNS:
            msg = f"Not a deadline column: {deadline_column}"
            raise ValueError(msg)
        with self._lock:
            rows = self._db.execute(
                f"SELECT dispute_id FROM disputes "  # noqa: S608
                f"WHERE status = ? AND {deadline_column} IS NOT NULL AND {deadline_column} <= ? "
                f"ORDER BY {deadline_column}",
                (status, now_iso),
            ).fetchall()
        return [str(row["dispute_id"]) for row in rows]

    def list_escrow_pending(self) -> list[str]:
        """Return ids of disputes that still owe an escrow call."""
        with self._lock:
            rows = self._db.execute(
                "SELECT dispute_id FROM disputes WHERE escrow_action_pending IS NOT NULL "
                "ORDER BY opened_at"
            ).fetchall()
        return [str(row["dispute_id"]) for row in rows]

    def count_disputes(self) -> int:
        """Count all disputes."""
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) FROM disputes").fetchone()
        return int(row[0]) if row is not None else 0

    def count_active(self) -> int:
        """Count disputes in an active status."""
        with self._lock:
            row = self._db.execute(
                f"SELECT COUNT(*) FROM disputes WHERE status IN ({_ACTIVE_SQL})"  # noqa: S608
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def count_escrow_pending(self) -> int:
        """Count disputes owing an escrow call."""
        with self._lock:
            row = self._db.execute(
                "SELECT COUNT(*) FROM disputes WHERE escrow_action_pending IS NOT NULL"
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
