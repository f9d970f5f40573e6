"""Shared test helpers for dispute service tests."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

from dispute_service.config import DisputesConfig
from dispute_service.models import EvidenceFile, StoredUpload
from dispute_service.services.dispute_locks import DisputeLockRegistry
from dispute_service.services.dispute_service import DisputeService
from dispute_service.services.dispute_store import DisputeStore
from dispute_service.services.escrow_interlock import EscrowInterlock
from dispute_service.services.evidence_store import EvidenceStore
from dispute_service.services.timeline import TimelineRecorder

if TYPE_CHECKING:
    from pathlib import Path

VALID_DESCRIPTION = (
    "The bathroom tiles were laid unevenly and several cracked within the first week."
)
VALID_RESPONSE = (
    "The tiles were fitted to the agreed layout; the cracking comes from the old subfloor."
)
VALID_COUNTER = "The subfloor was inspected and approved before work started."
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024


def new_contract_id() -> str:
    """Generate a random contract ID."""
    return f"ctr-{uuid.uuid4()}"


def make_contract_data(contract_id: str | None = None, status: str = "active") -> dict[str, Any]:
    """Create a contract response from the contract service mock."""
    return {
        "contract_id": contract_id or new_contract_id(),
        "status": status,
        "customer_id": "cus-1",
        "artisan_id": "art-1",
        "amount": 250000,
    }


def make_evidence_file(
    content_type: str = "image/jpeg",
    size_bytes: int = 2048,
    filename: str = "photo.jpg",
) -> EvidenceFile:
    """Create an in-memory evidence file of the given size."""
    return EvidenceFile(filename=filename, content_type=content_type, content=b"x" * size_bytes)


def make_mock_contract_client(
    contract_response: dict[str, Any] | None = None,
    contract_side_effect: Exception | None = None,
) -> AsyncMock:
    """Create a mock ContractClient."""
    mock_client = AsyncMock()
    mock_client.close = AsyncMock()
    if contract_side_effect is not None:
        mock_client.get_contract.side_effect = contract_side_effect
    elif contract_response is not None:
        mock_client.get_contract.return_value = contract_response
    else:
        mock_client.get_contract.side_effect = lambda contract_id: make_contract_data(contract_id)
    return mock_client


def make_mock_escrow_client(
    pause_side_effect: Exception | None = None,
    settle_side_effect: Exception | None = None,
    resume_side_effect: Exception | None = None,
) -> AsyncMock:
    """Create a mock EscrowClient."""
    mock_client = AsyncMock()
    mock_client.close = AsyncMock()
    mock_client.pause_release.return_value = {"status": "paused"}
    mock_client.settle.return_value = {"status": "settled"}
    mock_client.resume_release.return_value = {"status": "released"}
    if pause_side_effect is not None:
        mock_client.pause_release.side_effect = pause_side_effect
    if settle_side_effect is not None:
        mock_client.settle.side_effect = settle_side_effect
    if resume_side_effect is not None:
        mock_client.resume_release.side_effect = resume_side_effect
    return mock_client


def make_mock_upload_client(
    store_side_effect: Exception | None = None,
    delete_side_effect: Exception | None = None,
) -> AsyncMock:
    """Create a mock UploadClient handing out unique public ids."""
    mock_client = AsyncMock()
    mock_client.close = AsyncMock()
    if store_side_effect is not None:
        mock_client.store.side_effect = store_side_effect
    else:
        def _store(_file: EvidenceFile) -> StoredUpload:
            public_id = f"korrect/disputes/{uuid.uuid4()}"
            return StoredUpload(url=f"https://cdn.example.test/{public_id}", public_id=public_id)

        mock_client.store.side_effect = _store
    if delete_side_effect is not None:
        mock_client.delete.side_effect = delete_side_effect
    return mock_client


def make_policy(**overrides: Any) -> DisputesConfig:
    """Dispute limits matching the shipped config.yaml."""
    values: dict[str, Any] = {
        "min_description_length": 50,
        "max_description_length": 2000,
        "min_response_length": 50,
        "min_counter_length": 20,
        "max_response_length": 2000,
        "max_notes_length": 1000,
        "response_window_seconds": 48 * 3600,
        "counter_window_seconds": 72 * 3600,
        "resolved_grace_seconds": 7 * 24 * 3600,
        "disputable_contract_statuses": ["signed", "active", "disputed"],
    }
    values.update(overrides)
    return DisputesConfig(**values)


def build_dispute_service(
    tmp_path: Path,
    contract_client: AsyncMock | None = None,
    escrow_client: AsyncMock | None = None,
    upload_client: AsyncMock | None = None,
    **policy_overrides: Any,
) -> DisputeService:
    """Wire a DisputeService over a fresh SQLite file and mock clients."""
    store = DisputeStore(db_path=str(tmp_path / "disputes.db"))
    return DisputeService(
        store=store,
        recorder=TimelineRecorder(store),
        evidence_store=EvidenceStore(MAX_FILE_SIZE_BYTES),
        interlock=EscrowInterlock(
            escrow_client if escrow_client is not None else make_mock_escrow_client(),
            store,
        ),
        locks=DisputeLockRegistry(),
        policy=make_policy(**policy_overrides),
        max_evidence_description_length=500,
        contract_client=(
            contract_client if contract_client is not None else make_mock_contract_client()
        ),
        upload_client=upload_client if upload_client is not None else make_mock_upload_client(),
    )
