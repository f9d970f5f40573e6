"""Service layer exports."""

from dispute_service.services.contract_client import ContractClient
from dispute_service.services.dispute_locks import DisputeLockRegistry
from dispute_service.services.dispute_service import DisputeService
from dispute_service.services.dispute_store import DisputeStore
from dispute_service.services.escrow_client import EscrowClient
from dispute_service.services.escrow_interlock import EscrowInterlock
from dispute_service.services.evidence_store import EvidenceStore
from dispute_service.services.platform_signer import PlatformSigner
from dispute_service.services.sweeper import DisputeSweeper
from dispute_service.services.timeline import TimelineRecorder
from dispute_service.services.upload_client import UploadClient

__all__ = [
    "ContractClient",
    "DisputeLockRegistry",
    "DisputeService",
    "DisputeStore",
    "DisputeSweeper",
    "EscrowClient",
    "EscrowInterlock",
    "EvidenceStore",
    "PlatformSigner",
    "TimelineRecorder",
    "UploadClient",
]
