"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from dispute_service.config import get_settings
from dispute_service.core.state import init_app_state
from dispute_service.logging import get_logger, setup_logging
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

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from logging import Logger

    from fastapi import FastAPI

    from dispute_service.config import Settings
    from dispute_service.core.state import AppState


def _init_platform_signer(settings: Settings, logger: Logger) -> PlatformSigner | None:
    if settings.platform.private_key_path is None:
        return None

    private_key_path = Path(settings.platform.private_key_path)
    if not private_key_path.exists():
        logger.warning(
            "Platform signer key file not found; escrow client not initialized",
            extra={"private_key_path": str(private_key_path)},
        )
        return None

    return PlatformSigner.from_key_file(
        private_key_path=str(private_key_path),
        platform_agent_id=settings.platform.agent_id,
    )


def _init_downstream_clients(
    state: AppState,
    settings: Settings,
    signer: PlatformSigner | None,
) -> None:
    state.contract_client = ContractClient(
        base_url=settings.contracts.base_url,
        timeout_seconds=settings.contracts.timeout_seconds,
    )
    state.upload_client = UploadClient(
        base_url=settings.uploads.base_url,
        timeout_seconds=settings.uploads.timeout_seconds,
    )
    if signer is not None:
        state.escrow_client = EscrowClient(
            base_url=settings.escrow.base_url,
            signer=signer,
            timeout_seconds=settings.escrow.timeout_seconds,
        )


def _build_dispute_service(state: AppState, settings: Settings) -> DisputeService:
    store = DisputeStore(db_path=settings.database.path)
    return DisputeService(
        store=store,
        recorder=TimelineRecorder(store),
        evidence_store=EvidenceStore(settings.evidence.max_file_size_bytes),
        interlock=EscrowInterlock(state.escrow_client, store),
        locks=DisputeLockRegistry(),
        policy=settings.disputes,
        max_evidence_description_length=settings.evidence.max_description_length,
        contract_client=state.contract_client,
        upload_client=state.upload_client,
    )


async def _close_resources(state: AppState) -> None:
    if state.sweeper is not None:
        await state.sweeper.stop()
    if state.contract_client is not None:
        await state.contract_client.close()
    if state.escrow_client is not None:
        await state.escrow_client.close()
    if state.upload_client is not None:
        await state.upload_client.close()
    if state.dispute_service is not None:
        state.dispute_service.close_store()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage app startup and shutdown."""
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    signer = _init_platform_signer(settings, logger)
    state.platform_signer = signer
    _init_downstream_clients(state, settings, signer)
    state.dispute_service = _build_dispute_service(state, settings)

    if settings.sweeper.enabled:
        state.sweeper = DisputeSweeper(state.dispute_service, settings.sweeper.interval_seconds)
        state.sweeper.start()

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "escrow_signing": signer is not None,
        },
    )

    yield

    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    await _close_resources(state)
