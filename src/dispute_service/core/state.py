"""Application state management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dispute_service.services.contract_client import ContractClient
    from dispute_service.services.dispute_service import DisputeService
    from dispute_service.services.escrow_client import EscrowClient
    from dispute_service.services.platform_signer import PlatformSigner
    from dispute_service.services.sweeper import DisputeSweeper
    from dispute_service.services.upload_client import UploadClient


@dataclass(frozen=True)
class DisputeCounts:
    total: int = 0
    active: int = 0
    escrow_calls_pending: int = 0


@dataclass
class AppState:
    """
    Runtime application state.

    Holds the dispute workflow and the outbound clients it was wired with.
    The escrow client is None when no platform key is configured; owed
    escrow calls then stay pending until a signer is available.
    """

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    dispute_service: DisputeService | None = None
    platform_signer: PlatformSigner | None = None
    contract_client: ContractClient | None = None
    escrow_client: EscrowClient | None = None
    upload_client: UploadClient | None = None
    sweeper: DisputeSweeper | None = None

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def started_at(self) -> str:
        return self.start_time.isoformat(timespec="seconds").replace("+00:00", "Z")

    @property
    def sweeper_running(self) -> bool:
        return self.sweeper is not None and self.sweeper.running

    def dispute_counts(self) -> DisputeCounts:
        """Read dispute counters from the store; blocking, run off the event loop."""
        if self.dispute_service is None:
            return DisputeCounts()
        return DisputeCounts(
            total=self.dispute_service.count_disputes(),
            active=self.dispute_service.count_active(),
            escrow_calls_pending=self.dispute_service.count_escrow_pending(),
        )


_state_container: dict[str, AppState | None] = {"app_state": None}


def get_app_state() -> AppState:
    """Get the current application state."""
    app_state = _state_container["app_state"]
    if app_state is None:
        msg = "Application state not initialized"
        raise RuntimeError(msg)
    return app_state


def init_app_state() -> AppState:
    """Initialize application state. Called during startup."""
    app_state = AppState()
    _state_container["app_state"] = app_state
    return app_state


def reset_app_state() -> None:
    """Reset application state. Used in testing."""
    _state_container["app_state"] = None
