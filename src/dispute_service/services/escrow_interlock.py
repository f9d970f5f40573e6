"""Dispute-side contract with the escrow subsystem."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dispute_service.exceptions import ServiceError, StateError, UpstreamError
from dispute_service.logging import get_logger
from dispute_service.models import DisputeStatus, EscrowAction

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from dispute_service.services.dispute_store import DisputeStore
    from dispute_service.services.escrow_client import EscrowClient


class EscrowInterlock:
    """
    Issues the escrow calls a dispute owes and tracks the ones that failed.

    The owed call is written as escrow_action_pending together with the
    transition that creates the obligation, and cleared only after escrow
    acknowledges it. Each call carries an idempotency key derived from the
    dispute id, so re-issuing an owed call is safe.
    """

    def __init__(self, escrow_client: EscrowClient | None, store: DisputeStore) -> None:
        self.escrow_client = escrow_client
        self._store = store
        self._logger = get_logger(__name__)

    @staticmethod
    def idempotency_key(dispute_id: str, action: EscrowAction) -> str:
        return f"{dispute_id}:{action.value}"

    def _require_client(self, dispute: dict[str, Any], action: EscrowAction) -> EscrowClient:
        if self.escrow_client is None:
            self._logger.error(
                "Escrow client not initialized; escrow call left pending",
                extra={
                    "dispute_id": dispute["dispute_id"],
                    "contract_id": dispute["contract_id"],
                    "escrow_action": action.value,
                },
            )
            raise UpstreamError(
                "ESCROW_UNAVAILABLE",
                "Escrow client not initialized",
                {"dispute_id": dispute["dispute_id"], "pending_action": action.value},
            )
        return self.escrow_client

    async def _call(
        self,
        dispute: dict[str, Any],
        action: EscrowAction,
        send: Callable[[EscrowClient, str], Awaitable[object]],
    ) -> None:
        dispute_id = str(dispute["dispute_id"])
        contract_id = str(dispute["contract_id"])
        client = self._require_client(dispute, action)
        try:
            await send(client, self.idempotency_key(dispute_id, action))
        except Exception as exc:
            error_code = exc.error if isinstance(exc, ServiceError) else type(exc).__name__
            # Money-flow state may now disagree with dispute state.
            self._logger.error(
                "Escrow call failed; dispute and escrow state out of sync",
                extra={
                    "dispute_id": dispute_id,
                    "contract_id": contract_id,
                    "escrow_action": action.value,
                    "error_code": error_code,
                },
            )
            raise UpstreamError(
                "ESCROW_UNAVAILABLE",
                f"Escrow {action.value} failed; the call will be retried",
                {"dispute_id": dispute_id, "pending_action": action.value},
            ) from exc

        self._store.clear_escrow_action(dispute_id, action.value)
        self._logger.info(
            "Escrow call acknowledged",
            extra={
                "dispute_id": dispute_id,
                "contract_id": contract_id,
                "escrow_action": action.value,
            },
        )

    async def pause_release(self, dispute: dict[str, Any]) -> None:
        """Pause release of funds for the dispute's contract."""
        dispute_id = str(dispute["dispute_id"])
        contract_id = str(dispute["contract_id"])
        await self._call(
            dispute,
            EscrowAction.PAUSE,
            lambda client, key: client.pause_release(contract_id, dispute_id, key),
        )

    async def resume_or_settle(self, dispute: dict[str, Any]) -> None:
        """Settle held funds per the outcome of an already-resolved dispute."""
        if dispute["status"] not in (DisputeStatus.RESOLVED.value, DisputeStatus.CLOSED.value):
            raise StateError(
                "DISPUTE_NOT_RESOLVED",
                "Escrow can only be settled for a resolved dispute",
                {"dispute_id": dispute["dispute_id"], "status": dispute["status"]},
            )
        dispute_id = str(dispute["dispute_id"])
        contract_id = str(dispute["contract_id"])
        outcome = str(dispute["outcome"])
        artisan_pct = int(dispute["artisan_pct"])
        await self._call(
            dispute,
            EscrowAction.SETTLE,
            lambda client, key: client.settle(contract_id, dispute_id, outcome, artisan_pct, key),
        )

    async def resume_release(self, dispute: dict[str, Any]) -> None:
        """Lift the hold placed when the dispute opened (withdrawal)."""
        dispute_id = str(dispute["dispute_id"])
        contract_id = str(dispute["contract_id"])
        await self._call(
            dispute,
            EscrowAction.RESUME,
            lambda client, key: client.resume_release(contract_id, dispute_id, key),
        )

    async def issue_owed(self, dispute: dict[str, Any]) -> EscrowAction | None:
        """Re-issue whatever escrow call the dispute still owes, if any."""
        pending = dispute.get("escrow_action_pending")
        if pending is None:
            return None
        action = EscrowAction(pending)
        if action is EscrowAction.PAUSE:
            await self.pause_release(dispute)
        elif action is EscrowAction.SETTLE:
            await self.resume_or_settle(dispute)
        else:
            await self.resume_release(dispute)
        return action
