"""HTTP client for the escrow service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from dispute_service.exceptions import UpstreamError

if TYPE_CHECKING:
    from dispute_service.services.platform_signer import PlatformSigner


class EscrowClient:
    """Async client for pausing, resuming and settling held funds."""

    def __init__(
        self,
        base_url: str,
        signer: PlatformSigner,
        timeout_seconds: int,
    ) -> None:
        self._signer = signer
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=float(timeout_seconds),
        )

    async def _post(
        self,
        contract_id: str,
        operation: str,
        payload: dict[str, Any],
        idempotency_key: str,
    ) -> dict[str, Any]:
        token = self._signer.sign(payload)
        try:
            response = await self._client.post(
                f"/escrow/{quote(contract_id, safe='')}/{operation}",
                json={"token": token},
                headers={"Idempotency-Key": idempotency_key},
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(
                "ESCROW_UNAVAILABLE",
                "Cannot reach escrow service",
            ) from exc

        if 200 <= response.status_code < 300:
            try:
                body = response.json()
            except ValueError:
                return {}
            return body if isinstance(body, dict) else {}

        raise UpstreamError(
            "ESCROW_UNAVAILABLE",
            f"Escrow service returned unexpected status {response.status_code}",
        )

    async def pause_release(
        self,
        contract_id: str,
        dispute_id: str,
        idempotency_key: str,
    ) -> dict[str, Any]:
        """Hold any further release of funds for the contract."""
        payload = {
            "action": "pause_release",
            "contract_id": contract_id,
            "dispute_id": dispute_id,
            "idempotency_key": idempotency_key,
        }
        return await self._post(contract_id, "pause", payload, idempotency_key)

    async def resume_release(
        self,
        contract_id: str,
        dispute_id: str,
        idempotency_key: str,
    ) -> dict[str, Any]:
        """Lift a dispute hold and let normal milestone release continue."""
        payload = {
            "action": "resume_release",
            "contract_id": contract_id,
            "dispute_id": dispute_id,
            "idempotency_key": idempotency_key,
        }
        return await self._post(contract_id, "resume", payload, idempotency_key)

    async def settle(
        self,
        contract_id: str,
        dispute_id: str,
        outcome: str,
        artisan_pct: int,
        idempotency_key: str,
    ) -> dict[str, Any]:
        """Release, refund or split held funds per the dispute outcome."""
        payload = {
            "action": "settle",
            "contract_id": contract_id,
            "dispute_id": dispute_id,
            "outcome": outcome,
            "artisan_pct": artisan_pct,
            "idempotency_key": idempotency_key,
        }
        return await self._post(contract_id, "settle", payload, idempotency_key)

    async def close(self) -> None:
        """Close the underlying async client."""
        await self._client.aclose()
