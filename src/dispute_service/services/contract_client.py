"""HTTP client for job contract lookups."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from dispute_service.exceptions import NotFoundError, UpstreamError


class ContractClient:
    """Async client for the contract service."""

    def __init__(self, base_url: str, timeout_seconds: int) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=float(timeout_seconds),
        )

    async def get_contract(self, contract_id: str) -> dict[str, Any]:
        """Fetch contract details used to decide whether it can be disputed."""
        try:
            response = await self._client.get(f"/contracts/{quote(contract_id, safe='')}")
        except httpx.HTTPError as exc:
            raise UpstreamError(
                "CONTRACT_SERVICE_UNAVAILABLE",
                "Cannot reach contract service",
            ) from exc

        if response.status_code == 200:
            try:
                body = response.json()
            except ValueError as exc:
                raise UpstreamError(
                    "CONTRACT_SERVICE_UNAVAILABLE",
                    "Contract service returned malformed contract response",
                ) from exc
            if not isinstance(body, dict) or not isinstance(body.get("status"), str):
                raise UpstreamError(
                    "CONTRACT_SERVICE_UNAVAILABLE",
                    "Contract service returned malformed contract response",
                )
            return body

        if response.status_code == 404:
            raise NotFoundError(
                "CONTRACT_NOT_FOUND",
                "Contract not found",
                {"contract_id": contract_id},
            )

        raise UpstreamError(
            "CONTRACT_SERVICE_UNAVAILABLE",
            f"Contract service returned unexpected status {response.status_code}",
        )

    async def close(self) -> None:
        """Close the underlying async client."""
        await self._client.aclose()
