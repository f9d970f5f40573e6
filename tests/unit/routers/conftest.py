"""Router test fixtures with mocked external services."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from dispute_service.app import create_app
from dispute_service.config import clear_settings_cache
from dispute_service.core.state import get_app_state, reset_app_state
from tests.helpers import (
    VALID_COUNTER,
    VALID_DESCRIPTION,
    VALID_RESPONSE,
    make_mock_contract_client,
    make_mock_escrow_client,
    make_mock_upload_client,
    new_contract_id,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from unittest.mock import AsyncMock

    from fastapi import FastAPI


def _valid_config(tmp_path: Any, db_path: str | None = None) -> str:
    """Write a valid dispute service config.yaml and return its path."""
    if db_path is None:
        db_path = str(tmp_path / "test.db")
    config_content = f"""\
service:
  name: "disputes"
  version: "0.1.0"
server:
  host: "0.0.0.0"
  port: 8010
  log_level: "info"
logging:
  level: "WARNING"
  directory: "{tmp_path / "logs"}"
database:
  path: "{db_path}"
contracts:
  base_url: "http://localhost:8011"
  timeout_seconds: 10
escrow:
  base_url: "http://localhost:8012"
  timeout_seconds: 10
uploads:
  base_url: "http://localhost:8013"
  timeout_seconds: 10
platform:
  agent_id: "korrect-platform-test"
disputes:
  min_description_length: 50
  max_description_length: 2000
  min_response_length: 50
  min_counter_length: 20
  max_response_length: 2000
  max_notes_length: 1000
  response_window_seconds: 172800
  counter_window_seconds: 259200
  resolved_grace_seconds: 604800
  disputable_contract_statuses:
    - "signed"
    - "active"
    - "disputed"
evidence:
  max_file_size_bytes: 1024
  max_description_length: 500
sweeper:
  enabled: false
  interval_seconds: 3600
request:
  max_body_size: 1048576
  max_upload_body_size: 4096
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content)
    return str(config_path)


@pytest.fixture
async def app(tmp_path: Any) -> AsyncIterator[FastAPI]:
    """Create a test app with mocked external services."""
    config_path = _valid_config(tmp_path)
    os.environ["CONFIG_PATH"] = config_path

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with test_app.router.lifespan_context(test_app):
        inject_contract_client(make_mock_contract_client())
        inject_escrow_client(make_mock_escrow_client())
        inject_upload_client(make_mock_upload_client())
        yield test_app

    reset_app_state()
    clear_settings_cache()


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


def inject_contract_client(mock_client: AsyncMock) -> AsyncMock:
    """Swap the contract client on app state and on the dispute service."""
    state = get_app_state()
    state.contract_client = mock_client
    assert state.dispute_service is not None
    state.dispute_service.contract_client = mock_client
    return mock_client


def inject_escrow_client(mock_client: AsyncMock) -> AsyncMock:
    """Swap the escrow client on app state and on the escrow interlock."""
    state = get_app_state()
    state.escrow_client = mock_client
    assert state.dispute_service is not None
    state.dispute_service.interlock.escrow_client = mock_client
    return mock_client


def inject_upload_client(mock_client: AsyncMock) -> AsyncMock:
    """Swap the upload client on app state and on the dispute service."""
    state = get_app_state()
    state.upload_client = mock_client
    assert state.dispute_service is not None
    state.dispute_service.upload_client = mock_client
    return mock_client


def current_escrow_client() -> AsyncMock:
    """Return the mock escrow client currently injected."""
    escrow_client = get_app_state().escrow_client
    assert escrow_client is not None
    return escrow_client  # type: ignore[return-value]


def current_upload_client() -> AsyncMock:
    """Return the mock upload client currently injected."""
    upload_client = get_app_state().upload_client
    assert upload_client is not None
    return upload_client  # type: ignore[return-value]


def create_payload(
    contract_id: str | None = None,
    category: str = "quality_issue",
    description: str = VALID_DESCRIPTION,
    **overrides: Any,
) -> dict[str, Any]:
    """Return a valid create-dispute body."""
    base: dict[str, Any] = {
        "contract_id": contract_id or new_contract_id(),
        "category": category,
        "description": description,
    }
    base.update(overrides)
    return base


async def create_dispute(
    client: AsyncClient,
    payload: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Open a dispute and return the response JSON. Assumes mocks are configured."""
    response = await client.post("/disputes", json=payload or create_payload())
    assert response.status_code == 201, f"Failed to create dispute: {response.text}"
    return response.json()


async def create_and_respond(client: AsyncClient) -> dict[str, Any]:
    """Open a dispute and record the artisan response."""
    dispute = await create_dispute(client)
    response = await client.post(
        f"/disputes/{dispute['dispute_id']}/respond",
        json={"content": VALID_RESPONSE},
    )
    assert response.status_code == 200, f"Failed to respond: {response.text}"
    return response.json()


async def create_under_review(client: AsyncClient) -> dict[str, Any]:
    """Open a dispute and walk it through response and counter into review."""
    dispute = await create_and_respond(client)
    response = await client.post(
        f"/disputes/{dispute['dispute_id']}/respond",
        json={"content": VALID_COUNTER},
    )
    assert response.status_code == 200, f"Failed to counter: {response.text}"
    return response.json()


async def create_resolved(
    client: AsyncClient,
    outcome: str = "split",
    artisan_pct: int | None = 60,
) -> dict[str, Any]:
    """Walk a dispute into resolved status."""
    dispute = await create_under_review(client)
    body: dict[str, Any] = {"outcome": outcome, "notes": "Both parties share the fault."}
    if artisan_pct is not None:
        body["artisan_pct"] = artisan_pct
    response = await client.post(f"/disputes/{dispute['dispute_id']}/resolve", json=body)
    assert response.status_code == 200, f"Failed to resolve: {response.text}"
    return response.json()
