"""Architecture test fixtures for the dispute service."""

from __future__ import annotations

from pathlib import Path

import pytest
from pytestarch import EvaluableArchitecture, LayeredArchitecture, get_evaluable_architecture

_TESTS_DIR = Path(__file__).resolve().parent.parent
_SERVICE_ROOT = _TESTS_DIR.parent
_PKG_DIR = _SERVICE_ROOT / "src" / "dispute_service"


@pytest.fixture(scope="session")
def evaluable() -> EvaluableArchitecture:
    """Build the evaluable architecture graph for dispute_service."""
    return get_evaluable_architecture(str(_PKG_DIR), str(_PKG_DIR))


@pytest.fixture(scope="session")
def layered_arch() -> LayeredArchitecture:
    """Define the service's layered architecture."""
    return (
        LayeredArchitecture()
        .layer("routers")
        .containing_modules(["dispute_service.routers"])
        .layer("core")
        .containing_modules(["dispute_service.core"])
        .layer("services")
        .containing_modules(["dispute_service.services"])
    )
