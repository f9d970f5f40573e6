"""Architecture import rule tests for the dispute service.

These tests enforce the project's architectural boundaries:
- The dispute workflow (services/) is independent of the HTTP framework
- Routers reach the workflow through AppState, never through lifecycle code
- Config and schemas remain leaf-like modules
"""

from __future__ import annotations

import pytest
from pytestarch import EvaluableArchitecture, LayeredArchitecture, LayerRule, Rule


@pytest.mark.architecture
class TestServicesLayerIndependence:
    """The services/ layer holds the workflow with no framework imports."""

    def test_services_must_not_import_routers(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """Workflow logic must not depend on HTTP routing."""
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.services")
            .should_not()
            .import_modules_that()
            .are_sub_modules_of("dispute_service.routers")
            .assert_applies(evaluable)
        )

    def test_services_must_not_import_app(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """Workflow logic must not depend on the application factory."""
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.services")
            .should_not()
            .import_modules_that()
            .are_named("dispute_service.app")
            .assert_applies(evaluable)
        )

    def test_services_must_not_import_middleware(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.services")
            .should_not()
            .import_modules_that()
            .are_named("dispute_service.core.middleware")
            .assert_applies(evaluable)
        )

    def test_services_must_not_import_schemas(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """Workflow logic returns plain dicts; response models live at the edge."""
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.services")
            .should_not()
            .import_modules_that()
            .are_named("dispute_service.schemas")
            .assert_applies(evaluable)
        )


@pytest.mark.architecture
class TestLeafModules:
    """Config, schemas and models should not depend on service internals."""

    def test_config_must_not_import_services(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        (
            Rule()
            .modules_that()
            .are_named("dispute_service.config")
            .should_not()
            .import_modules_that()
            .are_sub_modules_of("dispute_service.services")
            .assert_applies(evaluable)
        )

    def test_config_must_not_import_core(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        (
            Rule()
            .modules_that()
            .are_named("dispute_service.config")
            .should_not()
            .import_modules_that()
            .are_sub_modules_of("dispute_service.core")
            .assert_applies(evaluable)
        )

    def test_schemas_must_not_import_services(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """HTTP schemas must not depend on workflow logic."""
        (
            Rule()
            .modules_that()
            .are_named("dispute_service.schemas")
            .should_not()
            .import_modules_that()
            .are_sub_modules_of("dispute_service.services")
            .assert_applies(evaluable)
        )

    def test_models_must_not_import_services(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """Domain types sit below the stores that persist them."""
        (
            Rule()
            .modules_that()
            .are_named("dispute_service.models")
            .should_not()
            .import_modules_that()
            .are_sub_modules_of("dispute_service.services")
            .assert_applies(evaluable)
        )


@pytest.mark.architecture
class TestRouterConstraints:
    """Routers depend on state, schemas and exceptions only."""

    def test_routers_must_not_import_config_directly(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """Config flows to routers via AppState."""
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.routers")
            .should_not()
            .import_modules_that()
            .are_named("dispute_service.config")
            .assert_applies(evaluable)
        )

    def test_routers_must_not_import_app(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.routers")
            .should_not()
            .import_modules_that()
            .are_named("dispute_service.app")
            .assert_applies(evaluable)
        )

    def test_routers_must_not_import_lifespan(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """Routers must not depend on lifecycle management."""
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.routers")
            .should_not()
            .import_modules_that()
            .are_named("dispute_service.core.lifespan")
            .assert_applies(evaluable)
        )

    def test_routers_must_not_import_store(
        self,
        evaluable: EvaluableArchitecture,
    ) -> None:
        """Persistence is reached through DisputeService only."""
        (
            Rule()
            .modules_that()
            .are_sub_modules_of("dispute_service.routers")
            .should_not()
            .import_modules_that()
            .are_named("dispute_service.services.dispute_store")
            .assert_applies(evaluable)
        )


@pytest.mark.architecture
class TestLayeredArchitecture:
    """Layer-level dependency rules."""

    def test_services_layer_must_not_access_routers_layer(
        self,
        evaluable: EvaluableArchitecture,
        layered_arch: LayeredArchitecture,
    ) -> None:
        (
            LayerRule()
            .based_on(layered_arch)
            .layers_that()
            .are_named("services")
            .should_not()
            .access_layers_that()
            .are_named("routers")
            .assert_applies(evaluable)
        )

    def test_services_layer_must_not_access_core_layer(
        self,
        evaluable: EvaluableArchitecture,
        layered_arch: LayeredArchitecture,
    ) -> None:
        """Workflow logic must not depend on core infrastructure."""
        (
            LayerRule()
            .based_on(layered_arch)
            .layers_that()
            .are_named("services")
            .should_not()
            .access_layers_that()
            .are_named("core")
            .assert_applies(evaluable)
        )
