"""Tests for fixed-layer plan construction."""

from __future__ import annotations

import pytest

from scaffoldgen.config import ConfigError
from scaffoldgen.models import IntegrationConfig, MiddlewareConfig, StoreConfig
from scaffoldgen.planning import LAYER_ORDER, PlanBuilder, build_plan
from scaffoldgen.prompting import PromptCompiler


def test_single_store_without_router_yields_store_then_provider() -> None:
    config = IntegrationConfig.from_mapping(
        {"stores": [{"name": "A"}], "queries": [], "routes": [], "useRouter": False}
    )

    plan = build_plan(config)

    assert [(task.type, task.name, task.filename) for task in plan] == [
        ("store", "useA", "useA.ts"),
        ("provider", "App", "App.tsx"),
    ]
    assert [task.id for task in plan] == ["01-store-useA", "02-provider-App"]


def test_disabling_every_optional_layer_leaves_only_the_provider() -> None:
    config = IntegrationConfig(
        use_state_management=False,
        use_data_fetching=False,
        use_hooks=False,
        use_router=False,
        use_middleware=False,
        stores=[StoreConfig(name="Ignored")],
    )

    plan = build_plan(config)

    assert len(plan) == 1
    assert plan.provider.filename == "App.tsx"
    assert plan.provider.dependencies == ()


def test_layers_follow_fixed_order(blog_integration: IntegrationConfig) -> None:
    plan = build_plan(blog_integration)

    types = [task.type for task in plan]
    assert types == ["store", "query", "query", "hook", "router", "middleware", "provider"]
    assert sorted(types, key=LAYER_ORDER.index) == types
    assert [task.filename for task in plan] == [
        "useAuth.ts",
        "usePosts.ts",
        "useCreatePost.ts",
        "hooks/index.ts",
        "AppRouter.tsx",
        "middleware/authMiddleware.ts",
        "App.tsx",
    ]


def test_dependencies_come_from_configuration(blog_integration: IntegrationConfig) -> None:
    plan = build_plan(blog_integration)
    by_name = {task.name: task for task in plan}

    assert by_name["hooks"].dependencies == ("usePosts", "useCreatePost", "useAuth")
    assert by_name["App"].dependencies == ("AppRouter", "hooks")
    assert by_name["App"].config.router_module == "AppRouter"
    assert by_name["App"].config.use_data_fetching is True


def test_within_a_layer_input_order_is_kept() -> None:
    config = IntegrationConfig.from_mapping(
        {"stores": [{"name": "Zeta"}, {"name": "Alpha"}, {"name": "Mid"}], "useRouter": False}
    )

    plan = build_plan(config)

    assert [task.name for task in plan.of_type("store")] == ["useZeta", "useAlpha", "useMid"]


def test_router_layer_needs_routes() -> None:
    plan = build_plan(IntegrationConfig(use_router=True, routes=[]))

    assert plan.of_type("router") == []
    assert plan.provider.config.use_router is False


def test_build_is_deterministic(blog_integration: IntegrationConfig) -> None:
    assert build_plan(blog_integration) == build_plan(blog_integration)


def test_compile_failure_aborts_plan_construction(tmp_path) -> None:
    # An override template referencing an unknown field breaks every store prompt.
    (tmp_path / "store.md.j2").write_text("{{ config.missing_field }}", encoding="utf-8")
    builder = PlanBuilder(PromptCompiler(tmp_path))

    with pytest.raises(ConfigError):
        builder.build(IntegrationConfig(stores=[StoreConfig(name="A")]))


def test_middleware_layer_can_be_switched_off() -> None:
    config = IntegrationConfig(
        use_middleware=False,
        middlewares=[MiddlewareConfig(name="cors", kind="cors")],
    )

    assert build_plan(config).of_type("middleware") == []
