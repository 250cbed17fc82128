"""Builds fixed-layer generation plans from an integration configuration."""

from __future__ import annotations

from typing import List, Sequence

from ..models import (
    HOOK,
    MIDDLEWARE,
    PROVIDER,
    QUERY,
    ROUTER,
    STORE,
    GenerationPlan,
    GenerationTask,
    HookConfig,
    IntegrationConfig,
    ProviderConfig,
    RouterConfig,
    TaskConfig,
)
from ..logging import get_logger
from ..prompting.compiler import PromptCompiler

# Execution order; tasks never reference a later layer.
LAYER_ORDER: tuple[str, ...] = (STORE, QUERY, HOOK, ROUTER, MIDDLEWARE, PROVIDER)

ROUTER_TASK_NAME = "AppRouter"
HOOKS_TASK_NAME = "hooks"
PROVIDER_TASK_NAME = "App"


class PlanBuilder:
    """Enumerates the artifacts a configuration needs, in layer order."""

    def __init__(self, compiler: PromptCompiler | None = None) -> None:
        self.compiler = compiler or PromptCompiler()
        self.logger = get_logger("planning")

    def build(self, config: IntegrationConfig) -> GenerationPlan:
        """Return the plan for ``config``; pure apart from prompt validation."""
        tasks: List[GenerationTask] = []

        def add(task_type: str, name: str, filename: str, payload: TaskConfig, dependencies: Sequence[str] = ()) -> GenerationTask:
            task = GenerationTask(
                id=f"{len(tasks) + 1:02d}-{task_type}-{name}",
                type=task_type,
                name=name,
                filename=filename,
                config=payload,
                dependencies=tuple(dependencies),
            )
            tasks.append(task)
            return task

        store_hooks: List[str] = []
        if config.use_state_management:
            for store in config.stores:
                name = f"use{store.name}"
                add(STORE, name, f"{name}.ts", store)
                store_hooks.append(name)

        query_hooks: List[str] = []
        if config.use_data_fetching:
            for query in config.queries:
                name = f"use{query.name}"
                add(QUERY, name, f"{name}.ts", query)
                query_hooks.append(name)

        hooks_task = None
        if config.use_hooks and (store_hooks or query_hooks):
            hooks_task = add(
                HOOK,
                HOOKS_TASK_NAME,
                "hooks/index.ts",
                HookConfig(query_hooks=tuple(query_hooks), store_hooks=tuple(store_hooks)),
                dependencies=[*query_hooks, *store_hooks],
            )

        router_task = None
        if config.use_router and config.routes:
            router_task = add(
                ROUTER,
                ROUTER_TASK_NAME,
                f"{ROUTER_TASK_NAME}.tsx",
                RouterConfig(routes=tuple(config.routes)),
            )

        if config.use_middleware:
            for middleware in config.middlewares:
                name = f"{middleware.name}Middleware"
                add(MIDDLEWARE, name, f"middleware/{name}.ts", middleware)

        provider_dependencies = [task.name for task in (router_task, hooks_task) if task is not None]
        add(
            PROVIDER,
            PROVIDER_TASK_NAME,
            f"{PROVIDER_TASK_NAME}.tsx",
            ProviderConfig(
                use_router=router_task is not None,
                use_data_fetching=bool(query_hooks),
                use_state_management=bool(store_hooks),
                router_module=router_task.name if router_task else None,
                hooks_module=hooks_task.name if hooks_task else None,
            ),
            dependencies=provider_dependencies,
        )

        plan = GenerationPlan(tasks=tuple(tasks))
        for task in plan:
            # Rendering is the validation step; prompts are compiled again at execution time.
            self.compiler.compile(task)
        self.logger.debug(
            "Planned %d task(s): %s", len(plan), ", ".join(task.filename for task in plan)
        )
        return plan


def build_plan(config: IntegrationConfig, compiler: PromptCompiler | None = None) -> GenerationPlan:
    """Build a generation plan for ``config``."""
    return PlanBuilder(compiler).build(config)


__all__ = ["LAYER_ORDER", "PlanBuilder", "build_plan"]
