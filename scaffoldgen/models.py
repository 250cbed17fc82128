"""Core data models shared across scaffoldgen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .config import ConfigError, _as_bool, _as_dict, _as_str, _as_str_list

STORE = "store"
QUERY = "query"
HOOK = "hook"
ROUTER = "router"
MIDDLEWARE = "middleware"
PROVIDER = "provider"

TASK_TYPES: tuple[str, ...] = (STORE, QUERY, HOOK, ROUTER, MIDDLEWARE, PROVIDER)

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})
MIDDLEWARE_KINDS = frozenset({"auth", "validation", "logging", "error", "rate-limit", "cors", "custom"})
AUTH_STRATEGIES = frozenset({"jwt", "session", "api-key", "oauth"})
TOKEN_LOCATIONS = frozenset({"header", "cookie", "query"})


def _require(value: Optional[str], field_name: str, owner: str) -> None:
    if not value or not str(value).strip():
        raise ConfigError(f"{owner} requires a non-empty '{field_name}'")


@dataclass(frozen=True)
class StoreConfig:
    """State container definition rendered as a `use<Name>` store hook."""

    name: str
    description: str = ""
    state: Mapping[str, str] = field(default_factory=dict)
    actions: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _require(self.name, "name", "store")


@dataclass(frozen=True)
class QueryConfig:
    """Data-fetching hook bound to one API endpoint."""

    name: str
    endpoint: str
    method: str = "GET"
    params: Tuple[str, ...] = ()
    used_by: Tuple[str, ...] = ()
    api_base_url: str = ""

    def __post_init__(self) -> None:
        _require(self.name, "name", "query")
        _require(self.endpoint, "endpoint", f"query '{self.name}'")
        if self.method.upper() not in HTTP_METHODS:
            raise ConfigError(f"query '{self.name}' has unsupported method '{self.method}'")
        object.__setattr__(self, "method", self.method.upper())

    @property
    def is_mutation(self) -> bool:
        return self.method != "GET"


@dataclass(frozen=True)
class HookConfig:
    """Index module that re-exports the generated store and query hooks."""

    query_hooks: Tuple[str, ...] = ()
    store_hooks: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.query_hooks and not self.store_hooks:
            raise ConfigError("hook index requires at least one store or query hook")


@dataclass(frozen=True)
class RouteDefinition:
    """A single client-side route."""

    path: str
    component: str
    protected: bool = False
    layout: Optional[str] = None

    def __post_init__(self) -> None:
        _require(self.path, "path", "route")
        _require(self.component, "component", f"route '{self.path}'")


@dataclass(frozen=True)
class RouterConfig:
    """Router module covering every configured route."""

    routes: Tuple[RouteDefinition, ...]

    def __post_init__(self) -> None:
        if not self.routes:
            raise ConfigError("router requires at least one route")

    @property
    def has_protected_routes(self) -> bool:
        return any(route.protected for route in self.routes)


@dataclass(frozen=True)
class MiddlewareConfig:
    """Server middleware definition; auth middleware carries its token settings."""

    name: str
    kind: str
    description: str = ""
    strategy: Optional[str] = None
    token_location: Optional[str] = None
    optional: bool = False
    roles: Tuple[str, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _require(self.name, "name", "middleware")
        if self.kind not in MIDDLEWARE_KINDS:
            raise ConfigError(f"middleware '{self.name}' has unsupported kind '{self.kind}'")
        if self.kind == "auth":
            owner = f"auth middleware '{self.name}'"
            _require(self.strategy, "strategy", owner)
            _require(self.token_location, "token_location", owner)
            if self.strategy not in AUTH_STRATEGIES:
                raise ConfigError(f"{owner} has unsupported strategy '{self.strategy}'")
            if self.token_location not in TOKEN_LOCATIONS:
                raise ConfigError(f"{owner} has unsupported token location '{self.token_location}'")

    @property
    def is_auth(self) -> bool:
        return self.kind == "auth"


@dataclass(frozen=True)
class ProviderConfig:
    """Root application module wiring providers around the router."""

    use_router: bool = False
    use_data_fetching: bool = False
    use_state_management: bool = False
    router_module: Optional[str] = None
    hooks_module: Optional[str] = None


TaskConfig = Union[StoreConfig, QueryConfig, HookConfig, RouterConfig, MiddlewareConfig, ProviderConfig]

CONFIG_TYPES: Dict[str, type] = {
    STORE: StoreConfig,
    QUERY: QueryConfig,
    HOOK: HookConfig,
    ROUTER: RouterConfig,
    MIDDLEWARE: MiddlewareConfig,
    PROVIDER: ProviderConfig,
}


@dataclass(frozen=True)
class GenerationTask:
    """One artifact-generation unit and its configuration."""

    id: str
    type: str
    name: str
    filename: str
    config: TaskConfig
    dependencies: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        expected = CONFIG_TYPES.get(self.type)
        if expected is None:
            raise ConfigError(f"Unknown task type '{self.type}'")
        if not isinstance(self.config, expected):
            raise ConfigError(
                f"Task '{self.name}' of type '{self.type}' requires {expected.__name__}, "
                f"got {type(self.config).__name__}"
            )
        _require(self.filename, "filename", f"task '{self.name}'")


@dataclass(frozen=True)
class GenerationPlan:
    """Immutable, ordered sequence of generation tasks ending with the provider."""

    tasks: Tuple[GenerationTask, ...]

    def __post_init__(self) -> None:
        if not self.tasks:
            raise ConfigError("A generation plan cannot be empty")
        if self.tasks[-1].type != PROVIDER:
            raise ConfigError("The provider task must be the last task in a plan")
        if sum(1 for task in self.tasks if task.type == PROVIDER) != 1:
            raise ConfigError("A generation plan must contain exactly one provider task")

        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for task in self.tasks:
            if task.id in seen_ids:
                raise ConfigError(f"Duplicate task id '{task.id}'")
            if task.name in seen_names:
                raise ConfigError(f"Duplicate task name '{task.name}'")
            # Dependencies may only point backwards, which also rules out cycles.
            for dependency in task.dependencies:
                if dependency not in seen_names:
                    raise ConfigError(
                        f"Task '{task.name}' depends on '{dependency}', which is not planned before it"
                    )
            seen_ids.add(task.id)
            seen_names.add(task.name)

    def __iter__(self) -> Iterator[GenerationTask]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    @property
    def provider(self) -> GenerationTask:
        return self.tasks[-1]

    def of_type(self, task_type: str) -> List[GenerationTask]:
        return [task for task in self.tasks if task.type == task_type]

    def describe(self) -> List[Dict[str, object]]:
        """Return a JSON-friendly summary used in progress payloads."""
        return [
            {
                "id": task.id,
                "type": task.type,
                "name": task.name,
                "filename": task.filename,
                "dependencies": list(task.dependencies),
            }
            for task in self.tasks
        ]


@dataclass(frozen=True)
class GeneratedArtifact:
    """Extracted source text for one task."""

    task_id: str
    filename: str
    source: str
    fenced: bool

    @property
    def low_confidence(self) -> bool:
        return not self.fenced


@dataclass
class IntegrationConfig:
    """Plan builder input describing which layers to generate."""

    use_state_management: bool = True
    use_data_fetching: bool = True
    use_hooks: bool = False
    use_router: bool = True
    use_middleware: bool = True
    api_base_url: str = ""
    stores: List[StoreConfig] = field(default_factory=list)
    queries: List[QueryConfig] = field(default_factory=list)
    routes: List[RouteDefinition] = field(default_factory=list)
    middlewares: List[MiddlewareConfig] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "IntegrationConfig":
        """Build a config from camelCase or snake_case keys, validating every entry."""
        if not isinstance(data, Mapping):
            raise ConfigError("Integration config must be a mapping")
        defaults = cls()
        api_base_url = _as_str(_pick(data, "api_base_url", "apiBaseUrl")) or ""

        stores = [
            StoreConfig(
                name=_as_str(item.get("name")) or "",
                description=_as_str(item.get("description")) or "",
                state={str(key): str(value) for key, value in _as_dict(item.get("state")).items()},
                actions=tuple(_as_str_list(item.get("actions"))),
            )
            for item in _as_mappings(data.get("stores"), "stores")
        ]
        queries = [
            QueryConfig(
                name=_as_str(item.get("name")) or "",
                endpoint=_as_str(item.get("endpoint")) or "",
                method=_as_str(item.get("method")) or "GET",
                params=tuple(_as_str_list(item.get("params"))),
                used_by=tuple(_as_str_list(_pick(item, "used_by", "usedBy"))),
                api_base_url=api_base_url,
            )
            for item in _as_mappings(data.get("queries"), "queries")
        ]
        routes = [
            RouteDefinition(
                path=_as_str(item.get("path")) or "",
                component=_as_str(_pick(item, "component", "componentName")) or "",
                protected=bool(_as_bool(item.get("protected"))),
                layout=_as_str(item.get("layout")),
            )
            for item in _as_mappings(data.get("routes"), "routes")
        ]
        middlewares = []
        for item in _as_mappings(data.get("middlewares"), "middlewares"):
            nested = _as_dict(item.get("config"))
            middlewares.append(
                MiddlewareConfig(
                    name=_as_str(item.get("name")) or "",
                    kind=_as_str(_pick(item, "kind", "type")) or "custom",
                    description=_as_str(item.get("description")) or "",
                    strategy=_as_str(item.get("strategy") or nested.get("strategy")),
                    token_location=_as_str(
                        _pick(item, "token_location", "tokenLocation")
                        or _pick(nested, "token_location", "tokenLocation")
                    ),
                    optional=bool(_as_bool(item.get("optional") or nested.get("optional"))),
                    roles=tuple(_as_str_list(item.get("roles") or nested.get("roles"))),
                    options=dict(_as_dict(item.get("options"))),
                )
            )

        return cls(
            use_state_management=_flag(data, defaults.use_state_management, "use_state_management", "useStateManagement"),
            use_data_fetching=_flag(data, defaults.use_data_fetching, "use_data_fetching", "useDataFetching"),
            use_hooks=_flag(data, defaults.use_hooks, "use_hooks", "useHooks"),
            use_router=_flag(data, defaults.use_router, "use_router", "useRouter"),
            use_middleware=_flag(data, defaults.use_middleware, "use_middleware", "useMiddleware"),
            api_base_url=api_base_url,
            stores=stores,
            queries=queries,
            routes=routes,
            middlewares=middlewares,
        )

    def summary(self) -> Dict[str, object]:
        return {
            "useStateManagement": self.use_state_management,
            "useDataFetching": self.use_data_fetching,
            "useHooks": self.use_hooks,
            "useRouter": self.use_router,
            "useMiddleware": self.use_middleware,
            "stores": [store.name for store in self.stores],
            "queries": [query.name for query in self.queries],
            "routes": [route.path for route in self.routes],
            "middlewares": [middleware.name for middleware in self.middlewares],
        }


@dataclass
class TechStack:
    frontend: Optional[str] = None
    backend: Optional[str] = None
    database: Optional[str] = None


@dataclass
class ProjectRequest:
    """A build request submitted by a caller."""

    project_name: str
    description: str
    requirements: str
    tech_stack: Optional[TechStack] = None
    integration: Optional[IntegrationConfig] = None


@dataclass
class GenerationResult:
    """Outcome of one build request."""

    project_id: str
    success: bool
    phases: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "projectId": self.project_id,
            "success": self.success,
            "phases": self.phases,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GenerationResult":
        return cls(
            project_id=str(data.get("projectId", "")),
            success=bool(data.get("success", False)),
            phases=dict(_as_dict(data.get("phases"))),
            error=_as_str(data.get("error")),
        )


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _flag(data: Mapping[str, Any], default: bool, *keys: str) -> bool:
    value = _as_bool(_pick(data, *keys))
    return default if value is None else value


def _as_mappings(value: Any, label: str) -> List[Mapping[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise ConfigError(f"'{label}' must be a list")
    items = []
    for item in value:
        if not isinstance(item, Mapping):
            raise ConfigError(f"Every entry in '{label}' must be a mapping")
        items.append(item)
    return items


__all__ = [
    "CONFIG_TYPES",
    "GeneratedArtifact",
    "GenerationPlan",
    "GenerationResult",
    "GenerationTask",
    "HOOK",
    "HookConfig",
    "IntegrationConfig",
    "MIDDLEWARE",
    "MiddlewareConfig",
    "PROVIDER",
    "ProjectRequest",
    "ProviderConfig",
    "QUERY",
    "QueryConfig",
    "ROUTER",
    "RouteDefinition",
    "RouterConfig",
    "STORE",
    "StoreConfig",
    "TASK_TYPES",
    "TaskConfig",
    "TechStack",
]
