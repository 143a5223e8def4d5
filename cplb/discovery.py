from __future__ import annotations

import ipaddress
from typing import Any

from .context import Context
from .errors import BackendResolutionFailed
from .runtime import Node, RuntimeAdapter

FILTER_LABEL = "label"
CLUSTER_LABEL_KEY = "io.x-k8s.kind.cluster"
NODE_ROLE_LABEL_KEY = "io.x-k8s.kind.role"

EXTERNAL_LOAD_BALANCER_ROLE = "external-load-balancer"
CONTROL_PLANE_ROLE = "control-plane"


class FilterBuilder:
    """Equality predicates over container attributes (only labels for now)."""

    def __init__(self) -> None:
        self._filters: dict[str, dict[str, str]] = {}

    def add_key_value(self, kind: str, key: str, value: str) -> "FilterBuilder":
        self._filters.setdefault(kind, {})[key] = value
        return self

    def labels(self) -> dict[str, str]:
        return dict(self._filters.get(FILTER_LABEL, {}))

    def to_docker(self) -> dict[str, Any]:
        return {kind: [f"{k}={v}" for k, v in sorted(kv.items())] for kind, kv in self._filters.items()}

    def matches(self, labels: dict[str, str]) -> bool:
        return all(labels.get(k) == v for k, v in self.labels().items())

    def __repr__(self) -> str:
        return f"FilterBuilder({self.to_docker()!r})"


def role_filters(cluster_name: str, role: str) -> FilterBuilder:
    return (
        FilterBuilder()
        .add_key_value(FILTER_LABEL, CLUSTER_LABEL_KEY, cluster_name)
        .add_key_value(FILTER_LABEL, NODE_ROLE_LABEL_KEY, role)
    )


def node_labels(cluster_name: str, role: str) -> dict[str, str]:
    return role_filters(cluster_name, role).labels()


def list_nodes(runtime: RuntimeAdapter, filters: FilterBuilder, ctx: Context) -> list[Node]:
    return list(runtime.list(filters, ctx))


def get_node(runtime: RuntimeAdapter, filters: FilterBuilder, ctx: Context) -> Node | None:
    """Return the single container matching filters, or None."""
    nodes = list_nodes(runtime, filters, ctx)
    if not nodes:
        return None
    if len(nodes) > 1:
        raise LookupError(f"expected at most 1 container for {filters!r}, got {len(nodes)}")
    return nodes[0]


def join_host_port(host: str, port: int) -> str:
    try:
        if ipaddress.ip_address(host).version == 6:
            return f"[{host}]:{int(port)}"
    except ValueError:
        pass
    return f"{host}:{int(port)}"


def backend_servers(runtime: RuntimeAdapter, nodes: list[Node], port: int, ctx: Context) -> dict[str, str]:
    """Map every node name to ``address:port``.

    All nodes must resolve; a single failure aborts with BackendResolutionFailed
    so a partial backend list is never produced.
    """
    servers: dict[str, str] = {}
    for n in nodes:
        ctx.check("resolve backend address")
        try:
            ip = runtime.address(n, ctx)
        except Exception as e:
            raise BackendResolutionFailed(str(n), f"{type(e).__name__}: {e}") from e
        if not ip:
            raise BackendResolutionFailed(str(n), "container has no IP address")
        servers[str(n)] = join_host_port(ip, port)
    return servers
