from __future__ import annotations

from threading import Lock

from .api_models import ClusterConfig
from .context import Context
from .haproxy import render_config
from .loadbalancer import LoadBalancer, Renderer
from .reload import ReloadTrigger
from .runtime import RuntimeAdapter
from .settings import Settings


class LoadBalancerRegistry:
    """One LoadBalancer per cluster name, shared by every caller."""

    def __init__(
        self,
        runtime: RuntimeAdapter,
        config: Settings | None = None,
        renderer: Renderer = render_config,
        reload: ReloadTrigger | None = None,
    ) -> None:
        self.runtime = runtime
        self.config = config
        self.renderer = renderer
        self.reload = reload
        self._lock = Lock()
        self._items: dict[str, LoadBalancer] = {}

    def get(
        self,
        cluster_name: str,
        cluster_config: ClusterConfig | None = None,
        ctx: Context | None = None,
    ) -> LoadBalancer:
        """Return the cluster's LoadBalancer, looking it up on first use.

        The image is resolved at lookup; later overrides need ``forget`` first.
        """
        with self._lock:
            lb = self._items.get(cluster_name)
            if lb is None:
                lb = LoadBalancer.lookup(
                    cluster_name,
                    cluster_config,
                    self.runtime,
                    config=self.config,
                    ctx=ctx,
                    renderer=self.renderer,
                    reload=self.reload,
                )
                self._items[cluster_name] = lb
            return lb

    def forget(self, cluster_name: str) -> LoadBalancer | None:
        with self._lock:
            return self._items.pop(cluster_name, None)

    def clusters(self) -> list[str]:
        with self._lock:
            return sorted(self._items)
