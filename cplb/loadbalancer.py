from __future__ import annotations

from threading import RLock
from typing import Any, Callable

from . import db
from .api_models import ClusterConfig
from .context import Context
from .discovery import (
    CONTROL_PLANE_ROLE,
    EXTERNAL_LOAD_BALANCER_ROLE,
    backend_servers,
    get_node,
    list_nodes,
    role_filters,
)
from .errors import (
    AdapterFailure,
    AddressUnavailable,
    BackendResolutionFailed,
    Cancelled,
    InvalidArgument,
    LoadBalancerError,
    NotProvisioned,
)
from .haproxy import ConfigData, render_config
from .reload import ReloadTrigger, reload_trigger_for
from .runtime import Node, RuntimeAdapter
from .settings import Settings, settings as default_settings

Renderer = Callable[[ConfigData], bytes]

LISTEN_ADDRESS = "0.0.0.0"


def load_balancer_image(cluster_config: ClusterConfig | None, config: Settings) -> str:
    """Image for the load balancer, e.g. "kindest/haproxy:2.1.1-alpine".

    A per-cluster override wins over the configured default.
    """
    if cluster_config is not None and cluster_config.load_balancer_image:
        return cluster_config.load_balancer_image
    return config.default_image


class LoadBalancer:
    """Manages the load balancer container of a single cluster.

    State is either Absent (``container is None``) or Provisioned. The handle
    only changes after the runtime confirms a create or delete, and every
    public operation holds the instance lock, so overlapping calls for the
    same cluster run one after another.
    """

    def __init__(
        self,
        cluster_name: str,
        image: str,
        runtime: RuntimeAdapter,
        container: Node | None = None,
        config: Settings | None = None,
        renderer: Renderer = render_config,
        reload: ReloadTrigger | None = None,
    ):
        if not cluster_name:
            raise InvalidArgument("create load balancer: cluster name is empty")
        self.name = cluster_name
        self.image = image
        self.runtime = runtime
        self.container = container
        self.settings = config or default_settings
        self.renderer = renderer
        self.reload = reload or reload_trigger_for(self.settings)
        self._lock = RLock()

    @classmethod
    def lookup(
        cls,
        cluster_name: str,
        cluster_config: ClusterConfig | None,
        runtime: RuntimeAdapter,
        config: Settings | None = None,
        ctx: Context | None = None,
        renderer: Renderer = render_config,
        reload: ReloadTrigger | None = None,
    ) -> "LoadBalancer":
        """Build the helper and attach the cluster's existing load balancer container, if any.

        Containers are matched by label whether or not they are running; a
        stopped one is attached but has no IP address.
        """
        if not cluster_name:
            raise InvalidArgument("create load balancer: cluster name is empty")
        config = config or default_settings
        lb = cls(
            cluster_name,
            load_balancer_image(cluster_config, config),
            runtime,
            config=config,
            renderer=renderer,
            reload=reload,
        )
        lb.container = lb._call(
            "find load balancer container",
            get_node,
            runtime,
            role_filters(cluster_name, EXTERNAL_LOAD_BALANCER_ROLE),
            ctx=ctx,
        )
        return lb

    @property
    def container_name(self) -> str:
        return f"{self.name}-lb"

    @property
    def provisioned(self) -> bool:
        return self.container is not None

    @property
    def state(self) -> str:
        return "Provisioned" if self.provisioned else "Absent"

    def _call(self, operation: str, fn: Callable[..., Any], *args: Any, ctx: Context | None) -> Any:
        """Run one runtime call, turning its failures into LoadBalancerErrors."""
        ctx = ctx or Context.background()
        ctx.check(operation)
        try:
            return fn(*args, ctx)
        except LoadBalancerError:
            raise
        except Exception as e:
            if ctx.done:
                raise Cancelled(operation) from e
            raise AdapterFailure(operation, self.name, self.container_name, e) from e

    def create(self, ctx: Context | None = None) -> None:
        """Create the load balancer container unless one is already attached."""
        with self._lock:
            if self.container is not None:
                return
            db.log_event("INFO", "Creating load balancer container", cluster=self.name, container=self.container_name)
            self.container = self._call(
                "create load balancer container",
                self.runtime.create,
                self.container_name,
                self.image,
                self.name,
                LISTEN_ADDRESS,
                0,
                ctx=ctx,
            )

    def control_plane_nodes(self, ctx: Context | None = None) -> list[Node]:
        return self._call(
            "list control plane containers",
            list_nodes,
            self.runtime,
            role_filters(self.name, CONTROL_PLANE_ROLE),
            ctx=ctx,
        )

    def backend_servers(self, ctx: Context | None = None) -> dict[str, str]:
        """Current control-plane backends as name -> ``address:port``, resolved in full."""
        ctx = ctx or Context.background()
        nodes = self.control_plane_nodes(ctx)
        try:
            return backend_servers(self.runtime, nodes, self.settings.control_plane_port, ctx)
        except BackendResolutionFailed as e:
            if ctx.done:
                raise Cancelled("resolve backend addresses") from e
            raise

    def update_configuration(self, ctx: Context | None = None) -> dict[str, str]:
        """Point the load balancer at the current control-plane containers.

        The config is rebuilt from the full backend set, written over the old
        file and then the load balancer is told to reload. Nothing is written
        unless every backend resolved, and nothing is reloaded unless the
        write succeeded. Returns the backend map that was applied.
        """
        ctx = ctx or Context.background()
        with self._lock:
            if self.container is None:
                raise NotProvisioned("configure load balancer", self.name)

            servers = self.backend_servers(ctx)
            port = self.settings.control_plane_port

            data = ConfigData(
                control_plane_port=port,
                backend_servers=servers,
                enable_stats=self.settings.enable_stats,
                stats_port=self.settings.stats_port,
                ipv6=any(addr.startswith("[") for addr in servers.values()),
            )
            try:
                content = self.renderer(data)
            except Exception as e:
                raise AdapterFailure("render load balancer config", self.name, self.container_name, e) from e

            db.log_event(
                "INFO",
                f"Updating load balancer configuration ({len(servers)} backends)",
                cluster=self.name,
                container=self.container_name,
            )
            self._call(
                "write load balancer config",
                self.runtime.write_file,
                self.container,
                self.settings.config_path,
                content,
                ctx=ctx,
            )
            # The new file is in place; if the reload fails the next update re-sends it.
            self._call("reload load balancer", self.reload.reload, self.runtime, self.container, ctx=ctx)
            return servers

    def ip(self, ctx: Context | None = None) -> str:
        with self._lock:
            if self.container is None:
                raise NotProvisioned("get load balancer IP", self.name)
            lb_ip = self._call("get load balancer IP", self.runtime.address, self.container, ctx=ctx)
            if not lb_ip:
                raise AddressUnavailable(self.name, self.container_name)
            return lb_ip

    def delete(self, ctx: Context | None = None) -> None:
        """Delete the load balancer container; the handle is kept if the runtime fails."""
        with self._lock:
            if self.container is None:
                return
            db.log_event("INFO", "Deleting load balancer container", cluster=self.name, container=self.container_name)
            self._call("delete load balancer container", self.runtime.delete, self.container, ctx=ctx)
            self.container = None
