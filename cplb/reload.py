from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from .context import Context
from .discovery import join_host_port
from .errors import InvalidArgument
from .runtime import Node, RuntimeAdapter
from .settings import Settings


class ReloadTrigger(ABC):
    """Makes a running load balancer pick up the config file just written."""

    @abstractmethod
    def reload(self, runtime: RuntimeAdapter, node: Node, ctx: Context) -> None:
        ...


class SignalReload(ReloadTrigger):
    def __init__(self, signal_name: str = "SIGHUP"):
        self.signal_name = signal_name

    def reload(self, runtime: RuntimeAdapter, node: Node, ctx: Context) -> None:
        runtime.signal(node, self.signal_name, ctx)


class HttpReload(ReloadTrigger):
    """POST to an admin endpoint on the load balancer, for runtimes without signals."""

    def __init__(
        self,
        port: int,
        path: str = "/reload",
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not path.startswith("/"):
            raise InvalidArgument("reload path must start with '/'.")
        self.port = int(port)
        self.path = path
        self.timeout_s = timeout_s
        self.transport = transport

    def url_for(self, address: str) -> str:
        return f"http://{join_host_port(address, self.port)}{self.path}"

    def reload(self, runtime: RuntimeAdapter, node: Node, ctx: Context) -> None:
        address = runtime.address(node, ctx)
        if not address:
            raise RuntimeError(f"container {node.name} has no IP address to send the reload to")
        with httpx.Client(
            timeout=ctx.timeout(self.timeout_s), follow_redirects=False, transport=self.transport
        ) as client:
            resp = client.post(self.url_for(address))
        resp.raise_for_status()


def reload_trigger_for(config: Settings) -> ReloadTrigger:
    mode = config.reload_mode.strip().lower()
    if mode == "signal":
        return SignalReload(config.reload_signal)
    if mode == "http":
        return HttpReload(config.reload_port, config.reload_url_path, config.reload_timeout_s)
    raise InvalidArgument(f"Unknown reload mode '{config.reload_mode}'. Use 'signal' or 'http'.")
