from __future__ import annotations

import io
import posixpath
import tarfile
import time

import docker
from docker.errors import DockerException, NotFound

from .context import Context
from .db import log_event
from .discovery import EXTERNAL_LOAD_BALANCER_ROLE, FilterBuilder, node_labels
from .runtime import Node, RuntimeAdapter
from .settings import Settings, settings as default_settings


def _client(timeout: float | None = None) -> docker.DockerClient:
    if timeout is None:
        return docker.from_env()
    # docker-py wants a positive timeout; an expired deadline still gets a tiny one.
    return docker.from_env(timeout=max(1, int(round(timeout))))


def docker_available() -> bool:
    try:
        c = _client()
        c.ping()
        return True
    except DockerException:
        return False


def _tar_single_file(name: str, content: bytes) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        info = tarfile.TarInfo(name=name)
        info.size = len(content)
        info.mode = 0o644
        info.mtime = int(time.time())
        tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def _container_ip(attrs: dict, preferred_network: str) -> str:
    state = attrs.get("State") or {}
    if not state.get("Running", False):
        return ""
    networks = (attrs.get("NetworkSettings") or {}).get("Networks") or {}
    ordered = [networks[preferred_network]] if preferred_network in networks else []
    ordered += [cfg for name, cfg in sorted(networks.items()) if name != preferred_network]
    for cfg in ordered:
        if cfg and cfg.get("IPAddress"):
            return cfg["IPAddress"]
    for cfg in ordered:
        if cfg and cfg.get("GlobalIPv6Address"):
            return cfg["GlobalIPv6Address"]
    return (attrs.get("NetworkSettings") or {}).get("IPAddress") or ""


class DockerRuntime(RuntimeAdapter):
    """RuntimeAdapter backed by the local Docker daemon (docker-py)."""

    def __init__(self, config: Settings | None = None):
        self.settings = config or default_settings

    def _client(self, ctx: Context) -> docker.DockerClient:
        return _client(ctx.timeout(self.settings.docker_timeout_s))

    def ensure_network(self, ctx: Context) -> None:
        c = self._client(ctx)
        try:
            c.networks.get(self.settings.docker_network)
        except NotFound:
            c.networks.create(self.settings.docker_network, driver="bridge")
            log_event("INFO", f"Created docker network '{self.settings.docker_network}'.")

    def create(
        self,
        name: str,
        image: str,
        cluster_name: str,
        listen_address: str,
        port: int,
        ctx: Context,
    ) -> Node:
        self.ensure_network(ctx)
        labels = node_labels(cluster_name, EXTERNAL_LOAD_BALANCER_ROLE)
        # (address,) lets docker pick a free host port.
        binding = (listen_address, int(port)) if port else (listen_address,)

        c = self._client(ctx)
        container = c.containers.run(
            image,
            detach=True,
            name=name,
            hostname=name,
            network=self.settings.docker_network,
            labels=labels,
            ports={f"{self.settings.control_plane_port}/tcp": binding},
            # The orchestrator decides when containers come and go.
            restart_policy={"Name": "no"},
        )
        log_event("INFO", f"Started container {name} from image {image}", cluster=cluster_name, container=name)
        return Node(id=container.id, name=name, labels=labels)

    def list(self, filters: FilterBuilder, ctx: Context) -> list[Node]:
        c = self._client(ctx)
        containers = c.containers.list(all=True, filters=filters.to_docker())
        return [Node(id=x.id, name=x.name, labels=dict(x.labels or {})) for x in containers]

    def address(self, node: Node, ctx: Context) -> str:
        c = self._client(ctx)
        cont = c.containers.get(node.id)
        cont.reload()
        return _container_ip(cont.attrs, self.settings.docker_network)

    def write_file(self, node: Node, path: str, content: bytes, ctx: Context) -> None:
        directory, filename = posixpath.split(path)
        c = self._client(ctx)
        cont = c.containers.get(node.id)
        if not cont.put_archive(directory or "/", _tar_single_file(filename, content)):
            raise DockerException(f"failed to write {path} into container {node.name}")

    def signal(self, node: Node, signal_name: str, ctx: Context) -> None:
        c = self._client(ctx)
        c.containers.get(node.id).kill(signal=signal_name)

    def delete(self, node: Node, ctx: Context) -> None:
        c = self._client(ctx)
        try:
            cont = c.containers.get(node.id)
            cont.remove(force=True, v=True)
        except NotFound:
            return
