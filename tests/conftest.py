import dataclasses
import os as _os
import sys

import pytest

# Ensure project root is importable (so `import cli` works reliably across environments)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from cplb import db  # noqa: E402
from cplb.discovery import EXTERNAL_LOAD_BALANCER_ROLE, node_labels  # noqa: E402
from cplb.runtime import Node, RuntimeAdapter  # noqa: E402
from cplb.settings import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the event log at a throwaway sqlite file."""
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=str(tmp_path / "events.db")))
    yield


class FakeRuntime(RuntimeAdapter):
    """In-memory runtime that records every call.

    ``fail[method]`` is raised on the next call of that method; ``hooks[method]``
    is called with the context before the method runs.
    """

    def __init__(self):
        self.nodes: dict[str, Node] = {}
        self.ips: dict[str, str] = {}
        self.files: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple] = []
        self.fail: dict[str, Exception] = {}
        self.hooks: dict = {}
        self._seq = 0

    def add_node(self, name, cluster, role, ip=""):
        self._seq += 1
        node = Node(id=f"id-{self._seq}", name=name, labels=node_labels(cluster, role))
        self.nodes[node.id] = node
        self.ips[node.id] = ip
        return node

    def _enter(self, method, ctx, *args):
        self.calls.append((method, *args))
        hook = self.hooks.get(method)
        if hook:
            hook(ctx)
        err = self.fail.pop(method, None)
        if err is not None:
            raise err

    def methods(self):
        return [c[0] for c in self.calls]

    def create(self, name, image, cluster_name, listen_address, port, ctx):
        self._enter("create", ctx, name, image, cluster_name, listen_address, port)
        node = self.add_node(name, cluster_name, EXTERNAL_LOAD_BALANCER_ROLE, ip="172.18.0.100")
        return node

    def list(self, filters, ctx):
        self._enter("list", ctx, filters.labels())
        return [n for n in self.nodes.values() if filters.matches(n.labels)]

    def address(self, node, ctx):
        self._enter("address", ctx, node.name)
        if node.id not in self.nodes:
            raise LookupError(f"no such container {node.name}")
        return self.ips.get(node.id, "")

    def write_file(self, node, path, content, ctx):
        self._enter("write_file", ctx, node.name, path, content)
        self.files[(node.id, path)] = content

    def signal(self, node, signal_name, ctx):
        self._enter("signal", ctx, node.name, signal_name)

    def delete(self, node, ctx):
        self._enter("delete", ctx, node.id)
        self.nodes.pop(node.id, None)
        self.ips.pop(node.id, None)


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def lb_settings(tmp_path):
    return Settings(
        db_path=str(tmp_path / "events.db"),
        lb_image_repository="example.test",
        lb_image_name="haproxy",
        lb_image_tag="1.0",
        reload_mode="signal",
    )


