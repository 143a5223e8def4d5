from __future__ import annotations

import time
from threading import Lock, Thread

from . import db
from .api_models import ClusterConfig
from .context import Context
from .errors import LoadBalancerError
from .registry import LoadBalancerRegistry
from .settings import settings


class Reconciler:
    """Continuously keeps each cluster's load balancer present and pointed at its control plane.

    A cluster is reconfigured only when its control-plane backend map (name -> endpoint)
    differs from what was last applied. Failures are logged and retried on
    the next tick.
    """

    def __init__(
        self,
        registry: LoadBalancerRegistry,
        poll_interval_s: int | None = None,
        timeout_s: float = 60.0,
    ):
        self.registry = registry
        self.poll_interval_s = max(1, int(poll_interval_s or settings.poll_interval_s))
        self.timeout_s = timeout_s
        self._lock = Lock()
        self._clusters: dict[str, ClusterConfig | None] = {}
        self._applied: dict[str, dict[str, str]] = {}  # cluster -> backend map last applied
        self._stop = False
        self._thr: Thread | None = None

    def add_cluster(self, name: str, config: ClusterConfig | None = None) -> None:
        with self._lock:
            self._clusters[name] = config

    def remove_cluster(self, name: str) -> None:
        """Delete a cluster's load balancer, then stop watching the cluster.

        If the delete fails the cluster stays registered so the caller can retry.
        """
        lb = self.registry.get(name, ctx=Context.with_timeout(self.timeout_s))
        lb.delete(Context.with_timeout(self.timeout_s))
        with self._lock:
            self._clusters.pop(name, None)
            self._applied.pop(name, None)
        self.registry.forget(name)

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop = False
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop = True

    def _loop(self) -> None:
        db.log_event("INFO", "Reconciler started")
        while not self._stop:
            try:
                self.tick()
            except Exception as e:
                db.log_event("ERROR", f"Reconciler tick failed: {type(e).__name__}: {e}")
            time.sleep(self.poll_interval_s)

    def tick(self) -> None:
        with self._lock:
            clusters = list(self._clusters.items())
        for name, config in clusters:
            try:
                self._reconcile(name, config)
            except LoadBalancerError as e:
                with self._lock:
                    self._applied.pop(name, None)
                db.log_event("ERROR", f"Reconcile failed: {e}", cluster=name)

    def _reconcile(self, name: str, config: ClusterConfig | None) -> None:
        ctx = Context.with_timeout(self.timeout_s)
        lb = self.registry.get(name, config, ctx)
        lb.create(ctx)

        # A restarted container can keep its name and come back with a new address.
        current = lb.backend_servers(ctx)
        with self._lock:
            if self._applied.get(name) == current:
                return

        servers = lb.update_configuration(ctx)
        with self._lock:
            self._applied[name] = dict(servers)
        db.log_event("INFO", f"Applied {len(servers)} control plane backends", cluster=name)

    def applied(self, name: str) -> dict[str, str] | None:
        with self._lock:
            applied = self._applied.get(name)
            return dict(applied) if applied is not None else None
