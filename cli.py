from __future__ import annotations

import argparse
import json
import sys
import time

from cplb import db
from cplb.api_models import ClusterConfig
from cplb.context import Context
from cplb.docker_ops import DockerRuntime, docker_available
from cplb.errors import LoadBalancerError
from cplb.loadbalancer import LoadBalancer
from cplb.reconciler import Reconciler
from cplb.registry import LoadBalancerRegistry
from cplb.runtime import RuntimeAdapter
from cplb.settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _lookup(args: argparse.Namespace, runtime: RuntimeAdapter, ctx: Context) -> LoadBalancer:
    return LoadBalancer.lookup(args.cluster, ClusterConfig(load_balancer_image=args.image), runtime, ctx=ctx)


def main(argv: list[str] | None = None, runtime: RuntimeAdapter | None = None) -> int:
    p = argparse.ArgumentParser(description="Control-plane load balancer CLI")
    p.add_argument("--timeout", type=float, default=60.0, help="Seconds before an operation is cancelled")
    sub = p.add_subparsers(dest="cmd", required=True)

    def cluster_cmd(name: str, help_text: str) -> argparse.ArgumentParser:
        s = sub.add_parser(name, help=help_text)
        s.add_argument("--cluster", required=True)
        s.add_argument("--image", default=None, help=f"Load balancer image (default {settings.default_image})")
        return s

    cluster_cmd("create", "Create the load balancer container if missing")
    cluster_cmd("update", "Regenerate the config from the control-plane containers and reload")
    cluster_cmd("ip", "Print the load balancer IP")
    cluster_cmd("delete", "Delete the load balancer container")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--cluster", default=None)
    s_ev.add_argument("--limit", type=int, default=20)

    s_watch = sub.add_parser("watch", help="Keep load balancers in sync until interrupted")
    s_watch.add_argument("--cluster", action="append", required=True, help="May be given more than once")
    s_watch.add_argument("--interval", type=int, default=settings.poll_interval_s)

    args = p.parse_args(argv)

    if args.cmd == "events":
        _print(db.latest_events(limit=args.limit, cluster=args.cluster))
        return 0

    if runtime is None:
        if not docker_available():
            _print({"error": "Docker is not available. Start the docker daemon and try again."})
            return 1
        runtime = DockerRuntime()

    if args.cmd == "watch":
        rec = Reconciler(LoadBalancerRegistry(runtime), poll_interval_s=args.interval, timeout_s=args.timeout)
        for name in args.cluster:
            rec.add_cluster(name)
        rec.start()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            rec.stop()
        return 0

    ctx = Context.with_timeout(args.timeout)
    try:
        lb = _lookup(args, runtime, ctx)
        if args.cmd == "create":
            lb.create(ctx)
            _print({"cluster": lb.name, "container": lb.container_name, "image": lb.image, "state": lb.state})
        elif args.cmd == "update":
            servers = lb.update_configuration(ctx)
            _print({"cluster": lb.name, "backends": servers})
        elif args.cmd == "ip":
            _print({"cluster": lb.name, "ip": lb.ip(ctx)})
        elif args.cmd == "delete":
            lb.delete(ctx)
            _print({"cluster": lb.name, "state": lb.state})
        else:
            return 2
    except LoadBalancerError as e:
        _print({"error": str(e), "kind": type(e).__name__})
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
