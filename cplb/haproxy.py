from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ConfigData:
    control_plane_port: int
    backend_servers: dict[str, str] = field(default_factory=dict)
    enable_stats: bool = False
    stats_port: int = 8404
    ipv6: bool = False


def render_config(data: ConfigData) -> bytes:
    """Render an HAProxy config forwarding the control-plane port to every backend.

    Servers are emitted sorted by name so the same backends always give the
    same bytes.
    """
    lines = [
        "# generated by cplb; changes will be overwritten",
        "global",
        "  log /dev/log local0",
        "  log /dev/log local1 notice",
        "  daemon",
        "",
        "resolvers docker",
        "  nameserver dns 127.0.0.11:53",
        "",
        "defaults",
        "  log global",
        "  mode tcp",
        "  option dontlognull",
        "  timeout connect 5000",
        "  timeout client 50000",
        "  timeout server 50000",
        # lets haproxy start even when a backend name does not resolve yet
        "  default-server init-addr none",
        "",
    ]

    if data.enable_stats:
        lines += [
            "frontend stats",
            f"  bind *:{int(data.stats_port)}",
            "  stats enable",
            "  stats uri /stats",
            "  stats refresh 10s",
            "  stats admin if TRUE",
            "",
        ]

    lines += [
        "frontend control-plane",
        f"  bind *:{int(data.control_plane_port)}",
    ]
    if data.ipv6:
        lines.append(f"  bind :::{int(data.control_plane_port)}")
    lines += [
        "  default_backend kube-apiservers",
        "",
        "backend kube-apiservers",
        "  option httpchk GET /healthz",
    ]

    prefer = "ipv6" if data.ipv6 else "ipv4"
    for name, address in sorted(data.backend_servers.items()):
        lines.append(
            f"  server {name} {address} check check-ssl verify none resolvers docker resolve-prefer {prefer}"
        )

    return ("\n".join(lines) + "\n").encode("utf-8")
