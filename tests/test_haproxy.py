from cplb.haproxy import ConfigData, render_config


def test_render_lists_backends_sorted():
    out = render_config(
        ConfigData(
            control_plane_port=6443,
            backend_servers={"b": "10.0.0.2:6443", "a": "10.0.0.1:6443"},
        )
    ).decode()

    server_lines = [line.strip() for line in out.splitlines() if line.strip().startswith("server ")]
    assert server_lines == [
        "server a 10.0.0.1:6443 check check-ssl verify none resolvers docker resolve-prefer ipv4",
        "server b 10.0.0.2:6443 check check-ssl verify none resolvers docker resolve-prefer ipv4",
    ]
    assert "  bind *:6443" in out
    assert "default_backend kube-apiservers" in out


def test_render_is_deterministic():
    servers = {"x": "10.0.0.9:6443", "y": "10.0.0.8:6443"}
    first = render_config(ConfigData(control_plane_port=6443, backend_servers=servers))
    second = render_config(ConfigData(control_plane_port=6443, backend_servers=dict(reversed(servers.items()))))
    assert first == second


def test_stats_frontend_only_when_enabled():
    off = render_config(ConfigData(control_plane_port=6443)).decode()
    on = render_config(ConfigData(control_plane_port=6443, enable_stats=True, stats_port=9000)).decode()

    assert "frontend stats" not in off
    assert "frontend stats" in on
    assert "bind *:9000" in on


def test_ipv6_binds_and_prefers_ipv6():
    out = render_config(
        ConfigData(control_plane_port=6443, backend_servers={"a": "[fd00::5]:6443"}, ipv6=True)
    ).decode()
    assert "bind :::6443" in out
    assert "resolve-prefer ipv6" in out
