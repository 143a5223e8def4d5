import dataclasses

import pytest

from cplb import db
from cplb.api_models import ClusterConfig
from cplb.discovery import CONTROL_PLANE_ROLE
from cplb.errors import AdapterFailure
from cplb.reconciler import Reconciler
from cplb.registry import LoadBalancerRegistry


def _reconciler(runtime, config):
    return Reconciler(LoadBalancerRegistry(runtime, config=config), poll_interval_s=1, timeout_s=5)


def test_registry_returns_one_instance_per_cluster(fake_runtime, lb_settings):
    reg = LoadBalancerRegistry(fake_runtime, config=lb_settings)
    a = reg.get("demo")
    b = reg.get("demo", ClusterConfig(load_balancer_image="other/lb:1"))
    assert a is b
    assert a.image == "example.test/haproxy:1.0"
    assert reg.clusters() == ["demo"]

    assert reg.forget("demo") is a
    assert reg.clusters() == []


def test_tick_creates_and_configures(fake_runtime, lb_settings):
    fake_runtime.add_node("demo-control-plane", "demo", CONTROL_PLANE_ROLE, ip="10.0.0.5")
    rec = _reconciler(fake_runtime, lb_settings)
    rec.add_cluster("demo")

    rec.tick()

    assert fake_runtime.methods().count("create") == 1
    assert fake_runtime.methods().count("signal") == 1
    assert rec.applied("demo") == {"demo-control-plane": "10.0.0.5:6443"}


def test_tick_reconfigures_only_on_membership_change(fake_runtime, lb_settings):
    fake_runtime.add_node("demo-control-plane", "demo", CONTROL_PLANE_ROLE, ip="10.0.0.5")
    rec = _reconciler(fake_runtime, lb_settings)
    rec.add_cluster("demo")

    rec.tick()
    rec.tick()
    assert fake_runtime.methods().count("write_file") == 1

    fake_runtime.add_node("demo-control-plane2", "demo", CONTROL_PLANE_ROLE, ip="10.0.0.6")
    rec.tick()
    assert fake_runtime.methods().count("write_file") == 2
    assert fake_runtime.methods().count("create") == 1


def test_failed_update_is_logged_and_retried(fake_runtime, lb_settings):
    fake_runtime.add_node("demo-control-plane", "demo", CONTROL_PLANE_ROLE, ip="10.0.0.5")
    rec = _reconciler(fake_runtime, lb_settings)
    rec.add_cluster("demo")
    fake_runtime.fail["signal"] = RuntimeError("not running")

    rec.tick()
    assert rec.applied("demo") is None
    errors = [e for e in db.latest_events(cluster="demo") if e["level"] == "ERROR"]
    assert errors and "reload load balancer" in errors[0]["message"]

    rec.tick()
    assert rec.applied("demo") == {"demo-control-plane": "10.0.0.5:6443"}
    assert fake_runtime.methods().count("signal") == 2


def test_remove_cluster_deletes_load_balancer(fake_runtime, lb_settings):
    rec = _reconciler(fake_runtime, lb_settings)
    rec.add_cluster("demo")
    rec.tick()

    rec.remove_cluster("demo")

    assert fake_runtime.methods().count("delete") == 1
    assert rec.registry.clusters() == []


def test_tick_reconfigures_when_backend_address_changes(fake_runtime, lb_settings):
    node = fake_runtime.add_node("demo-control-plane", "demo", CONTROL_PLANE_ROLE, ip="10.0.0.5")
    rec = _reconciler(fake_runtime, lb_settings)
    rec.add_cluster("demo")
    rec.tick()

    # Same container name, new address after a restart.
    fake_runtime.ips[node.id] = "10.0.0.99"
    rec.tick()

    assert fake_runtime.methods().count("write_file") == 2
    lb = rec.registry.get("demo")
    content = fake_runtime.files[(lb.container.id, lb_settings.config_path)]
    assert b"10.0.0.99:6443" in content
    assert b"10.0.0.5:6443" not in content
    assert rec.applied("demo") == {"demo-control-plane": "10.0.0.99:6443"}


def test_failed_remove_keeps_watching_cluster(fake_runtime, lb_settings):
    rec = _reconciler(fake_runtime, lb_settings)
    rec.add_cluster("demo")
    rec.tick()
    fake_runtime.fail["delete"] = RuntimeError("device busy")

    with pytest.raises(AdapterFailure):
        rec.remove_cluster("demo")
    assert rec.registry.clusters() == ["demo"]

    # Still reconciled, and the removal can be retried.
    rec.tick()
    assert rec.applied("demo") == {}
    rec.remove_cluster("demo")
    assert fake_runtime.methods().count("delete") == 2
    assert rec.registry.clusters() == []


def test_unwritable_event_log_does_not_stop_other_clusters(fake_runtime, lb_settings, tmp_path, monkeypatch):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=str(blocker / "events.db")))
    fake_runtime.add_node("one-control-plane", "one", CONTROL_PLANE_ROLE, ip="10.0.1.5")
    fake_runtime.add_node("two-control-plane", "two", CONTROL_PLANE_ROLE, ip="10.0.2.5")
    rec = _reconciler(fake_runtime, lb_settings)
    rec.add_cluster("one")
    rec.add_cluster("two")

    rec.tick()

    assert rec.applied("one") == {"one-control-plane": "10.0.1.5:6443"}
    assert rec.applied("two") == {"two-control-plane": "10.0.2.5:6443"}
