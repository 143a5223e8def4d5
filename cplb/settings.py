from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("CPLB_DB_PATH", "cplb.db")
    poll_interval_s: int = _env_int("CPLB_POLL_INTERVAL_S", 5)
    docker_network: str = os.getenv("CPLB_DOCKER_NETWORK", "kind")
    docker_timeout_s: int = _env_int("CPLB_DOCKER_TIMEOUT_S", 60)

    # Load balancer image, used unless the cluster overrides it
    lb_image_repository: str = os.getenv("CPLB_LB_IMAGE_REPOSITORY", "kindest")
    lb_image_name: str = os.getenv("CPLB_LB_IMAGE_NAME", "haproxy")
    lb_image_tag: str = os.getenv("CPLB_LB_IMAGE_TAG", "2.1.1-alpine")

    # Load balancer config
    control_plane_port: int = _env_int("CPLB_CONTROL_PLANE_PORT", 6443)
    enable_stats: bool = _env_bool("CPLB_ENABLE_STATS", True)
    stats_port: int = _env_int("CPLB_STATS_PORT", 8404)
    config_path: str = os.getenv("CPLB_CONFIG_PATH", "/usr/local/etc/haproxy/haproxy.cfg")

    # Reload: "signal" (SIGHUP to the main process) or "http" (admin endpoint)
    reload_mode: str = os.getenv("CPLB_RELOAD_MODE", "signal")
    reload_signal: str = os.getenv("CPLB_RELOAD_SIGNAL", "SIGHUP")
    reload_port: int = _env_int("CPLB_RELOAD_PORT", 8404)
    reload_url_path: str = os.getenv("CPLB_RELOAD_URL_PATH", "/reload")
    reload_timeout_s: int = _env_int("CPLB_RELOAD_TIMEOUT_S", 10)

    @property
    def default_image(self) -> str:
        return f"{self.lb_image_repository}/{self.lb_image_name}:{self.lb_image_tag}"


settings = Settings()
