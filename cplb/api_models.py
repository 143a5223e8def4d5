from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ClusterConfig(BaseModel):
    """Per-cluster settings the load balancer cares about."""

    load_balancer_image: str | None = Field(
        None, description="Image (repository/name:tag) overriding the default load balancer image"
    )

    @field_validator("load_balancer_image")
    @classmethod
    def _no_whitespace(cls, v: str | None) -> str | None:
        if v and any(ch.isspace() for ch in v):
            raise ValueError("load_balancer_image must not contain whitespace.")
        return v
