from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import Context
    from .discovery import FilterBuilder


@dataclass(frozen=True)
class Node:
    """A container known to the runtime."""

    id: str
    name: str
    labels: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    def __str__(self) -> str:
        return self.name


class RuntimeAdapter(ABC):
    """Operations the load balancer needs from a container runtime.

    Implementations raise their own errors; the orchestrator wraps them.
    """

    @abstractmethod
    def create(
        self,
        name: str,
        image: str,
        cluster_name: str,
        listen_address: str,
        port: int,
        ctx: Context,
    ) -> Node:
        """Create and start a load balancer container. ``port`` 0 means any free host port."""

    @abstractmethod
    def list(self, filters: FilterBuilder, ctx: Context) -> list[Node]:
        """Containers matching every label predicate, running or not."""

    @abstractmethod
    def address(self, node: Node, ctx: Context) -> str:
        """IP address of the container, or "" when it has none (e.g. stopped)."""

    @abstractmethod
    def write_file(self, node: Node, path: str, content: bytes, ctx: Context) -> None:
        ...

    @abstractmethod
    def signal(self, node: Node, signal_name: str, ctx: Context) -> None:
        ...

    @abstractmethod
    def delete(self, node: Node, ctx: Context) -> None:
        ...
