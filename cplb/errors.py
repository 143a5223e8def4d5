from __future__ import annotations


class LoadBalancerError(Exception):
    """Base class for every error a load balancer operation reports."""


class InvalidArgument(LoadBalancerError):
    pass


class NotProvisioned(LoadBalancerError):
    def __init__(self, operation: str, cluster: str):
        super().__init__(f"{operation}: load balancer for cluster '{cluster}' is not provisioned")
        self.operation = operation
        self.cluster = cluster


class AddressUnavailable(LoadBalancerError):
    def __init__(self, cluster: str, container: str):
        # A stopped container keeps its labels but loses its address.
        super().__init__(
            f"load balancer IP cannot be empty: container {container} of cluster '{cluster}' "
            "does not have an associated IP address"
        )
        self.cluster = cluster
        self.container = container


class BackendResolutionFailed(LoadBalancerError):
    def __init__(self, node: str, reason: str):
        super().__init__(f"failed to get IP for control plane container {node}: {reason}")
        self.node = node
        self.reason = reason


class AdapterFailure(LoadBalancerError):
    def __init__(self, operation: str, cluster: str, container: str | None, cause: BaseException):
        target = f" container {container}" if container else ""
        super().__init__(f"{operation} (cluster '{cluster}'{target}): {type(cause).__name__}: {cause}")
        self.operation = operation
        self.cluster = cluster
        self.container = container
        self.cause = cause


class Cancelled(LoadBalancerError):
    def __init__(self, operation: str):
        super().__init__(f"{operation}: cancelled")
        self.operation = operation
