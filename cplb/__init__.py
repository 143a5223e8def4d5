"""Control-Plane Load Balancer (CPLB).

Lifecycle management for the external load balancer that fronts the
control-plane containers of a container-hosted cluster:
 - one load-balancer container per cluster, found by label or created on demand
 - backend discovery of control-plane containers by label
 - full config regeneration, written into the container and hot-reloaded

The orchestrator never schedules work on its own; a reconciler calls it.
"""
