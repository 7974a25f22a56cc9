"""
Relay components.

- core/: constants, exceptions, log sanitizing
- connection/: connection wrapper and registry
- metrics/: counters, gauge and Prometheus exposition
- endpoints/: per-connection WebSocket handler
"""
