"""
Diagnostics API module.

Provides HTTP endpoints for health checks, Prometheus metrics and read-only
tower snapshots.
"""

from .server import ApiServer, ApiServerConfig, create_app

__all__ = [
    "ApiServer",
    "ApiServerConfig",
    "create_app",
]
