"""API route definitions."""

from collections.abc import Awaitable, Callable

from aiohttp import web

from .endpoints import health, metrics, towers

ROUTES: dict[str, Callable[[web.Request], Awaitable[web.Response]]] = {
    "/health": health.handle,
    "/metrics": metrics.handle,
    "/towers": towers.handle_list,
    "/towers/{validator}": towers.handle_tower,
}
"""All API routes mapped to their handlers."""
