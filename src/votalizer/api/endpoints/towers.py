"""Tower snapshot endpoint handlers."""

from __future__ import annotations

from aiohttp import web

from votalizer.containers import Pubkey
from votalizer.tower import TowerTracker

TRACKER_KEY = web.AppKey("tracker", TowerTracker)
"""Application key under which the server stores the tower tracker."""


async def handle_list(request: web.Request) -> web.Response:
    """
    Handle tracked validator listing.

    Response: JSON object with fields:
        - count (integer): Number of tracked validators.
        - validators (array of string): Base58 validator identities.

    Status Codes:
        200 OK: Listing returned.
    """
    validators = request.app[TRACKER_KEY].validators()
    return web.json_response(
        {"count": len(validators), "validators": [str(v) for v in validators]}
    )


async def handle_tower(request: web.Request) -> web.Response:
    """
    Handle single tower snapshot request.

    Reads the current tower without blocking updates to it.

    Response: The tower as JSON (camelCase fields, Base58 identifiers).

    Status Codes:
        200 OK: Tower returned.
        400 Bad Request: The path segment is not a Base58 validator identity.
        404 Not Found: The validator is not tracked.
    """
    try:
        validator_id = Pubkey.from_base58(request.match_info["validator"])
    except ValueError as e:
        raise web.HTTPBadRequest(reason=f"Invalid validator identity: {e}") from e

    tower = request.app[TRACKER_KEY].snapshot(validator_id)
    if tower is None:
        raise web.HTTPNotFound(reason="Validator not tracked")

    return web.Response(
        body=tower.model_dump_json(by_alias=True),
        content_type="application/json",
    )
