"""
aiohttp application serving the speed test.

Routes::

    GET /            browser speed test page
    GET /locations   upstream location metadata, proxied verbatim
    GET /download    default-size payload
    GET /{size}      payload of the requested size, e.g. /100m

Malformed or out-of-range sizes are rejected with 400 before the response
is prepared, so no body bytes are ever sent for them.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

import aiohttp
from aiohttp import web

from .constants import (
    CHUNK_SIZE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    LOCATIONS_URL,
    MAX_CHUNK_SIZE,
    MIN_CHUNK_SIZE,
    UPSTREAM_TIMEOUT,
    USAGE_TEXT,
)
from .page import render_page
from .payload import stream_payload
from .sizes import SizeError, SizeLimits, SizeRequest, parse_size

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServerSettings:
    """Everything a running server needs to know."""

    limits: SizeLimits = field(default_factory=SizeLimits)
    chunk_size: int = CHUNK_SIZE
    locations_url: str = LOCATIONS_URL

    def __post_init__(self) -> None:
        if not MIN_CHUNK_SIZE <= self.chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(
                f"Chunk size must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE} bytes"
            )


SETTINGS_KEY = web.AppKey("settings", ServerSettings)
HTTP_KEY = web.AppKey("http", aiohttp.ClientSession)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def handle_index(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    return web.Response(
        text=render_page(settings.limits.default_mb),
        content_type="text/html",
        charset="utf-8",
        headers={"Cache-Control": "no-store"},
    )


async def handle_payload(request: web.Request) -> web.StreamResponse:
    settings = request.app[SETTINGS_KEY]
    raw = request.match_info.get("size", "")

    try:
        size = parse_size(raw, settings.limits)
    except SizeError as exc:
        logger.debug("rejected %s: %s", request.path, exc)
        raise web.HTTPBadRequest(text=str(exc))

    response = web.StreamResponse(status=200, headers=_payload_headers(size))
    response.content_length = size.bytes
    await response.prepare(request)

    logger.info("streaming %s (%d bytes) to %s", size.label, size.bytes, request.remote)
    await stream_payload(response, size.bytes, settings.chunk_size)
    return response


async def handle_locations(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    http = request.app[HTTP_KEY]

    try:
        async with http.get(settings.locations_url) as upstream:
            body = await upstream.read()
            content_type = upstream.headers.get("Content-Type", "application/json")
            status = upstream.status
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.warning("locations upstream failed: %s", exc)
        raise web.HTTPBadGateway(text="upstream unavailable")

    return web.Response(body=body, status=status, headers={"Content-Type": content_type})


def _payload_headers(size: SizeRequest) -> dict:
    return {
        "Content-Type": "application/octet-stream",
        "Content-Disposition": f'attachment; filename="{size.label}.bin"',
        "Cache-Control": "no-store",
        "Pragma": "no-cache",
        "Access-Control-Allow-Origin": "*",
    }


# ---------------------------------------------------------------------------
# Middleware / lifecycle
# ---------------------------------------------------------------------------

@web.middleware
async def usage_middleware(request: web.Request, handler) -> web.StreamResponse:  # noqa: ANN001
    """Attach a usage hint to 404 responses."""
    try:
        return await handler(request)
    except web.HTTPNotFound:
        raise web.HTTPNotFound(text=USAGE_TEXT)


async def _http_session(app: web.Application) -> AsyncIterator[None]:
    timeout = aiohttp.ClientTimeout(total=UPSTREAM_TIMEOUT)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        app[HTTP_KEY] = session
        yield


# ---------------------------------------------------------------------------
# Factory / runner
# ---------------------------------------------------------------------------

def create_app(settings: Optional[ServerSettings] = None) -> web.Application:
    app = web.Application(
        middlewares=[
            web.normalize_path_middleware(remove_slash=True, append_slash=False),
            usage_middleware,
        ]
    )
    app[SETTINGS_KEY] = settings or ServerSettings()
    app.cleanup_ctx.append(_http_session)

    app.router.add_get("/", handle_index)
    app.router.add_get("/locations", handle_locations)
    app.router.add_get("/download", handle_payload, allow_head=False)
    app.router.add_get("/{size}", handle_payload, allow_head=False)
    return app


def run_server(
    settings: Optional[ServerSettings] = None,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Block serving *settings* on *host*:*port* until interrupted."""
    app = create_app(settings)
    logger.info("listening on http://%s:%d", host, port)
    web.run_app(app, host=host, port=port, print=None)
