"""Payload server -- size parsing, chunked streaming, and the browser page."""

from .app import ServerSettings, create_app, run_server
from .page import render_page
from .payload import iter_chunks, make_chunk, stream_payload
from .sizes import SizeError, SizeLimits, SizeRequest, parse_size

__all__ = [
    "ServerSettings",
    "SizeError",
    "SizeLimits",
    "SizeRequest",
    "create_app",
    "iter_chunks",
    "make_chunk",
    "parse_size",
    "render_page",
    "run_server",
    "stream_payload",
]
