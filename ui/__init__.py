"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    create_histogram,
    print_header,
    print_server_banner,
    print_session_result,
    setup_logging,
)
from .output import create_result_json, format_text_result, save_json

__all__ = [
    "ProgressDisplay",
    "console",
    "create_histogram",
    "create_result_json",
    "format_text_result",
    "print_header",
    "print_server_banner",
    "print_session_result",
    "save_json",
    "setup_logging",
]
