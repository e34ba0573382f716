"""UI layer -- Rich dashboard, output formatters and logging setup."""

from .dashboard import (
    ProgressDisplay,
    console,
    print_final_results,
    print_header,
    print_settings,
    render_signal_bars,
)
from .logging_config import setup_logging
from .output import create_result_json, format_text_result, save_json

__all__ = [
    "ProgressDisplay",
    "console",
    "create_result_json",
    "format_text_result",
    "print_final_results",
    "print_header",
    "print_settings",
    "render_signal_bars",
    "save_json",
    "setup_logging",
]
