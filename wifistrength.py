#!/usr/bin/env python3
"""
Wi-Fi strength CLI -- quick network quality check from the terminal.

Usage::

    python wifistrength.py                          # rich dashboard
    python wifistrength.py --simple                 # plain text
    python wifistrength.py --json                   # JSON to stdout
    python wifistrength.py -o result.json           # save to file
    python wifistrength.py --download-url URL       # custom download target
    python wifistrength.py --upload-url ""          # simulate upload
    python wifistrength.py --percentile peak        # peak instead of p95
    python wifistrength.py --downlink-hint 8 --rtt-hint 50
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from netcheck.config import TestConfig, config_path, load_config
from netcheck.constants import (
    MAX_DURATION,
    MAX_PASSES,
    MAX_STREAMS,
    MIN_DURATION,
    MIN_PASSES,
    MIN_STREAMS,
)
from netcheck.hints import ConnectionHint, StaticHintSource
from netcheck.orchestrator import TestOrchestrator
from netcheck.provider import ProviderLookup
from netcheck.stats import Reducer
from ui.dashboard import ProgressDisplay, console, print_final_results, print_header, print_settings
from ui.logging_config import setup_logging
from ui.output import create_result_json, format_text_result, save_json

logger = logging.getLogger("wifistrength")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(config: TestConfig) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_DURATION <= config.duration_seconds <= MAX_DURATION:
        raise ValueError(f"Duration must be between {MIN_DURATION} and {MAX_DURATION} s")
    if not MIN_STREAMS <= config.parallel_streams <= MAX_STREAMS:
        raise ValueError(f"Streams must be between {MIN_STREAMS} and {MAX_STREAMS}")
    if not MIN_PASSES <= config.passes <= MAX_PASSES:
        raise ValueError(f"Passes must be between {MIN_PASSES} and {MAX_PASSES}")
    if config.warmup_seconds < 0:
        raise ValueError("Warm-up must not be negative")
    if config.bucket_width_ms <= 0:
        raise ValueError("Bucket width must be positive")


_ARG_TO_KEY = {
    "download_url": "target_download_url",
    "upload_url": "target_upload_url",
    "latency_url": "latency_url",
    "duration": "duration_seconds",
    "streams": "parallel_streams",
    "passes": "passes",
    "warmup": "warmup_seconds",
    "bucket_ms": "bucket_width_ms",
    "percentile": "percentile_mode",
}


def build_config(args: argparse.Namespace, base: Optional[Dict[str, Any]] = None) -> TestConfig:
    """Layer command-line flags over the config file (or *base*)."""
    values = dict(load_config() if base is None else base)
    for arg, key in _ARG_TO_KEY.items():
        value = getattr(args, arg, None)
        if value is not None:
            values[key] = value
    return TestConfig.from_dict(values)


def build_hint_source(args: argparse.Namespace) -> Optional[StaticHintSource]:
    """A hint source only exists when at least one hint flag was given."""
    if args.downlink_hint is None and args.rtt_hint is None and args.effective_type is None:
        return None
    return StaticHintSource(
        ConnectionHint(
            effective_type=args.effective_type,
            downlink_mbps=args.downlink_hint or 0.0,
            rtt_ms=args.rtt_hint or 0.0,
        )
    )


# ---------------------------------------------------------------------------
# Core runner
# ---------------------------------------------------------------------------

async def run_check(
    config: TestConfig,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    hint_source: Optional[StaticHintSource] = None,
    lookup_provider: bool = True,
) -> Optional[dict]:
    """Execute the full check and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple

    if show_ui:
        print_header()
        print_settings(config)
        progress = ProgressDisplay()

    with TestOrchestrator(
        config,
        hint_source=hint_source,
        provider_lookup=ProviderLookup() if lookup_provider else None,
        on_progress=progress.phase_done if show_ui else None,
        on_metric=progress.metric if show_ui else None,
    ) as orchestrator:
        if show_ui:
            progress.start()
        try:
            result = await orchestrator.run()
        finally:
            if show_ui:
                progress.stop()

    if result is None:
        return None

    if show_ui:
        print_final_results(result)
    elif simple:
        print(format_text_result(result))

    result_json = create_result_json(result, config)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Wi-Fi strength -- quick network quality and speed check",
        epilog=f"Defaults are read from {config_path()}",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log probe details to stderr")

    # Targets ("" disables a target and simulates that phase)
    parser.add_argument("--download-url", type=str, metavar="URL", help="Download target URL")
    parser.add_argument("--upload-url", type=str, metavar="URL", help="Upload target URL")
    parser.add_argument("--latency-url", type=str, metavar="URL", help="Latency probe URL")

    # Test parameters
    parser.add_argument("--duration", type=float, metavar="SECS", help="Seconds per download / upload pass")
    parser.add_argument("--streams", type=int, metavar="N", help="Concurrent download streams (upload uses half)")
    parser.add_argument("--passes", type=int, metavar="N", help="Passes per direction; the best one counts")
    parser.add_argument("--warmup", type=float, metavar="SECS", help="Warm-up window excluded from sampling")
    parser.add_argument("--bucket-ms", type=float, metavar="MS", help="Sampling bucket width in milliseconds")
    parser.add_argument("--percentile", choices=[r.value for r in Reducer], help="Bucket reduction (p95 or peak)")

    # Connection hints
    parser.add_argument("--downlink-hint", type=float, metavar="MBPS", help="Connection downlink hint")
    parser.add_argument("--rtt-hint", type=float, metavar="MS", help="Connection round-trip hint")
    parser.add_argument("--effective-type", type=str, metavar="TYPE", help="Connection type hint, e.g. 4g")

    parser.add_argument("--no-provider", action="store_true", help="Skip the ISP / IP lookup")
    return parser


def main() -> None:
    args = make_parser().parse_args()
    setup_logging("DEBUG" if args.verbose else "WARNING")

    try:
        config = build_config(args)
        _validate(config)
    except (TypeError, ValueError) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        asyncio.run(
            run_check(
                config,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                hint_source=build_hint_source(args),
                lookup_provider=not args.no_provider,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        logger.debug("run failed", exc_info=True)
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
