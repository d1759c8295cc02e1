from __future__ import annotations

import argparse
from typing import Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Periodically measure latency of JSON-RPC requests routed through a uHTTP client "
            "and push the results to a Prometheus push gateway. Required settings come from "
            "UHTTP_LM_* environment variables or a YAML config file."
        )
    )
    parser.add_argument(
        "--config",
        help="Path to a YAML file with settings (keys mirror the UHTTP_LM_* variables, lowercased).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single measurement, push it, then exit.",
    )
    parser.add_argument(
        "--interval-ms",
        type=int,
        help="Milliseconds between measurements. Must exceed the worst-case measurement plus push time.",
    )
    parser.add_argument(
        "--offset-ms",
        type=int,
        help="Milliseconds to wait before the first measurement, to stagger instances.",
    )
    parser.add_argument(
        "--push-gateway",
        help="Push gateway URL. Without one, metrics are collected but not exported.",
    )
    parser.add_argument(
        "--push-mode",
        choices=["replace", "add"],
        help="Replace the pushed group on every push (default) or merge into it.",
    )
    parser.add_argument(
        "--log-file",
        help="Append log lines to this file in addition to the console.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print per-measurement details.",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)
