"""Command-line entry point: ``python -m src.session_manager``."""

from __future__ import annotations

import argparse

from ..config import ProxySettings
from .manager import main as run_server


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ChatGPT browser reverse proxy")
    parser.add_argument("--host", help="Interface to bind")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument(
        "--headless",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run the browser headless (--no-headless to show the window)",
    )
    parser.add_argument(
        "--debug",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Capture screenshots at each automation step",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> ProxySettings:
    overrides = {
        key: value
        for key, value in vars(args).items()
        if value is not None
    }
    return ProxySettings.from_env().model_copy(update=overrides)


def main(argv=None):
    run_server(build_settings(parse_args(argv)))


if __name__ == "__main__":
    main()
