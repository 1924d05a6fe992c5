"""Command-line entry point, meant for cron or another external trigger.

    notehub sync           mirror new Slack messages into the sheet
    notehub init-sheets    create the sheets and write their header rows
    notehub smoke          run the post-deploy smoke test
    notehub show-config    print the resolved configuration (token masked)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from .admin import ensure_sheet_structure, run_sync, smoke_test
from .backends import make_row_store, make_slack_client
from .config import reload_settings
from .errors import StoreError
from .logging_setup import init_logging
from .resolver import resolve_from_settings

logger = logging.getLogger(__name__)


def _mask(token: str) -> str:
    return f"{token[:4]}…" if token else ""


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="notehub")
    ap.add_argument("--log-level", default=None, help="overrides LOG_LEVEL")
    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("sync", help="mirror new Slack messages")
    sub.add_parser("init-sheets", help="create sheets and header rows")
    sub.add_parser("smoke", help="run the smoke test")
    sub.add_parser("show-config", help="print the resolved configuration")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = reload_settings()
    init_logging(args.log_level or cfg.LOG_LEVEL)
    config = resolve_from_settings(cfg)

    if args.command == "show-config":
        shown = config.model_dump(mode="json")
        shown["bot_token"] = _mask(config.bot_token)
        print(json.dumps(shown, indent=2))
        return 0

    try:
        store = make_row_store(cfg, config)
    except StoreError as exc:
        logger.error("row store unavailable: %s", exc)
        print(f"error: {exc}")
        return 2

    if args.command == "init-sheets":
        print(ensure_sheet_structure(store, config))
    elif args.command == "sync":
        if not config.slack_configured:
            print("skip (no slack config)")
            return 0
        print(run_sync(store, config, make_slack_client(cfg, config), cfg))
    elif args.command == "smoke":
        slack = make_slack_client(cfg, config) if config.bot_token else None
        print(json.dumps(smoke_test(store, config, cfg, slack), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
