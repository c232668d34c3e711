"""
Command-line entry point.

    autoclose run       # one sweep, e.g. from cron
    autoclose preview   # dry run

Configuration comes from AUTOCLOSE_* environment variables.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from .config import EngineSettings
from .logging_config import configure_logging
from .services import AutoCloseEngine


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autoclose", description="Auto-close stale helpdesk tickets")
    parser.add_argument("--database", help="SQLite database path (overrides AUTOCLOSE_DATABASE_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Close every ticket matched by an active rule")
    sub.add_parser("preview", help="Show what a run would close, without changing anything")
    return parser


async def _execute(engine: AutoCloseEngine, command: str) -> int:
    if command == "preview":
        preview = await engine.preview()
        print(preview.model_dump_json(indent=2))
        return 0

    result = await engine.process()
    print(result.model_dump_json(indent=2))
    return 1 if result.errors else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = EngineSettings.from_env()
    if args.database:
        settings = settings.model_copy(update={"database_path": args.database})

    configure_logging(settings.log_level)
    engine = AutoCloseEngine.from_settings(settings)
    return asyncio.run(_execute(engine, args.command))


if __name__ == "__main__":
    sys.exit(main())
