"""
Command line entry point.

Usage:
    clipwatch run                 Watch the folder and process videos
    clipwatch backfill            Mark videos already in the folder as done
    clipwatch serve               Run the watch loop with the status API

Settings come from CLIPWATCH_* environment variables or a .env file.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from clipwatch.config import ConfigError, settings
from clipwatch.db.state_store import StateStore, StateStoreError
from clipwatch.services.backfill import backfill

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


async def run_watch() -> None:
    """Reconcile the folder and watch it until interrupted."""
    # Imported here so `backfill` works without the API stack configured
    from clipwatch.main import build_watcher

    store = StateStore(settings.state_file)
    watcher = build_watcher(store)

    logger.info("Bot started.")
    logger.info(f"Watching: {settings.watch_path}")
    logger.info(f"State document: {settings.state_file}")

    try:
        await watcher.run()
    finally:
        await watcher.queue.shutdown()


def cmd_run(args) -> int:
    try:
        asyncio.run(run_watch())
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except StateStoreError as e:
        logger.error(f"State document error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
    return 0


def cmd_backfill(args) -> int:
    watch_path = Path(args.watch_path) if args.watch_path else settings.watch_path
    if not watch_path.is_dir():
        logger.error(f"Watch folder does not exist: {watch_path}")
        return 1

    store = StateStore(settings.state_file)
    try:
        result = backfill(store, watch_path=watch_path)
    except StateStoreError as e:
        logger.error(f"State document error: {e}")
        return 1

    print(f"Added {len(result.added)} files to the ignore list "
          f"({len(result.skipped)} already tracked). You can now start the watcher safely.")
    return 0


def cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run(
        "clipwatch.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipwatch",
        description="Turn videos dropped in a folder into highlight montages",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Watch the folder and process videos")
    run_parser.set_defaults(func=cmd_run)

    backfill_parser = subparsers.add_parser(
        "backfill", help="Mark existing videos as done without processing them"
    )
    backfill_parser.add_argument("--watch-path", help="Folder to scan (defaults to settings)")
    backfill_parser.set_defaults(func=cmd_backfill)

    serve_parser = subparsers.add_parser("serve", help="Run the watch loop with the status API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.debug or settings.debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
