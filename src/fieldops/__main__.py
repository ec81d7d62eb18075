"""
Command-line entrypoint.

Usage:
    python -m fieldops serve [--host 0.0.0.0] [--port 8000]
    python -m fieldops fetch              # load every row and print the count
    python -m fieldops upload FILE        # read a spreadsheet and sync it once
"""
import argparse
import asyncio
import logging
import sys

from fieldops.config import get_settings

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _build_engine():
    from fieldops.db.engine import get_engine
    from fieldops.store.factory import build_store
    from fieldops.sync.engine import ActivitySyncEngine

    return ActivitySyncEngine(build_store(), audit_engine=get_engine())


async def _fetch() -> int:
    from fieldops.sync.state import FetchError

    engine = _build_engine()
    try:
        data = await engine.fetch_all()
    except FetchError as exc:
        logger.error("Fetch failed: %s", exc)
        return 1
    finally:
        await engine.close()
    print(f"{len(data)} activities in store")
    return 0


async def _upload(path: str) -> int:
    from fieldops.ingest.spreadsheet import SpreadsheetError, read_activity_file
    from fieldops.sync.state import FetchError

    try:
        with open(path, "rb") as f:
            records = read_activity_file(f, path)
    except (OSError, SpreadsheetError) as exc:
        logger.error("Could not read %s: %s", path, exc)
        return 1

    engine = _build_engine()
    try:
        await engine.fetch_all()
    except FetchError as exc:
        logger.warning("Initial load failed, syncing upload anyway: %s", exc)
    # One-shot run: let the post-load guard lapse before merging
    await asyncio.sleep(get_settings().load_cooldown_seconds + 0.1)
    try:
        report = await engine.merge(records)
        await engine.drain()
    finally:
        await engine.close()

    if report is None or report.status == "error":
        return 1
    print(
        f"{report.rows_received} rows read, {report.rows_unique} unique, "
        f"{report.rows_synced} synced, {len(report.batch_errors)} failed batches"
    )
    return 0


def _serve(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("fieldops.api.main:app", host=host, port=port)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="fieldops")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("fetch", help="load all activities from the store")

    upload = sub.add_parser("upload", help="sync a spreadsheet to the store")
    upload.add_argument("file")

    args = parser.parse_args(argv)
    if args.command == "serve":
        _serve(args.host, args.port)
        return 0
    if args.command == "fetch":
        return asyncio.run(_fetch())
    return asyncio.run(_upload(args.file))


if __name__ == "__main__":
    sys.exit(main())
