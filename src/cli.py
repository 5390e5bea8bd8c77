#!/usr/bin/env python3
"""
CLI for the content indexing pipeline.

Usage:
    python -m src.cli --manifest content.json save 42 post
    python -m src.cli --manifest content.json work
    python -m src.cli search "how do refunds work"
"""

import argparse
import json
import logging
import signal
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    load_dotenv()

from src.ragindex import ContentRef, IndexerConfig, IndexingService, load_config
from src.ragindex.extractors import ManifestContentSource


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def build_service(args) -> IndexingService:
    """Create the service from --config, --data-dir and --manifest."""
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            logger.error(f"Config file not found: {config_path}")
            sys.exit(1)
        config = load_config(config_path)
    else:
        config = IndexerConfig()

    if args.data_dir:
        data_dir = Path(args.data_dir).resolve()
        config = IndexerConfig(
            data_dir=data_dir,
            content_types=config.content_types,
            embedding=config.embedding,
            vector_store=config.vector_store,
            worker=config.worker,
        )
    config.data_dir.mkdir(parents=True, exist_ok=True)
    # Relative vector database paths live under the data dir
    if not config.vector_store.db_path.is_absolute():
        config.vector_store.db_path = config.data_dir / config.vector_store.db_path

    if args.manifest:
        manifest = Path(args.manifest)
        if not manifest.exists():
            logger.error(f"Manifest not found: {manifest}")
            sys.exit(1)
        source = ManifestContentSource.from_file(manifest)
    else:
        source = ManifestContentSource()

    return IndexingService(config, source)


def cmd_push(args):
    """Submit an index job."""
    with build_service(args) as service:
        job_id = service.queue.push(args.content_id, args.content_type, args.operation)
        if job_id is None:
            print("Job already pending.")
        else:
            print(f"Queued job {job_id}")


def cmd_save(args):
    """Mark an item queued and submit an update job."""
    with build_service(args) as service:
        job_id = service.content_saved(args.content_id, args.content_type)
        print(f"Queued job {job_id}" if job_id is not None else "Nothing queued.")


def cmd_delete(args):
    """Submit a delete job."""
    with build_service(args) as service:
        job_id = service.content_deleted(args.content_id, args.content_type)
        print(f"Queued job {job_id}" if job_id is not None else "Job already pending.")


def cmd_work(args):
    """Run scheduler jobs."""
    with build_service(args) as service:
        requeued = service.scheduler.requeue_unacked()
        if requeued:
            logger.info(f"Requeued {requeued} interrupted job(s)")

        if args.once:
            count = service.run_pending(args.max_jobs)
            logger.info(f"Ran {count} job(s)")
            return

        shutdown = GracefulShutdown()
        logger.info("Worker running, press Ctrl+C to stop")
        while not shutdown.should_exit:
            count = service.run_pending(args.max_jobs)
            if count:
                logger.info(f"Ran {count} job(s)")
            else:
                time.sleep(args.poll_interval)
    logger.info("Worker stopped")


def cmd_search(args):
    """Search indexed content."""
    search_filter = {}
    if args.content_type:
        search_filter["content_type"] = args.content_type

    with build_service(args) as service:
        results = service.search(args.query, limit=args.limit, filter=search_filter or None)

        if not results:
            print("No results found.")
            return

        print(f"\nFound {len(results)} result(s):\n")

        for i, result in enumerate(results, 1):
            payload = result.payload
            print(f"─── Result {i} (score: {result.score:.3f}) ───")
            print(f"Item: {payload.get('content_type')} #{payload.get('content_id')} chunk {payload.get('chunk_index')}")
            source_url = (payload.get("metadata") or {}).get("source_url")
            if source_url:
                print(f"Source: {source_url}")
            print(f"Content:\n{(payload.get('chunk_text') or '')[:500]}...")
            print()


def cmd_status(args):
    """Show one item's status record."""
    with build_service(args) as service:
        record = service.status_store.get_status(ContentRef(args.content_id, args.content_type))
        if record is None:
            print("No status record.")
            return
        print(json.dumps(record.to_dict(), indent=2))


def cmd_stats(args):
    """Show status counts."""
    with build_service(args) as service:
        stats = service.status_store.get_statistics()
        print("\nIndex Statistics")
        print("=" * 40)
        for name, count in stats.items():
            print(f"{name.capitalize():<12} {count}")
        print(f"{'Pending jobs':<12} {service.scheduler.size()}")


def cmd_failed(args):
    """List failed items."""
    with build_service(args) as service:
        records = service.retry_manager.get_failed_items(args.limit)
        if not records:
            print("No failed items.")
            return
        for record in records:
            print(f"{record.content_ref}  retries={record.retry_count}  {record.error_message}")


def cmd_retry(args):
    """Re-queue failed items now."""
    with build_service(args) as service:
        if args.all:
            count = service.retry_manager.retry_all_failed()
            print(f"Re-queued {count} item(s)")
            return
        if args.content_id is None or not args.content_type:
            logger.error("Give CONTENT_ID CONTENT_TYPE or --all")
            sys.exit(1)
        job_id = service.retry_manager.retry_now(ContentRef(args.content_id, args.content_type))
        print(f"Queued job {job_id}" if job_id is not None else "Nothing re-queued.")


def cmd_test_connection(args):
    """Check the embedding provider and vector store respond."""
    with build_service(args) as service:
        results = service.test_connections()
        for name, ok in results.items():
            print(f"{name:<14} {'OK' if ok else 'FAILED'}")
        if not all(results.values()):
            sys.exit(1)


def _add_ref_args(parser):
    parser.add_argument("content_id", type=int, help="Content item id")
    parser.add_argument("content_type", help="Content type (post, page, attachment, ...)")


def main():
    parser = argparse.ArgumentParser(
        description="CLI for the content indexing pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Queue a post for indexing and process the queue once
  python -m src.cli --manifest content.json save 42 post
  python -m src.cli --manifest content.json work --once

  # Search indexed content
  python -m src.cli search "how do refunds work" --limit 5

  # Inspect and retry failures
  python -m src.cli failed
  python -m src.cli retry --all
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--data-dir", help="Directory for status, scheduler and vector databases")
    parser.add_argument("--manifest", help="JSON manifest of content records")

    subparsers = parser.add_subparsers(dest="command", required=True)

    push_parser = subparsers.add_parser("push", help="Submit an index job")
    _add_ref_args(push_parser)
    push_parser.add_argument("--operation", default="update", choices=["update", "delete"], help="Job operation")
    push_parser.set_defaults(func=cmd_push)

    save_parser = subparsers.add_parser("save", help="Mark an item queued and submit an update job")
    _add_ref_args(save_parser)
    save_parser.set_defaults(func=cmd_save)

    delete_parser = subparsers.add_parser("delete", help="Submit a delete job")
    _add_ref_args(delete_parser)
    delete_parser.set_defaults(func=cmd_delete)

    work_parser = subparsers.add_parser("work", help="Run scheduled jobs")
    work_parser.add_argument("--once", action="store_true", help="Run due jobs once and exit")
    work_parser.add_argument("--max-jobs", type=int, default=None, help="Maximum jobs per pass")
    work_parser.add_argument("--poll-interval", type=float, default=2.0, help="Idle poll interval in seconds")
    work_parser.set_defaults(func=cmd_work)

    search_parser = subparsers.add_parser("search", help="Search indexed content")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=5, help="Number of results")
    search_parser.add_argument("--content-type", help="Only return this content type")
    search_parser.set_defaults(func=cmd_search)

    status_parser = subparsers.add_parser("status", help="Show an item's status record")
    _add_ref_args(status_parser)
    status_parser.set_defaults(func=cmd_status)

    stats_parser = subparsers.add_parser("stats", help="Show status counts")
    stats_parser.set_defaults(func=cmd_stats)

    failed_parser = subparsers.add_parser("failed", help="List failed items")
    failed_parser.add_argument("--limit", type=int, default=None, help="Maximum items to list")
    failed_parser.set_defaults(func=cmd_failed)

    retry_parser = subparsers.add_parser("retry", help="Re-queue failed items now")
    retry_parser.add_argument("content_id", type=int, nargs="?", help="Content item id")
    retry_parser.add_argument("content_type", nargs="?", help="Content type")
    retry_parser.add_argument("--all", action="store_true", help="Re-queue every failed item")
    retry_parser.set_defaults(func=cmd_retry)

    test_parser = subparsers.add_parser("test-connection", help="Check provider and store connectivity")
    test_parser.set_defaults(func=cmd_test_connection)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
