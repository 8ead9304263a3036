# ==============================================
# CLI: Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Provides the command-line interface to run a normalization.
#   This is how users interact with the system.
#
# COMMANDS:
# ---------
# 1. List known collections and their sizes:
#    python -m docrepair.cli list
#
# 2. Preview the changes for one collection:
#    python -m docrepair.cli captures --dry-run
#
# 3. Normalize with a backup first:
#    python -m docrepair.cli predictions --backup --batch-size=200
#
# 4. Normalize every known document kind:
#    python -m docrepair.cli all ./mongo.env --verbose
#
# EXIT CODES:
# -----------
#   0  run completed (per-document failures are reported in the summary)
#   1  fatal startup error (configuration, credentials, connection)
#   2  invalid arguments
#
# ==============================================

import argparse
import logging
import sys
from typing import List, Optional

from .config import AppConfig, ConfigError, load_config
from .normalization.timestamps import THRESHOLD_TABLES, get_thresholds
from .orchestrator import RunOptions, RunOrchestrator, list_collections, resolve_collections
from .reporting import format_listing, format_summary, print_lines
from .storage.base import StoreError
from .storage.mongo_client import MongoDocumentStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return value


def non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected zero or more, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docrepair",
        description="Normalize inconsistent field representations in a document database.",
    )
    parser.add_argument(
        "target", nargs="?", default="list",
        help='collection name, "all" for every known document kind, or "list" (default)',
    )
    parser.add_argument(
        "credential_path", nargs="?", default=None,
        help="dotenv-style file with MONGO_* settings",
    )
    parser.add_argument("--dry-run", action="store_true", default=None,
                        help="show what would change without writing")
    parser.add_argument("--backup", action="store_true", default=None,
                        help="copy each collection before modifying it")
    parser.add_argument("--batch-size", type=positive_int, default=None,
                        help="documents per atomic write group (default 500)")
    parser.add_argument("--preview", type=non_negative_int, default=None,
                        help="changes shown per collection in dry-run mode (default 5)")
    parser.add_argument("--thresholds", choices=sorted(THRESHOLD_TABLES), default=None,
                        help="numeric timestamp threshold table (default primary)")
    parser.add_argument("--verbose", action="store_true", default=None,
                        help="enable detailed logging")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )
    # pymongo is chatty at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def build_options(config: AppConfig, args: argparse.Namespace) -> RunOptions:
    """CLI flags override the configured defaults."""
    run = config.run
    return RunOptions(
        dry_run=run.dry_run if args.dry_run is None else args.dry_run,
        backup=run.backup if args.backup is None else args.backup,
        batch_size=args.batch_size or run.batch_size,
        preview_limit=run.preview_limit if args.preview is None else args.preview,
        thresholds=get_thresholds(args.thresholds or run.thresholds),
    )


def create_store(config: AppConfig) -> MongoDocumentStore:
    mongo = config.mongo
    return MongoDocumentStore(
        host=mongo.host,
        port=mongo.port,
        database=mongo.database,
        user=mongo.user,
        password=mongo.password,
        uri=mongo.uri,
        use_transactions=mongo.use_transactions,
    )


def main(argv: Optional[List[str]] = None, store_factory=create_store) -> int:
    args = build_parser().parse_args(argv)

    print("Document Normalizer")
    print("===================")

    try:
        config = load_config(args.credential_path)
        configure_logging(args.verbose or config.run.verbose)
        options = build_options(config, args)
        store = store_factory(config)
        store.connect()
    except (ConfigError, StoreError) as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1

    try:
        if args.target == "list":
            print("\nScanning for collections...")
            print_lines(format_listing(list_collections(store)))
            return 0

        orchestrator = RunOrchestrator(store, options)
        summary = orchestrator.run(resolve_collections(args.target))
        print_lines(format_summary(summary))
        print("\nNormalization completed!")
        return 0
    finally:
        store.disconnect()


if __name__ == "__main__":
    sys.exit(main())
