"""Fee verifier entry point with CLI."""
import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bidcap.config import config, Config
from bidcap.logging_conf import setup_logging
from bidcap.fetch.client import PageFetcher
from bidcap.fetch.houses import HOUSES, load_houses
from bidcap.jobs.notifier import WebhookNotifier
from bidcap.jobs.reconciler import FeeReconciler, RunReport
from bidcap.jobs.run_log import RunLogExporter
from bidcap.store.fee_store import DryRunFeeStore, SupabaseFeeStore

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Verify auction-house buyer's premiums")
    parser.add_argument(
        "--house",
        action="append",
        default=None,
        help="Only verify this house (repeatable)",
    )
    parser.add_argument(
        "--houses-file",
        default=None,
        help="JSON list of house configs (default: HOUSES_FILE or built-in list)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read the fee table but do not write to it",
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Do not post the report to the webhook",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging",
    )
    return parser.parse_args(argv)


def select_houses(args: argparse.Namespace):
    """Houses to verify, in configured order."""
    houses_file = args.houses_file or config.HOUSES_FILE
    houses = load_houses(houses_file) if houses_file else HOUSES
    if args.house:
        wanted = set(args.house)
        unknown = wanted - {h.name for h in houses}
        if unknown:
            raise ValueError(f"Unknown house(s): {', '.join(sorted(unknown))}")
        houses = tuple(h for h in houses if h.name in wanted)
    return houses


async def run_verifier(args: argparse.Namespace) -> RunReport:
    """Build the pipeline and run it once."""
    run_id = str(uuid.uuid4())
    houses = select_houses(args)

    store = SupabaseFeeStore()
    if not await store.test_connection():
        raise RuntimeError("Supabase connection failed")
    if args.dry_run:
        store = DryRunFeeStore(store)
    notifier = None if args.no_notify else WebhookNotifier()

    logger.info("=" * 60)
    logger.info("Fee validator starting")
    logger.info(f"Run ID: {run_id}")
    logger.info(f"Using Supabase URL: {config.SUPABASE_URL}")
    logger.info(f"Houses: {', '.join(h.name for h in houses)}")
    logger.info(f"Dry-run: {args.dry_run}")
    logger.info(f"Rendering proxy: {'configured' if config.ZENROWS_API_KEY else 'not configured'}")
    logger.info("=" * 60)

    async with PageFetcher() as fetcher:
        reconciler = FeeReconciler(store, fetcher, houses, notifier=notifier)
        report = await reconciler.run()

    summary = report.get_summary()
    logger.info("=" * 60)
    logger.info("FINAL REPORT")
    for key, value in summary.items():
        logger.info(f"{key}: {value}")
    logger.info("=" * 60)

    await RunLogExporter(run_id).export({"dry_run": args.dry_run, **summary})
    return report


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    try:
        Config.validate(require_supabase=True)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    try:
        report = asyncio.run(run_verifier(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

    if report.failed:
        logger.error(f"{report.failures} house(s) failed verification")
        sys.exit(1)


if __name__ == "__main__":
    main()
