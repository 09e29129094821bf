"""
Fiszki: Local-first flashcards with cloud sync
-----------------------------------------------

Command-line entry point: opens the stores, runs a sync and reports status.
"""

import argparse
import asyncio
import json
import logging
import sys

from fiszki.exceptions import FiszkiError
from fiszki.services import LocalStore, SyncCoordinator
from fiszki.utils import setup_logger

logger = logging.getLogger("fiszki")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronize Fiszki flashcards with the cloud.")
    parser.add_argument("--mode", choices=["auto", "manual", "offline-only"],
                        help="Change and persist the sync mode before syncing")
    parser.add_argument("--status", action="store_true", help="Print sync status and exit")
    parser.add_argument("--export", metavar="CATEGORY_ID", help="Print a category snapshot as JSON")
    parser.add_argument("--csv", metavar="PATH", help="Export all local word pairs to a CSV file")
    parser.add_argument("--migrate", action="store_true", help="Upload local-only categories to the cloud")
    parser.add_argument("--watch", action="store_true", help="Keep running with background sync")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


async def watch(coordinator: SyncCoordinator) -> None:
    """Run connectivity monitoring and background sync until interrupted."""
    monitor = coordinator.create_monitor()
    await monitor.start()
    await coordinator.start_background_sync()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await coordinator.stop_background_sync()
        await monitor.stop()


async def main(argv=None) -> bool:
    """Main entry point."""
    args = parse_args(argv)
    setup_logger(level=logging.DEBUG if args.verbose else logging.INFO, log_file=args.log_file)

    coordinator = SyncCoordinator.create()
    try:
        if args.mode:
            coordinator.set_sync_mode(args.mode)

        await coordinator.init()

        if args.status:
            print(json.dumps(coordinator.get_sync_status().to_dict(), indent=2))
            return True

        if args.export:
            snapshot = await coordinator.export_category(args.export)
            print(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False))
            return True

        if args.csv:
            if isinstance(coordinator.local, LocalStore):
                rows = await coordinator.local.export_to_csv(args.csv)
                logger.info("Exported %d word pair(s) to %s", rows, args.csv)
            return True

        if args.migrate:
            migrated = await coordinator.migrate_local_to_remote()
            print(f"Migrated {migrated} categor(ies)")

        result = await coordinator.sync_all()
        if result is None:
            logger.info("Sync skipped (offline, offline-only mode or not signed in)")
        else:
            logger.info("Synced %d categories / %d words", result.categories, result.words)

        if args.watch:
            await watch(coordinator)

        print(json.dumps(coordinator.get_sync_status().to_dict(), indent=2))
        return True

    except FiszkiError as e:
        logger.error("%s", e)
        return False
    finally:
        await coordinator.close()


if __name__ == "__main__":
    try:
        success = asyncio.run(main())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n[!] Aborted by user.")
        sys.exit(1)
