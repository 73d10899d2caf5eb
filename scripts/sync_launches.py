#!/usr/bin/env python3
"""
Launch synchronization script

Runs one synchronization pass against the SpaceX API outside the web
process, e.g. from cron. Exits non-zero when the launch collection could not
be fetched.

Usage:
    python scripts/sync_launches.py
    python scripts/sync_launches.py --workers 8 --refresh-placeholders
"""

import sys
from pathlib import Path

# Add the app directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.cache import get_stats_cache
from app.core.config import get_settings
from app.core.errors import SourceUnavailable
from app.core.logging_config import setup_logging
from app.data.fetchers.spacex import SpaceXClient
from app.db import SessionLocal, engine
from app.services.bootstrap import create_schema
from app.services.sync import SyncOrchestrator


def main():
    import argparse

    settings = get_settings()
    parser = argparse.ArgumentParser(description='Synchronize launches from the SpaceX API')
    parser.add_argument('--workers', type=int, default=settings.sync_max_workers,
                        help=f'Concurrent records (default: {settings.sync_max_workers})')
    parser.add_argument('--refresh-placeholders', action='store_true',
                        help='Re-fetch rockets and launch pads stored as placeholders')
    args = parser.parse_args()

    setup_logging()
    create_schema(engine)

    print("Starting synchronization with SpaceX API...")
    with SpaceXClient() as client:
        orchestrator = SyncOrchestrator(client, get_stats_cache(), SessionLocal, max_workers=args.workers)
        try:
            report = orchestrator.run_pass(refresh_placeholders=args.refresh_placeholders)
        except SourceUnavailable as e:
            print(f"Synchronization failed: {e}")
            sys.exit(1)

    print("\nSynchronization completed!")
    print(f"   Processed:    {report.processed}")
    print(f"   Failed:       {report.failed}")
    print(f"   Skipped:      {report.skipped}")
    print(f"   Placeholders: {report.placeholders}")
    print(f"   Duration:     {report.duration_seconds:.1f}s")
    if report.failed_ids:
        print(f"   Failed ids:   {', '.join(report.failed_ids)}")


if __name__ == "__main__":
    main()
