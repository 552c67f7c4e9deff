#!/usr/bin/env python3
"""
Manual Integration Sync

Runs one sync for a project outside the scheduler, e.g. to backfill after a
project connects or to retry a failed nightly run.

Usage:
    python scripts/run_sync.py --project 27 --provider gsc [--days 30] [--resource sc-domain:example.com]

Examples:
    # Last 90 days of GA4 for project 27
    python scripts/run_sync.py --project 27 --provider ga4 --days 90

    # Full Search Console history (16 months) with a 30 minute cap
    python scripts/run_sync.py --project 27 --provider gsc --days 480 --timeout 1800
"""
import asyncio
import sys
import argparse
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from seo_sync.errors import IntegrationError
from seo_sync.models.base import init_db
from seo_sync.services.factory import build_orchestrator
from seo_sync.utils.logger import log


async def run(project_id: int, provider: str, days: int, resource_id: str = None, timeout: float = None) -> int:
    init_db()
    orchestrator = build_orchestrator()

    try:
        outcome = await orchestrator.run_sync(
            project_id,
            provider,
            days=days,
            resource_id=resource_id,
            timeout=timeout,
        )
    except IntegrationError as e:
        rows = getattr(e, "rows_synced", 0)
        log.error(f"Sync failed [{e.code}] after {rows} rows: {e.message}")
        print(f"✗ {e.code}: {e.message} ({rows} rows committed)")
        return 1

    print(
        f"✓ {outcome.rows_synced} rows synced for project {project_id} "
        f"({outcome.date_from} -> {outcome.date_to})"
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Run an integration sync for one project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--project", type=int, required=True, help="Project id")
    parser.add_argument("--provider", required=True, choices=["gsc", "ga4"])
    parser.add_argument("--days", type=int, default=30, help="Days back from today (default: 30)")
    parser.add_argument("--resource", default=None, help="Site url or GA4 property id (default: first bound)")
    parser.add_argument("--timeout", type=float, default=None, help="Abort after this many seconds")

    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.project, args.provider, args.days, args.resource, args.timeout)))
