"""
Scheduler for the daily integration syncs

Uses APScheduler to sync every connected project once a day. All cron
expressions are evaluated in ``settings.sync_timezone``.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import asyncio
from typing import Dict, Optional

from seo_sync.config import get_settings
from seo_sync.errors import IntegrationError
from seo_sync.providers import Provider
from seo_sync.services.credential_store import CredentialStore
from seo_sync.services.factory import build_orchestrator
from seo_sync.services.sync_orchestrator import SyncOrchestrator
from seo_sync.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler(timezone=settings.sync_timezone)


async def sync_provider_projects(
    provider: Provider,
    days: Optional[int] = None,
    orchestrator: Optional[SyncOrchestrator] = None,
    credentials: Optional[CredentialStore] = None,
) -> Dict[str, int]:
    """
    Sync every project holding a credential for ``provider``.

    One project's failure is logged and does not stop the others.
    """
    orchestrator = orchestrator or build_orchestrator()
    credentials = credentials or orchestrator.credentials
    days = settings.daily_sync_days if days is None else days

    summary = {"projects": 0, "succeeded": 0, "failed": 0, "rows_synced": 0}
    for credential in credentials.list_for_provider(provider):
        summary["projects"] += 1
        try:
            outcome = await orchestrator.run_sync(credential.project_id, provider, days=days)
        except IntegrationError as e:
            summary["failed"] += 1
            summary["rows_synced"] += getattr(e, "rows_synced", 0)
            log.error(
                f"Scheduled {provider.value} sync failed for project {credential.project_id}: "
                f"[{e.code}] {e.message}"
            )
            continue
        except Exception as e:
            summary["failed"] += 1
            log.exception(
                f"Scheduled {provider.value} sync crashed for project {credential.project_id}: "
                f"{type(e).__name__}: {e}"
            )
            continue

        summary["succeeded"] += 1
        summary["rows_synced"] += outcome.rows_synced

    log.info(
        f"Scheduled {provider.value} sync: {summary['succeeded']}/{summary['projects']} projects, "
        f"{summary['rows_synced']} rows"
    )
    return summary


async def sync_search_console():
    """Sync Search Console for all connected projects (daily)"""
    await sync_provider_projects(Provider.GSC)


async def sync_ga4():
    """Sync GA4 for all connected projects (daily)"""
    await sync_provider_projects(Provider.GA4)


def setup_scheduler():
    """
    Register the daily sync jobs.

    - Search Console: settings.sync_gsc_schedule (default 02:00)
    - GA4:            settings.sync_ga4_schedule (default 02:30)
    """
    scheduler.add_job(
        sync_search_console,
        trigger=CronTrigger.from_crontab(settings.sync_gsc_schedule, timezone=settings.sync_timezone),
        id='gsc_daily_sync',
        name='Search Console Daily Sync',
        replace_existing=True,
        max_instances=1
    )
    scheduler.add_job(
        sync_ga4,
        trigger=CronTrigger.from_crontab(settings.sync_ga4_schedule, timezone=settings.sync_timezone),
        id='ga4_daily_sync',
        name='GA4 Daily Sync',
        replace_existing=True,
        max_instances=1
    )


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        log.info("Scheduler stopped")


def get_scheduled_jobs() -> list:
    """List registered jobs with their next run time"""
    jobs = []

    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)  # unset until the scheduler starts

        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs


# CLI for manual syncs

if __name__ == "__main__":
    import sys

    if len(sys.argv) < 3 or sys.argv[1] != "sync":
        print("Usage: python -m seo_sync.scheduler sync <gsc|ga4>")
        sys.exit(1)

    try:
        target = Provider.parse(sys.argv[2])
    except IntegrationError as e:
        print(f"✗ Error: {e.message}")
        sys.exit(1)

    result = asyncio.run(sync_provider_projects(target))
    print(f"✓ {result['succeeded']}/{result['projects']} projects, {result['rows_synced']} rows")
