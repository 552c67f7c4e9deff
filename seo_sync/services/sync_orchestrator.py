"""
Sync orchestrator

Runs one sync for a (project, provider) pair:

1. resolve the resource binding, then the credential (no provider call is
   made when either is missing)
2. make sure the access token is valid, refreshing it if needed
3. compute the inclusive window [today - days, today] in the sync timezone
4. stream rows from the provider client and commit them in batches

Progress is committed batch by batch. When a run fails part-way, the error
raised carries ``rows_synced`` so callers see how much landed before it.
"""
import asyncio
from contextlib import aclosing, asynccontextmanager, nullcontext
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from seo_sync.config import get_settings
from seo_sync.connectors.base_connector import BaseConnector
from seo_sync.errors import (
    InvalidSyncRequest,
    NoCredential,
    NoResourceBound,
    StorageError,
    SyncError,
    SyncInProgress,
    SyncTimedOut,
    UnsupportedProvider,
)
from seo_sync.models.credential import OAuthCredential
from seo_sync.providers import Provider
from seo_sync.services.binding_store import ResourceBinding, ResourceBindingStore
from seo_sync.services.credential_store import CredentialStore
from seo_sync.services.sync_run_log import SyncRunLog
from seo_sync.services.token_refresher import TokenRefresher
from seo_sync.services.upsert_service import MetricRow, UpsertLayer
from seo_sync.utils.helpers import days_back_range, local_today, utcnow
from seo_sync.utils.logger import log


@dataclass
class SyncProgress:
    """Live counters for a running sync, readable from outside the task"""
    rows_synced: int = 0
    batches_written: int = 0


@dataclass(frozen=True)
class SyncOutcome:
    project_id: int
    provider: Provider
    resource_id: str
    rows_synced: int
    date_from: date
    date_to: date

    @property
    def date_range(self) -> Dict[str, str]:
        return {"start": self.date_from.isoformat(), "end": self.date_to.isoformat()}


class SyncLocks:
    """
    One in-process lock per (project, provider).

    A second sync for a pair that is already running fails fast with
    SyncInProgress instead of queueing a redundant fetch.
    """

    def __init__(self):
        self._locks: Dict[Tuple[int, Provider], asyncio.Lock] = {}

    @asynccontextmanager
    async def hold(self, project_id: int, provider: Provider):
        lock = self._locks.setdefault((project_id, provider), asyncio.Lock())
        if lock.locked():
            raise SyncInProgress(f"{provider.value} sync already running for project {project_id}")
        async with lock:
            yield


class SyncOrchestrator:
    def __init__(
        self,
        credentials: CredentialStore,
        bindings: ResourceBindingStore,
        refresher: TokenRefresher,
        upserter: UpsertLayer,
        clients: Mapping[Provider, BaseConnector],
        run_log: Optional[SyncRunLog] = None,
        locks: Optional[SyncLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        batch_size: Optional[int] = None,
        timezone: Optional[str] = None,
    ):
        settings = get_settings()
        self.credentials = credentials
        self.bindings = bindings
        self.refresher = refresher
        self.upserter = upserter
        self.clients = dict(clients)
        self.run_log = run_log
        self.locks = locks
        self.clock = clock
        self.batch_size = batch_size or settings.sync_batch_size
        self.timezone = timezone or settings.sync_timezone
        self.default_days = settings.sync_default_days
        self.max_days = settings.sync_max_days

    async def run_sync(
        self,
        project_id: int,
        provider,
        days: Optional[int] = None,
        resource_id: Optional[str] = None,
        timeout: Optional[float] = None,
        progress: Optional[SyncProgress] = None,
    ) -> SyncOutcome:
        """
        Sync the last ``days`` days (plus today) for a project.

        Raises:
            UnsupportedProvider: provider has no sync client
            InvalidSyncRequest: days outside [0, sync_max_days]
            NoResourceBound / NoCredential: project not set up for provider
            ReauthorizationRequired subclasses: user must reconnect
            ProviderRateLimited / ProviderUnavailable: retries exhausted
            SyncTimedOut: ``timeout`` elapsed
            SyncInProgress: another sync holds the pair's lock
        """
        provider = Provider.parse(provider)
        client = self.clients.get(provider)
        if client is None:
            raise UnsupportedProvider(f"No sync client for {provider.value}")

        days = self._validate_days(days)

        binding = self.bindings.get(project_id, provider, resource_id)
        if binding is None:
            if resource_id is not None:
                raise NoResourceBound(
                    f"{resource_id} is not bound to project {project_id} for {provider.value}"
                )
            raise NoResourceBound(f"No {provider.value} resource bound to project {project_id}")

        credential = self.credentials.get(project_id, provider)
        if credential is None:
            raise NoCredential(f"Project {project_id} has not connected {provider.value}")

        date_from, date_to = days_back_range(days, local_today(self.timezone, self.clock()))
        progress = progress if progress is not None else SyncProgress()

        guard = self.locks.hold(project_id, provider) if self.locks else nullcontext()
        async with guard:
            log.info(
                f"Starting {provider.value} sync for project {project_id} "
                f"({binding.resource_id}) {date_from} -> {date_to}"
            )
            run_id = self._log_start(binding, date_from, date_to)

            work = self._stream(client, credential, binding, date_from, date_to, progress)
            try:
                if timeout:
                    await asyncio.wait_for(work, timeout)
                else:
                    await work
            except asyncio.TimeoutError:
                error = SyncTimedOut(
                    f"{provider.value} sync exceeded {timeout}s",
                    rows_synced=progress.rows_synced,
                )
                self._log_failure(run_id, binding, error)
                raise error
            except SyncError as e:
                e.rows_synced = progress.rows_synced
                self._log_failure(run_id, binding, e)
                raise
            except asyncio.CancelledError:
                log.warning(
                    f"{provider.value} sync for project {project_id} cancelled "
                    f"after {progress.rows_synced} rows"
                )
                self._log_finish(run_id, progress.rows_synced, "cancelled", "Sync cancelled")
                raise
            except Exception as e:
                log.exception(
                    f"{provider.value} sync for project {project_id} crashed "
                    f"after {progress.rows_synced} rows"
                )
                self._log_finish(run_id, progress.rows_synced, "internal_error", f"{type(e).__name__}: {e}")
                raise

            self._log_finish(run_id, progress.rows_synced)

        log.info(
            f"{provider.value} sync for project {project_id} complete: "
            f"{progress.rows_synced} rows in {progress.batches_written} batches"
        )
        return SyncOutcome(
            project_id=project_id,
            provider=provider,
            resource_id=binding.resource_id,
            rows_synced=progress.rows_synced,
            date_from=date_from,
            date_to=date_to,
        )

    def _validate_days(self, days: Optional[int]) -> int:
        if days is None:
            return self.default_days
        if isinstance(days, bool) or not isinstance(days, int):
            raise InvalidSyncRequest("days must be an integer")
        if days < 0 or days > self.max_days:
            raise InvalidSyncRequest(f"days must be between 0 and {self.max_days}")
        return days

    async def _stream(
        self,
        client: BaseConnector,
        credential: OAuthCredential,
        binding: ResourceBinding,
        date_from: date,
        date_to: date,
        progress: SyncProgress,
    ):
        credential = await self.refresher.ensure_valid(credential)

        batch: List[MetricRow] = []
        try:
            async with aclosing(
                client.fetch_range(credential, binding.resource_id, date_from, date_to)
            ) as rows:
                async for row in rows:
                    batch.append(row)
                    if len(batch) >= self.batch_size:
                        await self._flush(batch, progress)
                        batch = []
        except SyncError:
            # Keep what was fetched before the provider failed
            if batch:
                await self._flush_after_failure(batch, progress)
            raise

        if batch:
            await self._flush(batch, progress)

    async def _flush(self, batch: List[MetricRow], progress: SyncProgress):
        def write():
            written = self.upserter.upsert(batch)
            progress.rows_synced += written
            progress.batches_written += 1

        write_task = asyncio.ensure_future(asyncio.to_thread(write))
        try:
            await asyncio.shield(write_task)
        except asyncio.CancelledError:
            # The thread commits regardless; settle it so progress counts it
            await asyncio.wait({write_task})
            if not write_task.cancelled() and write_task.exception() is not None:
                log.error(f"Batch write interrupted by cancellation failed: {write_task.exception()}")
            raise

    async def _flush_after_failure(self, batch: List[MetricRow], progress: SyncProgress):
        try:
            await self._flush(batch, progress)
        except StorageError as e:
            log.error(f"Could not keep {len(batch)} rows fetched before the failure: {e.message}")

    def _log_start(self, binding: ResourceBinding, date_from: date, date_to: date) -> Optional[int]:
        if self.run_log is None:
            return None
        return self.run_log.start(binding.project_id, binding.provider, binding.resource_id, date_from, date_to)

    def _log_finish(
        self,
        run_id: Optional[int],
        rows_synced: int,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ):
        if self.run_log is not None:
            self.run_log.finish(run_id, rows_synced, error_code, error_message)

    def _log_failure(self, run_id: Optional[int], binding: ResourceBinding, error: SyncError):
        log.error(
            f"{binding.provider.value} sync for project {binding.project_id} failed "
            f"[{error.code}] after {error.rows_synced} rows: {error.message}"
        )
        self._log_finish(run_id, error.rows_synced, error.code, error.message)
