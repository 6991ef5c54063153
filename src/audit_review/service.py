"""Review service: snapshots, overrides and reconciliation per pull request."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from audit_review.assignment import owner_targets
from audit_review.cache import SnapshotCache
from audit_review.grouping import SuppressionSet
from audit_review.markers import MarkerContext, canonical_url
from audit_review.models import ProjectConfig, PullRequestRef, ReportEnvelope, ResearchersConfig, Thread
from audit_review.reconcile import group_threads, reconcile
from audit_review.source import CommentSource, SourceError
from audit_review.storage import DataStore

logger = logging.getLogger(__name__)


class NotConfiguredError(LookupError):
    """No pull request is configured, or the requested index does not exist."""


def marker_context(ref: PullRequestRef) -> MarkerContext:
    return MarkerContext(owner=ref.owner, repo=ref.repo, number=ref.number)


class ReviewService:
    """Ties the comment source, the data store and the reconciliation engine together.

    Upstream threads are cached per pull request; reconciliation itself is
    re-run on every request so new suppressions and assignments show up
    without a refetch.
    """

    def __init__(
        self,
        store: DataStore,
        source: CommentSource,
        *,
        suppressions: SuppressionSet | None = None,
        cache: SnapshotCache[list[Thread]] | None = None,
    ) -> None:
        self.store = store
        self.source = source
        self.suppressions = suppressions if suppressions is not None else SuppressionSet()
        self.cache: SnapshotCache[list[Thread]] = cache if cache is not None else SnapshotCache()
        self._locks: dict[str, asyncio.Lock] = {}

    # --- Configuration ---

    def project(self) -> ProjectConfig:
        return self.store.load_project()

    def repositories(self) -> list[PullRequestRef]:
        return self.project().repositories

    def resolve(self, index: int = 0) -> PullRequestRef:
        repositories = self.repositories()
        if not repositories:
            raise NotConfiguredError("No repository configured")
        if index < 0 or index >= len(repositories):
            raise NotConfiguredError("Invalid PR index")
        return repositories[index]

    def add_repository(self, ref: PullRequestRef) -> list[PullRequestRef]:
        return self.store.add_repository(ref)

    def remove_repository(self, index: int) -> list[PullRequestRef]:
        ref = self.resolve(index)
        repositories = self.store.remove_repository(index)
        self.cache.invalidate(ref.key)
        return repositories

    def replace_repositories(self, repositories: list[PullRequestRef]) -> None:
        self.store.replace_repositories(repositories)

    def set_single_repository(self, ref: PullRequestRef) -> None:
        self.store.set_single_repository(ref)

    def researchers(self, ref: PullRequestRef) -> ResearchersConfig:
        return self.store.load_researchers(ref)

    def save_researchers(self, ref: PullRequestRef, researchers: ResearchersConfig) -> None:
        self.store.save_researchers(ref, researchers)

    # --- Snapshots ---

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def threads(self, ref: PullRequestRef, *, force: bool = False) -> tuple[list[Thread], bool]:
        """Return ``(threads, stale)`` for *ref*.

        A failed refresh falls back to the last good snapshot (``stale=True``)
        and only raises SourceError when there is nothing to fall back to.
        """
        async with self._lock(ref.key):
            if not force:
                cached = self.cache.fresh(ref.key)
                if cached is not None:
                    return cached, False
            try:
                threads = await self.source.fetch_threads(ref)
            except SourceError as e:
                previous = self.cache.latest(ref.key)
                if previous is None:
                    raise
                logger.warning("Refresh of %s failed (%s); serving stale snapshot", ref.key, e)
                return previous, True
            self.cache.put(ref.key, threads)
            return threads, False

    # --- Reconciliation ---

    async def report(self, index: int = 0, *, force: bool = False) -> ReportEnvelope:
        ref = self.resolve(index)
        threads, stale = await self.threads(ref, force=force)
        researchers = self.researchers(ref)
        result = reconcile(
            threads,
            marker_context(ref),
            suppressions=self.suppressions.snapshot(),
            assignments=self.store.load_assignments(),
            researchers=researchers,
        )
        envelope = ReportEnvelope(repository=ref, researchers=researchers, result=result, stale=stale)
        fetched_at = self.cache.fetched_at(ref.key)
        if fetched_at is not None:
            envelope.fetched_at = fetched_at
        return envelope

    # --- Overrides ---

    def suppress(self, duplicate_url: str, original_url: str) -> bool:
        """Sever one duplicate relationship until restart. Idempotent."""
        added = self.suppressions.add(canonical_url(duplicate_url), canonical_url(original_url))
        if added:
            logger.info("Unduped %s from %s", duplicate_url, original_url)
        return added

    async def set_owner(self, index: int, urls: Iterable[str], owner: str) -> set[str]:
        """Assign *owner* to *urls* and every other member of their findings."""
        ref = self.resolve(index)
        threads, _ = await self.threads(ref)
        grouping = group_threads(threads, marker_context(ref), self.suppressions.snapshot())
        targets = owner_targets((canonical_url(u) for u in urls), grouping)
        self.store.save_assignments(sorted(targets), owner)
        logger.info("Saved assignments for %d issue(s) to: %s", len(targets), owner)
        return targets

    async def close(self) -> None:
        await self.source.close()
