import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from daycare_portal.client.api import APIError, PortalAPI
from daycare_portal.client.polling import PeriodicTask
from daycare_portal.config import settings
from daycare_portal.modules.issues.schemas import IssueResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueListState:
    issues: List[IssueResponse] = field(default_factory=list)
    include_resolved: bool = False
    loading: bool = True
    syncing: bool = False
    error: Optional[str] = None

    @property
    def open_count(self) -> int:
        return sum(1 for i in self.issues if not i.resolved)

    @property
    def resolved_count(self) -> int:
        return sum(1 for i in self.issues if i.resolved)


class IssueFeed:
    """Polled issue list for the IT and Admin dashboards.

    Each ``include_resolved`` setting is its own scope: changing it tears the
    poll loop down and starts a fresh one, and any response that belongs to
    an older scope is dropped.
    """

    def __init__(self, api: PortalAPI, include_resolved: bool = False,
                 interval: Optional[float] = None,
                 on_change: Optional[Callable[[IssueListState], None]] = None):
        self._api = api
        self._interval = interval if interval is not None else settings.issues_sync_interval_seconds
        self._on_change = on_change
        self._state = IssueListState(include_resolved=include_resolved)
        self._generation = 0
        self._poller: Optional[PeriodicTask] = None

    @property
    def state(self) -> IssueListState:
        return self._state

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    def _set(self, state: IssueListState) -> None:
        self._state = state
        if self._on_change is not None:
            self._on_change(state)

    async def start(self) -> IssueListState:
        """Initial load (errors surfaced in state.error), then background polling"""
        generation = self._generation
        await self.refresh(generation=generation)
        if generation == self._generation:
            self._poller = PeriodicTask(
                lambda: self.refresh(silent=True, generation=generation),
                self._interval,
                name="issues-sync",
            )
            self._poller.start()
        return self._state

    async def stop(self) -> None:
        self._generation += 1
        if self._poller is not None:
            await self._poller.stop()
            self._poller = None

    async def set_include_resolved(self, include_resolved: bool) -> IssueListState:
        if include_resolved == self._state.include_resolved and self.polling:
            return self._state
        await self.stop()
        self._set(IssueListState(include_resolved=include_resolved))
        return await self.start()

    async def refresh(self, silent: bool = False, generation: Optional[int] = None) -> None:
        generation = self._generation if generation is None else generation
        if not silent:
            self._set(replace(self._state, syncing=True))
        try:
            issues = await self._api.get_issues(include_resolved=self._state.include_resolved)
        except APIError as e:
            if generation != self._generation:
                return
            if silent:
                logger.warning(f"Background issue sync failed: {e.message}")
                return
            logger.error(f"Error fetching issues: {e.message}")
            self._set(replace(self._state, loading=False, syncing=False, error=e.message))
            return
        if generation != self._generation:
            logger.debug("Dropping issue list from a stale scope")
            return
        self._set(replace(self._state, issues=issues, loading=False, syncing=False, error=None))

    async def resolve(self, issue_id: str) -> IssueResponse:
        """Resolve an issue and reload the list. Errors propagate to the caller."""
        issue = await self._api.resolve_issue(issue_id)
        await self.refresh(silent=True)
        return issue

