import asyncio
import json
import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Callable, Iterable, List, Optional
import aiohttp

from inactivity_lock.domain.exceptions import GitHubAPIException
from inactivity_lock.domain.models import (
    ClassifiedThreads,
    LockReason,
    LockRecord,
    RateLimitStatus,
    Thread,
    ThreadType,
)
from inactivity_lock.infrastructure.acl import GitHubTranslator
from inactivity_lock.infrastructure.github_client import GitHubClient
from inactivity_lock.infrastructure.outputs import ActionOutputs
from inactivity_lock.infrastructure.settings import Settings

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400
ISSUES_OUTPUT = "locked-issues"
PULL_REQUESTS_OUTPUT = "locked-prs"
# Failures that degrade a single step instead of aborting the run
REQUEST_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    GitHubAPIException,
    KeyError,
    TypeError,
    ValueError,
)


def build_search_query(owner: str, repo_name: str) -> str:
    return f"repo:{owner}/{repo_name} state:closed is:unlocked"


def format_days(days: float) -> str:
    """Renders whole day counts without a fractional part (``1`` rather than ``1.0``)."""
    return str(int(days)) if days.is_integer() else repr(days)


def serialize_manifest(records: Iterable[LockRecord]) -> str:
    return json.dumps(
        [record.model_dump() for record in records],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InactivityLockService:
    """
    Locks closed issues and pull requests that have been inactive for too long.

    A run checks the core rate limit, pages through the repository's closed and
    unlocked threads, splits them into issues and pull requests and processes
    both categories concurrently. Every step reports its own failures through
    ``outputs`` so that one bad request never aborts the rest of the run.
    """

    def __init__(
            self,
            github_client: GitHubClient,
            settings: Settings,
            outputs: ActionOutputs,
            clock: Optional[Callable[[], datetime]] = None,
    ):
        self.github_client = github_client
        self.settings = settings
        self.outputs = outputs
        self.clock = clock or _utcnow

    async def run(self, session: Optional[aiohttp.ClientSession] = None) -> None:
        """
        Executes one full lock run. Never raises: unexpected errors are reported
        once as a failure of the run.
        """
        try:
            if session is not None:
                await self._run(session)
                return
            async with aiohttp.ClientSession() as own_session:
                await self._run(own_session)
        except Exception as e:
            self.outputs.set_failed(f"Action failed with error: {e}")

    async def _run(self, session: aiohttp.ClientSession) -> None:
        settings = self.settings

        logger.info("Starting processing of issues and pull requests.")
        logger.info("Checking rate limit before processing.")

        rate_limit_status = await self.check_rate_limit(session)
        if rate_limit_status.remaining <= settings.rate_limit_buffer:
            logger.warning("Initial rate limit too low, stopping processing.")
            return

        logger.info("Sufficient rate limit available, starting processing.")

        threads = await self.fetch_threads(
            session,
            settings.owner,
            settings.repo_name,
            settings.token,
            settings.rate_limit_buffer,
        )
        classified = self.filter_items(threads)
        logger.info(
            f"Found {len(classified.issues)} issues and "
            f"{len(classified.pull_requests)} PRs to check."
        )

        results = await asyncio.gather(
            self.process_issues(
                session,
                settings.owner,
                settings.repo_name,
                classified.issues,
                settings.days_inactive_issues,
                settings.lock_reason_issues,
            ),
            self.process_pull_requests(
                session,
                settings.owner,
                settings.repo_name,
                classified.pull_requests,
                settings.days_inactive_prs,
                settings.lock_reason_prs,
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                self.outputs.set_failed(f"Action failed with error: {result}")

        await self.check_rate_limit(session)
        logger.info("Finished processing issues and pull requests.")

    async def check_rate_limit(
        self, session: aiohttp.ClientSession, resource: str = "core"
    ) -> RateLimitStatus:
        """
        Reads the remaining quota of one rate limit resource.

        ``core`` covers REST calls, ``graphql`` covers the search query. When the
        check fails the error is reported and an exhausted status is returned, so
        callers stop consuming quota.
        """
        try:
            resources = await self.github_client.get_rate_limit(session)
            data = resources.get(resource)
            if not data:
                raise GitHubAPIException(f"no '{resource}' resource in rate limit response")
            remaining = int(data['remaining'])
            reset_time = datetime.fromtimestamp(int(data['reset']), tz=timezone.utc)
        except REQUEST_ERRORS as e:
            self.outputs.set_failed(f"Failed to check rate limit: {e}")
            return RateLimitStatus.exhausted()

        reset_time_human_readable = format_datetime(reset_time, usegmt=True)
        logger.info(f"Rate limit {resource} - remaining: {remaining}")
        logger.info(f"Rate limit {resource} - resets at: {reset_time_human_readable}")

        return RateLimitStatus(
            remaining=remaining,
            reset_time=reset_time,
            reset_time_human_readable=reset_time_human_readable,
        )

    async def fetch_threads(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo_name: str,
        token: Optional[str],
        buffer: int,
        cursor: Optional[str] = None,
        accumulator: Optional[List[Thread]] = None,
    ) -> List[Thread]:
        """
        Pages through the closed, unlocked threads of a repository.

        Stops when there are no more pages or when the GraphQL quota drops to
        ``buffer`` or below; a partial list is a valid result. Request failures
        are reported and whatever was fetched so far is returned.
        """
        threads = accumulator if accumulator is not None else []
        query_string = build_search_query(owner, repo_name)

        while True:
            try:
                raw_nodes, next_cursor, has_next_page = await self.github_client.search_threads(
                    session, query_string, cursor, token
                )
                page = [GitHubTranslator.to_domain(node) for node in raw_nodes if node]
            except REQUEST_ERRORS as e:
                self.outputs.set_failed(f"Failed to fetch issues and PRs using GraphQL: {e}")
                return threads

            threads.extend(page)
            logger.info(f"Fetched {len(page)} threads. Total: {len(threads)}.")

            rate_limit_status = await self.check_rate_limit(session, resource="graphql")
            if rate_limit_status.remaining <= buffer:
                logger.warning(
                    "Rate limit exceeded, stopping further fetching. "
                    f"Please wait until {rate_limit_status.reset_time_human_readable}."
                )
                return threads

            if not has_next_page:
                return threads
            cursor = next_cursor

    @staticmethod
    def filter_items(threads: Iterable[Thread]) -> ClassifiedThreads:
        """Splits threads into issues and pull requests, keeping their order."""
        issues: List[Thread] = []
        pull_requests: List[Thread] = []

        for thread in threads:
            if thread.typename == ThreadType.ISSUE:
                issues.append(thread)
            elif thread.typename == ThreadType.PULL_REQUEST:
                pull_requests.append(thread)
            else:
                logger.warning(f"Skipping #{thread.number} with unsupported type '{thread.typename}'.")

        return ClassifiedThreads(issues=tuple(issues), pull_requests=tuple(pull_requests))

    async def lock_item(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo_name: str,
        number: int,
        reason: Optional[LockReason],
    ) -> bool:
        """Locks one thread. Returns False, after reporting, when the request fails."""
        try:
            await self.github_client.lock_issue(session, owner, repo_name, number, reason or None)
        except REQUEST_ERRORS as e:
            self.outputs.set_failed(f"Failed to lock issue/PR #{number}: {e}")
            return False
        return True

    async def process_issues(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo_name: str,
        issues: Iterable[Thread],
        days_inactive: int,
        lock_reason: Optional[LockReason],
    ) -> List[LockRecord]:
        return await self.process_threads(
            session, owner, repo_name, issues, days_inactive, lock_reason,
            label="issue", output_name=ISSUES_OUTPUT,
        )

    async def process_pull_requests(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo_name: str,
        pull_requests: Iterable[Thread],
        days_inactive: int,
        lock_reason: Optional[LockReason],
    ) -> List[LockRecord]:
        return await self.process_threads(
            session, owner, repo_name, pull_requests, days_inactive, lock_reason,
            label="PR", output_name=PULL_REQUESTS_OUTPUT,
        )

    async def process_threads(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo_name: str,
        threads: Iterable[Thread],
        days_inactive: int,
        lock_reason: Optional[LockReason],
        label: str,
        output_name: str,
    ) -> List[LockRecord]:
        """
        Locks every thread whose inactivity exceeds ``days_inactive`` days and
        publishes the JSON manifest of locked threads under ``output_name``.
        """
        now = self.clock()
        title_label = label[:1].upper() + label[1:]
        locked: List[LockRecord] = []

        for thread in threads:
            if thread.locked:
                logger.debug(f"{title_label} #{thread.number} is already locked.")
                continue

            days_difference = (now - thread.updated_at).total_seconds() / SECONDS_PER_DAY

            if days_difference > days_inactive:
                if not await self.lock_item(session, owner, repo_name, thread.number, lock_reason):
                    continue
                logger.info(f"Locked {label} #{thread.number} due to {days_inactive} days of inactivity.")
                locked.append(LockRecord(number=thread.number, title=thread.title))
            else:
                logger.debug(
                    f"{title_label} #{thread.number} has only {format_days(days_difference)} days of inactivity."
                )

        self.outputs.set_output(output_name, serialize_manifest(locked))
        return locked
