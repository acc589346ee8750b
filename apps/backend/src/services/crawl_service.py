"""
One crawl cycle: walk GitHub search for the tracked repositories and
persist what comes back through the Entity Store.

A failed walk aborts the cycle; the scheduler re-runs it later. Failed
writes of single items are logged, counted and skipped.
"""
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.config import Settings
from src.core.errors import EntityNotFoundError, StoreWriteError
from src.ingestion.github_client import GitHubClient
from src.ingestion import github_search
from src.services import entity_store


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CrawlReport(BaseModel):
    projects: int = 0
    open_issues: int = 0
    closed_issues: int = 0
    assignments: int = 0
    pull_requests: int = 0
    comments: int = 0
    participants: int = 0
    skipped: int = 0
    failed: int = 0
    rate_limited: bool = False


def open_issue_query(repos: str) -> str:
    return f"{repos} is:issue is:open"


def closed_issue_query(repos: str) -> str:
    return f"{repos} is:issue is:closed"


def assigned_issue_query(repos: str) -> str:
    return f"{repos} is:issue is:open -no:assignee"


def merged_pull_request_query(repos: str) -> str:
    return f"{repos} is:pr is:merged"


def commented_issue_query(repos: str) -> str:
    return f"{repos} is:issue is:open comments:>0"


async def _store_each(
    items: Iterable[T],
    store: Callable[[T], Awaitable[object]],
    what: str,
    report: CrawlReport,
) -> int:
    """
    Runs store() per item. Returns how many were written; False results
    (duplicates, already known) and unknown projects count as skipped.
    """
    written = 0
    for item in items:
        try:
            outcome = await store(item)
        except EntityNotFoundError as e:
            logger.info("Skipping %s: %s", what, e)
            report.skipped += 1
            continue
        except StoreWriteError as e:
            logger.error("Failed to store %s: %s", what, e)
            report.failed += 1
            continue
        if outcome is False:
            report.skipped += 1
        else:
            written += 1
    return written


async def run_crawl_cycle(db: AsyncSession, github: GitHubClient, settings: Settings) -> CrawlReport:
    """
    Repositories come from the projects already stored; crawl_repo_query
    seeds an empty store. With neither there is nothing to crawl. A token
    short on GraphQL points skips the cycle before any walk starts.
    """
    report = CrawlReport()
    page_cap = settings.crawl_page_cap
    page_size = settings.crawl_page_size

    repo_query = await entity_store.get_projects_as_repo_list(db) or settings.crawl_repo_query
    if not repo_query:
        logger.info("No repositories to crawl")
        return report

    remaining = await github.get_rate_limit()
    if remaining < settings.crawl_min_rate_limit:
        logger.warning(
            "Skipping crawl: %d GraphQL points left, need %d", remaining, settings.crawl_min_rate_limit
        )
        report.rate_limited = True
        return report

    repos = await github_search.search_repositories(
        github, repo_query, page_cap, page_size, readme_max_chars=settings.readme_max_chars
    )
    report.projects = await _store_each(
        repos, lambda repo: entity_store.upsert_project(db, repo), "project", report
    )

    qualifier = await entity_store.get_projects_as_repo_list(db)
    if not qualifier:
        return report

    open_issues = await github_search.search_open_issues(
        github,
        open_issue_query(qualifier),
        page_cap,
        page_size,
        description_max_chars=settings.issue_description_max_chars,
    )
    report.open_issues = await _store_each(
        open_issues, lambda issue: entity_store.add_issue(db, issue), "issue", report
    )

    closed = await github_search.search_closed_issues(
        github, closed_issue_query(qualifier), page_cap, page_size
    )
    report.closed_issues = await _store_each(
        closed, lambda item: entity_store.add_issue_closure(db, item), "issue closure", report
    )

    assigned = await github_search.search_assigned_events(
        github, assigned_issue_query(qualifier), page_cap, page_size
    )
    report.assignments = await _store_each(
        assigned, lambda item: entity_store.add_issue_assignment(db, item), "assignment", report
    )

    pulls = await github_search.search_pull_requests(
        github, merged_pull_request_query(qualifier), page_cap, page_size
    )
    report.pull_requests = await _store_each(
        pulls, lambda pull: entity_store.add_pull_request(db, pull), "pull request", report
    )

    comments = await github_search.search_issue_comments(
        github, commented_issue_query(qualifier), page_cap, page_size
    )
    report.comments = await _store_each(
        comments, lambda comment: entity_store.add_comment(db, comment), "comment", report
    )

    # No participant table; the walk only reports how many distinct people took part
    participants = await github_search.search_participants(
        github, open_issue_query(qualifier), page_cap, page_size
    )
    report.participants = len({p.login for p in participants if p.login})

    logger.info("Crawl cycle done: %s", report.model_dump())
    return report
