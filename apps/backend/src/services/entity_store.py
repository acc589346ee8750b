"""
Entity Store: durable projects, issues, comments, assignments and pull requests.

Project writes merge (non-null incoming fields win). Issue, comment and pull
request writes are insert-only. Every failed write raises StoreWriteError;
the caller decides whether that is fatal for its batch.
"""
import logging
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from constants import (
    PROJECT_DESCRIPTION_FROM_README_CHARS,
    EMPTY_PROJECT_DESCRIPTION,
    ISSUE_STATUS_OPEN,
    ISSUE_STATUS_ASSIGNED,
    ISSUE_STATUS_CLOSED,
)
from src.core.errors import EntityNotFoundError, StoreWriteError, DuplicateKeyError
from src.ingestion.github_search import (
    ProjectSummary,
    OpenIssue,
    ClosedIssue,
    AssignedIssueEvent,
    PullRequestRecord,
    CommentRecord,
)
from models.ingestion import (
    Project,
    Issue,
    IssueClosure,
    IssueAssignment,
    IssueComment,
    PullRequest,
)


logger = logging.getLogger(__name__)


def dialect_insert(db: AsyncSession, model: type) -> Any:
    """Dialect-specific INSERT so ON CONFLICT clauses are available."""
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    if dialect == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)


async def execute_write(db: AsyncSession, statement: Any, what: str) -> Any:
    try:
        result = await db.exec(statement)
        await db.commit()
        return result
    except IntegrityError as e:
        await db.rollback()
        logger.error("Integrity violation writing %s: %s", what, e)
        raise StoreWriteError(f"Failed to write {what}: {e.orig}") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to write %s: %s", what, e)
        raise StoreWriteError(f"Failed to write {what}") from e


async def execute_read(db: AsyncSession, statement: Any, what: str) -> Any:
    try:
        return await db.exec(statement)
    except SQLAlchemyError as e:
        logger.error("Failed to read %s: %s", what, e)
        raise StoreWriteError(f"Failed to read {what}") from e


def project_description_for(repo: ProjectSummary) -> str:
    """Description, else the start of the README, else a placeholder."""
    if repo.repo_description:
        return repo.repo_description
    if repo.repo_readme:
        return repo.repo_readme[:PROJECT_DESCRIPTION_FROM_README_CHARS]
    return EMPTY_PROJECT_DESCRIPTION


async def upsert_project(db: AsyncSession, repo: ProjectSummary) -> None:
    """
    Creates the project on first sighting, merges on every later one.
    Incoming None values never erase stored data.
    """
    values = {
        "project_id": repo.project_id,
        "project_logo": repo.project_logo or None,
        "main_language": repo.main_language or None,
        "repo_stars": repo.repo_stars,
        "project_description": project_description_for(repo),
        "readme": repo.repo_readme or None,
    }

    statement = dialect_insert(db, Project).values(**values)
    table = Project.__table__
    merged = {
        name: sa.func.coalesce(statement.excluded[name], table.c[name])
        for name in values
        if name != "project_id"
    }
    merged["updated_at"] = sa.func.now()
    statement = statement.on_conflict_do_update(
        index_elements=[table.c.project_id],
        set_=merged,
    )

    await execute_write(db, statement, f"project {repo.project_id}")


async def project_exists(db: AsyncSession, project_id: str) -> bool:
    statement = select(Project.project_id).where(Project.project_id == project_id)
    result = await execute_read(db, statement, f"project {project_id}")
    return result.first() is not None


async def issue_exists(db: AsyncSession, issue_id: str) -> bool:
    statement = select(Issue.issue_id).where(Issue.issue_id == issue_id)
    result = await execute_read(db, statement, f"issue {issue_id}")
    return result.first() is not None


async def pull_request_exists(db: AsyncSession, pull_id: str) -> bool:
    statement = select(PullRequest.pull_id).where(PullRequest.pull_id == pull_id)
    result = await execute_read(db, statement, f"pull request {pull_id}")
    return result.first() is not None


async def get_project(db: AsyncSession, project_id: str) -> Project:
    """Raises EntityNotFoundError if absent."""
    result = await execute_read(db, select(Project).where(Project.project_id == project_id), "project")
    project = result.first()
    if project is None:
        raise EntityNotFoundError("project", project_id)
    return project


async def get_issue(db: AsyncSession, issue_id: str) -> Issue:
    """Raises EntityNotFoundError if absent."""
    result = await execute_read(db, select(Issue).where(Issue.issue_id == issue_id), "issue")
    issue = result.first()
    if issue is None:
        raise EntityNotFoundError("issue", issue_id)
    return issue


async def add_issue(db: AsyncSession, issue: OpenIssue) -> bool:
    """
    Inserts an open issue; an already known issue is left untouched.
    Returns True when a row was inserted.

    Raises EntityNotFoundError when the owning project has not been stored yet.
    """
    if not await project_exists(db, issue.project_id):
        raise EntityNotFoundError("project", issue.project_id)

    statement = dialect_insert(db, Issue).values(
        issue_id=issue.issue_id,
        project_id=issue.project_id,
        issue_title=issue.issue_title,
        issue_creator=issue.issue_creator,
        issue_description=issue.issue_description,
        issue_status=ISSUE_STATUS_OPEN,
    ).on_conflict_do_nothing(index_elements=[Issue.__table__.c.issue_id])

    result = await execute_write(db, statement, f"issue {issue.issue_id}")
    return result.rowcount > 0


async def add_issue_closure(db: AsyncSession, closed: ClosedIssue) -> None:
    """Appends a closure event and moves a known issue to closed."""
    event = sa.insert(IssueClosure).values(
        issue_id=closed.issue_id,
        issue_assignees=closed.issue_assignees,
        issue_linked_pr=closed.issue_linked_pr,
    )
    await execute_write(db, event, f"closure of {closed.issue_id}")

    changes: dict[str, Any] = {"issue_status": ISSUE_STATUS_CLOSED}
    if closed.issue_assignees:
        changes["issue_assignees"] = closed.issue_assignees
    if closed.issue_linked_pr:
        changes["issue_linked_pr"] = closed.issue_linked_pr

    update = sa.update(Issue).where(col(Issue.issue_id) == closed.issue_id).values(**changes)
    await execute_write(db, update, f"issue {closed.issue_id}")


async def add_issue_assignment(db: AsyncSession, assigned: AssignedIssueEvent) -> None:
    """Appends an assignment event; an open issue becomes assigned."""
    event = sa.insert(IssueAssignment).values(
        issue_id=assigned.issue_id,
        issue_assignee=assigned.issue_assignee or None,
        date_assigned=assigned.date_assigned,
    )
    await execute_write(db, event, f"assignment of {assigned.issue_id}")

    update = (
        sa.update(Issue)
        .where(col(Issue.issue_id) == assigned.issue_id)
        .where(col(Issue.issue_status) == ISSUE_STATUS_OPEN)
        .values(issue_status=ISSUE_STATUS_ASSIGNED)
    )
    await execute_write(db, update, f"issue {assigned.issue_id}")


async def _insert_comment(db: AsyncSession, comment: CommentRecord) -> None:
    """Raises DuplicateKeyError when (issue_id, comment_date) is taken."""
    table = IssueComment.__table__
    statement = dialect_insert(db, IssueComment).values(
        issue_id=comment.issue_id,
        comment_creator=comment.comment_creator,
        comment_date=comment.comment_date,
        comment_body=comment.comment_body,
    ).on_conflict_do_nothing(index_elements=[table.c.issue_id, table.c.comment_date])

    try:
        result = await db.exec(statement)
        await db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent writer between check and insert
        await db.rollback()
        raise DuplicateKeyError(str(e.orig)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error adding comment on %s: %s", comment.issue_id, e)
        raise StoreWriteError(f"Failed to write comment on {comment.issue_id}") from e

    if result.rowcount == 0:
        raise DuplicateKeyError(f"{comment.issue_id} at {comment.comment_date}")


async def add_comment(db: AsyncSession, comment: CommentRecord) -> bool:
    """
    Inserts a comment unless (issue_id, comment_date) is already stored.
    Duplicates are logged and reported as False rather than raised.
    """
    try:
        await _insert_comment(db, comment)
    except DuplicateKeyError:
        logger.info("Skipping duplicate comment: %s at %s", comment.issue_id, comment.comment_date)
        return False
    return True


async def add_pull_request(db: AsyncSession, pull: PullRequestRecord) -> bool:
    """Insert-only; returns True when a row was inserted."""
    statement = dialect_insert(db, PullRequest).values(
        pull_id=pull.pull_id,
        pull_title=pull.pull_title,
        pull_author=pull.pull_author,
        project_id=pull.project_id,
        date_merged=pull.merged_at,
    ).on_conflict_do_nothing(index_elements=[PullRequest.__table__.c.pull_id])

    result = await execute_write(db, statement, f"pull request {pull.pull_id}")
    return result.rowcount > 0


async def get_comments_by_issue_id(db: AsyncSession, issue_id: str) -> list[IssueComment]:
    statement = (
        select(IssueComment)
        .where(IssueComment.issue_id == issue_id)
        .order_by(col(IssueComment.comment_date))
    )
    result = await execute_read(db, statement, f"comments of {issue_id}")
    return list(result.all())


async def get_projects_as_repo_list(db: AsyncSession) -> str:
    """
    Search qualifier covering every stored project, e.g.
    "repo:owner/a repo:owner/b". Empty string when nothing is stored.
    """
    result = await execute_read(db, select(Project.project_id).order_by(Project.project_id), "projects")
    qualifiers = []
    for project_id in result.all():
        parts = project_id.rstrip("/").split("/")
        if len(parts) >= 2 and parts[-2] and parts[-1]:
            qualifiers.append(f"repo:{parts[-2]}/{parts[-1]}")
    return " ".join(qualifiers)
