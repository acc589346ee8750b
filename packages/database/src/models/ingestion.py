from typing import List, Optional
from datetime import datetime
import sqlalchemy as sa
from sqlmodel import SQLModel, Field, Column
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONVariant = sa.JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def _timestamp_column(nullable: bool = True) -> sa.Column:
    return sa.Column(sa.DateTime(timezone=True), nullable=nullable)


def _recorded_at_column() -> sa.Column:
    return sa.Column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


class Project(SQLModel, table=True):
    __table_args__ = {"schema": "ingestion"}

    # Repository URL, immutable once created
    project_id: str = Field(primary_key=True)
    project_logo: Optional[str] = None
    main_language: Optional[str] = Field(default=None, index=True)
    repo_stars: Optional[int] = None
    project_description: Optional[str] = None
    readme: Optional[str] = Field(default=None, sa_column=Column(sa.Text))
    updated_at: Optional[datetime] = Field(default=None, sa_column=_recorded_at_column())


class Issue(SQLModel, table=True):
    __table_args__ = {"schema": "ingestion"}

    # Issue URL, globally unique
    issue_id: str = Field(primary_key=True)
    project_id: str = Field(foreign_key="ingestion.project.project_id", index=True)
    issue_title: str
    issue_creator: Optional[str] = None
    issue_description: str = ""
    issue_budget: Optional[int] = None
    issue_assignees: Optional[List[str]] = Field(default=None, sa_column=Column(JSONVariant))
    issue_linked_pr: Optional[str] = None
    issue_status: str = Field(default="open", index=True)
    created_at: Optional[datetime] = Field(default=None, sa_column=_recorded_at_column())


class IssueClosure(SQLModel, table=True):
    """Append-only record of an issue being observed closed."""
    __table_args__ = {"schema": "ingestion"}

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: str = Field(index=True)
    issue_assignees: Optional[List[str]] = Field(default=None, sa_column=Column(JSONVariant))
    issue_linked_pr: Optional[str] = None
    recorded_at: Optional[datetime] = Field(default=None, sa_column=_recorded_at_column())


class IssueAssignment(SQLModel, table=True):
    """Append-only record of an assignment event."""
    __table_args__ = {"schema": "ingestion"}

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: str = Field(index=True)
    issue_assignee: Optional[str] = None
    date_assigned: Optional[datetime] = Field(default=None, sa_column=_timestamp_column())
    recorded_at: Optional[datetime] = Field(default=None, sa_column=_recorded_at_column())


class IssueComment(SQLModel, table=True):
    __table_args__ = (
        sa.UniqueConstraint("issue_id", "comment_date", name="uq_issuecomment_issue_date"),
        {"schema": "ingestion"},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: str = Field(index=True)
    comment_creator: Optional[str] = None
    comment_date: datetime = Field(sa_column=_timestamp_column(nullable=False))
    comment_body: str = Field(default="", sa_column=Column(sa.Text, nullable=False))


class PullRequest(SQLModel, table=True):
    __table_args__ = {"schema": "ingestion"}

    pull_id: str = Field(primary_key=True)
    pull_title: str = ""
    pull_author: Optional[str] = None
    project_id: str = Field(index=True)
    date_merged: Optional[datetime] = Field(default=None, sa_column=_timestamp_column())
