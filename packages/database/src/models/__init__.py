from sqlmodel import SQLModel

from models.ingestion import (
    Project,
    Issue,
    IssueClosure,
    IssueAssignment,
    IssueComment,
    PullRequest,
)
from models.summaries import SummaryRecord
from models.vectors import VectorCollection, VectorPoint

__all__ = [
    "SQLModel",
    "Project",
    "Issue",
    "IssueClosure",
    "IssueAssignment",
    "IssueComment",
    "PullRequest",
    "SummaryRecord",
    "VectorCollection",
    "VectorPoint",
]
