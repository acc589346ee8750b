"""
Summarization queue: moves projects and issues through
UNSUMMARIZED -> SUMMARIZED -> INDEXED.

An entity is UNSUMMARIZED while it has no SummaryRecord (anti-join); the
backlog has no depth signal beyond re-running the query. Summarizing and
indexing are separate batches so either half can be re-run alone.
"""
import logging
from enum import Enum
from typing import Optional

import sqlalchemy as sa
from pydantic import BaseModel
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from constants import ENTITY_KIND_ISSUE, ENTITY_KIND_PROJECT
from src.core.config import Settings
from src.core.errors import GenerationError, StoreWriteError, VectorIndexError, CollectionNotFoundError
from src.services.entity_store import dialect_insert, execute_write, execute_read
from src.services.llm_client import LLMClient
from src.services.summary_generator import summarize_issue, summarize_project
from src.services.vector_index import VectorIndex, PointInput
from models.ingestion import Issue, Project
from models.summaries import SummaryRecord


logger = logging.getLogger(__name__)


class SummaryState(str, Enum):
    UNSUMMARIZED = "unsummarized"
    SUMMARIZED = "summarized"
    INDEXED = "indexed"


class BatchReport(BaseModel):
    selected: int = 0
    succeeded: int = 0
    failed: int = 0
    # Summaries recorded empty after an unparseable reply, or indexed by id for lack of text
    empty: int = 0
    # Overwritten while being indexed and left for the next run
    requeued: int = 0


async def get_summary_state(db: AsyncSession, entity_id: str) -> SummaryState:
    result = await execute_read(
        db,
        select(SummaryRecord.indexed).where(SummaryRecord.entity_id == entity_id),
        f"summary of {entity_id}",
    )
    indexed = result.first()
    if indexed is None:
        return SummaryState.UNSUMMARIZED
    return SummaryState.INDEXED if indexed else SummaryState.SUMMARIZED


async def select_unsummarized_issues(db: AsyncSession, limit: int) -> list[Issue]:
    """Issues with no SummaryRecord row at all, regardless of any flag."""
    statement = (
        select(Issue)
        .outerjoin(SummaryRecord, col(SummaryRecord.entity_id) == col(Issue.issue_id))
        .where(col(SummaryRecord.entity_id).is_(None))
        .order_by(col(Issue.issue_id))
        .limit(limit)
    )
    result = await execute_read(db, statement, "unsummarized issues")
    return list(result.all())


async def select_unsummarized_projects(db: AsyncSession, limit: int) -> list[Project]:
    statement = (
        select(Project)
        .outerjoin(SummaryRecord, col(SummaryRecord.entity_id) == col(Project.project_id))
        .where(col(SummaryRecord.entity_id).is_(None))
        .order_by(col(Project.project_id))
        .limit(limit)
    )
    result = await execute_read(db, statement, "unsummarized projects")
    return list(result.all())


async def record_summary(
    db: AsyncSession,
    entity_id: str,
    entity_kind: str,
    summary: str,
    keywords: list[str],
) -> None:
    """
    Inserts or overwrites the SummaryRecord. Both summary text and keyword
    tags are replaced, and indexed drops back to False so the new text is
    embedded on the next indexing batch.
    """
    statement = dialect_insert(db, SummaryRecord).values(
        entity_id=entity_id,
        entity_kind=entity_kind,
        summary_text=summary,
        keyword_tags=keywords,
        indexed=False,
        revision=0,
    )
    statement = statement.on_conflict_do_update(
        index_elements=[SummaryRecord.__table__.c.entity_id],
        set_={
            "entity_kind": statement.excluded.entity_kind,
            "summary_text": statement.excluded.summary_text,
            "keyword_tags": statement.excluded.keyword_tags,
            "indexed": False,
            "revision": SummaryRecord.__table__.c.revision + 1,
            "updated_at": sa.func.now(),
        },
    )
    await execute_write(db, statement, f"summary of {entity_id}")


async def select_unindexed(db: AsyncSession, limit: int) -> list[SummaryRecord]:
    statement = (
        select(SummaryRecord)
        .where(col(SummaryRecord.indexed).is_(False))
        .order_by(col(SummaryRecord.entity_id))
        .limit(limit)
    )
    result = await execute_read(db, statement, "unindexed summaries")
    return list(result.all())


async def mark_indexed(db: AsyncSession, entity_id: str, revision: Optional[int] = None) -> bool:
    """
    Flags the record INDEXED. With a revision, only that revision is flagged;
    returns False when the record was overwritten since it was read.
    """
    statement = sa.update(SummaryRecord).where(col(SummaryRecord.entity_id) == entity_id)
    if revision is not None:
        statement = statement.where(col(SummaryRecord.revision) == revision)
    result = await execute_write(db, statement.values(indexed=True), f"indexed flag of {entity_id}")
    return result.rowcount > 0


async def _summarize_one(
    db: AsyncSession,
    llm: LLMClient,
    entity: Issue | Project,
    settings: Settings,
    report: BatchReport,
) -> None:
    if isinstance(entity, Issue):
        entity_id, kind = entity.issue_id, ENTITY_KIND_ISSUE
    else:
        entity_id, kind = entity.project_id, ENTITY_KIND_PROJECT

    try:
        if kind == ENTITY_KIND_ISSUE:
            summary, keywords = await summarize_issue(llm, entity, settings)
        else:
            summary, keywords = await summarize_project(llm, entity, settings)
    except GenerationError as e:
        # Stays UNSUMMARIZED and is reselected next run
        logger.warning("Summarization failed for %s: %s", entity_id, e)
        report.failed += 1
        return

    try:
        await record_summary(db, entity_id, kind, summary, keywords)
    except StoreWriteError as e:
        logger.error("Could not record summary for %s: %s", entity_id, e)
        report.failed += 1
        return

    if not summary:
        report.empty += 1
    report.succeeded += 1


async def run_summarize_batch(
    db: AsyncSession,
    llm: LLMClient,
    settings: Settings,
    limit: Optional[int] = None,
) -> BatchReport:
    """Issues first, then projects fill whatever room is left in the batch."""
    limit = settings.summarize_batch_size if limit is None else limit
    report = BatchReport()

    issues = await select_unsummarized_issues(db, limit)
    projects: list[Project] = []
    if len(issues) < limit:
        projects = await select_unsummarized_projects(db, limit - len(issues))

    candidates: list[Issue | Project] = [*issues, *projects]
    # Detach so a rollback on one item does not expire the others
    db.expunge_all()
    report.selected = len(candidates)
    if not candidates:
        logger.info("Summarization backlog is empty")
        return report

    for entity in candidates:
        await _summarize_one(db, llm, entity, settings, report)

    logger.info(
        "Summarize batch done: selected=%d succeeded=%d failed=%d empty=%d",
        report.selected, report.succeeded, report.failed, report.empty,
    )
    return report


async def run_index_batch(
    db: AsyncSession,
    llm: LLMClient,
    index: VectorIndex,
    settings: Settings,
    collection: Optional[str] = None,
    limit: Optional[int] = None,
) -> BatchReport:
    """
    Embeds and upserts up to index_batch_size SUMMARIZED records, then flags
    them INDEXED. A missing collection aborts the batch; other per-item
    failures leave the record for the next run.
    """
    collection = collection or settings.collection_name
    limit = settings.index_batch_size if limit is None else limit
    report = BatchReport()

    records = await select_unindexed(db, limit)
    db.expunge_all()
    report.selected = len(records)
    if not records:
        return report

    # Fail fast instead of failing every item
    await index.collection_stats(collection)

    for record in records:
        text = record.summary_text or " ".join(record.keyword_tags or [])
        if not text:
            # Every indexed record keeps a point; the id stands in for missing text
            logger.info("No summary text for %s, embedding its id", record.entity_id)
            text = record.entity_id
            report.empty += 1

        try:
            vector = await llm.embed(text)
            await index.upsert(collection, [PointInput(
                entity_id=record.entity_id,
                vector=vector,
                payload={
                    "entity_id": record.entity_id,
                    "entity_kind": record.entity_kind,
                    "text": text,
                },
            )])
            flagged = await mark_indexed(db, record.entity_id, record.revision)
        except CollectionNotFoundError:
            raise
        except (GenerationError, VectorIndexError, StoreWriteError) as e:
            logger.warning("Indexing failed for %s: %s", record.entity_id, e)
            report.failed += 1
            continue

        if not flagged:
            # Re-summarized mid-batch; the newer text is picked up next run
            logger.info("Summary of %s changed while indexing, leaving it queued", record.entity_id)
            report.requeued += 1
            continue
        report.succeeded += 1

    logger.info(
        "Index batch done: collection=%s selected=%d succeeded=%d failed=%d requeued=%d",
        collection, report.selected, report.succeeded, report.failed, report.requeued,
    )
    return report
