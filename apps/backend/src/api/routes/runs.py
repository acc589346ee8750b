"""Pipeline triggers: one crawl cycle, one summarization batch, one indexing batch."""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.dependencies import get_db, get_github_client, get_llm_client, get_vector_index
from src.core.config import get_settings
from src.core.errors import PipelineError, handle_pipeline_error
from src.ingestion.github_client import GitHubClient
from src.services.crawl_service import CrawlReport, run_crawl_cycle
from src.services.llm_client import LLMClient
from src.services.summarization_service import BatchReport, run_summarize_batch, run_index_batch
from src.services.vector_index import VectorIndex


router = APIRouter()


class IndexRunRequest(BaseModel):
    collection_name: Optional[str] = None


@router.post("/crawl", response_model=CrawlReport)
async def trigger_crawl(
    db: AsyncSession = Depends(get_db),
    github: GitHubClient = Depends(get_github_client),
) -> CrawlReport:
    try:
        return await run_crawl_cycle(db, github, get_settings())
    except PipelineError as e:
        raise handle_pipeline_error(e)


@router.post("/summarize", response_model=BatchReport)
async def trigger_summarize(
    db: AsyncSession = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
) -> BatchReport:
    try:
        return await run_summarize_batch(db, llm, get_settings())
    except PipelineError as e:
        raise handle_pipeline_error(e)


@router.post("/index", response_model=BatchReport)
async def trigger_index(
    body: Optional[IndexRunRequest] = None,
    db: AsyncSession = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
    index: VectorIndex = Depends(get_vector_index),
) -> BatchReport:
    collection = body.collection_name if body else None
    try:
        return await run_index_batch(db, llm, index, get_settings(), collection=collection)
    except PipelineError as e:
        raise handle_pipeline_error(e)
