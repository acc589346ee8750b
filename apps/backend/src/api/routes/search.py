"""Search and vector collection management."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.api.dependencies import get_llm_client, get_vector_index
from src.core.config import get_settings
from src.core.errors import PipelineError, handle_pipeline_error
from src.services.llm_client import LLMClient
from src.services.ranker import SearchHit, search_hybrid, search_simple
from src.services.vector_index import VectorIndex


router = APIRouter()


class SearchRequest(BaseModel):
    text: str = Field(min_length=1)
    collection_name: Optional[str] = None


class VectorRequest(BaseModel):
    text: Optional[str] = None
    collection_name: Optional[str] = None


class CollectionRequest(BaseModel):
    collection_name: str = Field(min_length=1)


class SearchResult(BaseModel):
    entity_id: str
    text: str
    score: float


class SearchResponse(BaseModel):
    results: list[SearchResult]


class CollectionStatsResponse(BaseModel):
    name: str
    dimension: int
    count: int


class CollectionDeletedResponse(BaseModel):
    name: str
    deleted: bool


def _to_response(hits: list[SearchHit]) -> SearchResponse:
    return SearchResponse(results=[
        SearchResult(entity_id=hit.entity_id, text=hit.text, score=hit.score)
        for hit in hits
    ])


@router.post("/search", response_model=SearchResponse)
async def hybrid_search(
    body: SearchRequest,
    llm: LLMClient = Depends(get_llm_client),
    index: VectorIndex = Depends(get_vector_index),
) -> SearchResponse:
    """Up to hybrid_result_cap results, biased toward the kind the query names."""
    settings = get_settings()
    collection = body.collection_name or settings.collection_name
    try:
        hits = await search_hybrid(body.text, collection, llm, index, settings)
    except PipelineError as e:
        raise handle_pipeline_error(e)
    return _to_response(hits)


@router.post("/vector", response_model=SearchResponse | CollectionStatsResponse)
async def vector_query(
    body: VectorRequest,
    llm: LLMClient = Depends(get_llm_client),
    index: VectorIndex = Depends(get_vector_index),
) -> SearchResponse | CollectionStatsResponse:
    """
    With text: simple threshold search. With only collection_name: that
    collection's stats.
    """
    settings = get_settings()
    collection = body.collection_name or settings.collection_name
    try:
        if body.text:
            hits = await search_simple(body.text, collection, llm, index, settings)
            return _to_response(hits)
        if body.collection_name:
            stats = await index.collection_stats(collection)
            return CollectionStatsResponse(name=stats.name, dimension=stats.dimension, count=stats.count)
    except PipelineError as e:
        raise handle_pipeline_error(e)

    raise HTTPException(status_code=400, detail="Provide text or collection_name")


@router.post("/vector/create", response_model=CollectionStatsResponse)
async def create_collection(
    body: CollectionRequest,
    index: VectorIndex = Depends(get_vector_index),
) -> CollectionStatsResponse:
    try:
        await index.create(body.collection_name, get_settings().embedding_dim)
        stats = await index.collection_stats(body.collection_name)
    except PipelineError as e:
        raise handle_pipeline_error(e)
    return CollectionStatsResponse(name=stats.name, dimension=stats.dimension, count=stats.count)


@router.post("/vector/delete", response_model=CollectionDeletedResponse)
async def delete_collection(
    body: CollectionRequest,
    index: VectorIndex = Depends(get_vector_index),
) -> CollectionDeletedResponse:
    try:
        await index.delete(body.collection_name)
    except PipelineError as e:
        raise handle_pipeline_error(e)
    return CollectionDeletedResponse(name=body.collection_name, deleted=True)
