"""Issue comments and direct generation queries."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.dependencies import get_db, get_llm_client
from src.core.errors import PipelineError, handle_pipeline_error
from src.services.entity_store import get_comments_by_issue_id
from src.services.llm_client import LLMClient


router = APIRouter()

DEEP_SYSTEM_PROMPT = "You're an AI assistant"
DEEP_MAX_TOKENS = 100


class CommentRequest(BaseModel):
    issue_id: str = Field(min_length=1)


class CommentItem(BaseModel):
    comment_creator: Optional[str]
    comment_date: datetime
    comment_body: str


class CommentsResponse(BaseModel):
    issue_id: str
    comments: list[CommentItem]


class DeepRequest(BaseModel):
    text: str = Field(min_length=1)


class DeepResponse(BaseModel):
    reply: str


@router.post("/comment", response_model=CommentsResponse)
async def list_comments(
    body: CommentRequest,
    db: AsyncSession = Depends(get_db),
) -> CommentsResponse:
    """Stored comments for one issue, oldest first. Unknown issues yield an empty list."""
    try:
        comments = await get_comments_by_issue_id(db, body.issue_id)
    except PipelineError as e:
        raise handle_pipeline_error(e)

    return CommentsResponse(
        issue_id=body.issue_id,
        comments=[
            CommentItem(
                comment_creator=c.comment_creator,
                comment_date=c.comment_date,
                comment_body=c.comment_body,
            )
            for c in comments
        ],
    )


@router.post("/deep", response_model=DeepResponse)
async def deep_query(
    body: DeepRequest,
    llm: LLMClient = Depends(get_llm_client),
) -> DeepResponse:
    try:
        reply = await llm.complete(DEEP_SYSTEM_PROMPT, body.text, DEEP_MAX_TOKENS)
    except PipelineError as e:
        raise handle_pipeline_error(e)
    return DeepResponse(reply=reply)
