"""Request-scoped dependencies: database sessions, shared clients and the vector index."""
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.config import get_settings
from src.ingestion.github_client import GitHubClient
from src.services.llm_client import LLMClient
from src.services.vector_index import PgVectorIndex, VectorIndex


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None
_http_client: Optional[httpx.AsyncClient] = None
_llm_client: Optional[LLMClient] = None


def async_database_url(url: str) -> str:
    """postgresql:// URLs are pointed at the asyncpg driver."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def get_engine() -> AsyncEngine:
    global _engine, _session_factory
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(async_database_url(settings.database_url), pool_pre_ping=True)
        _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)
    return _engine


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    get_engine()
    async with _session_factory() as session:
        yield session


async def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        settings = get_settings()
        _http_client = httpx.AsyncClient(timeout=settings.request_timeout_seconds)
    return _http_client


async def get_github_client(
    http: httpx.AsyncClient = Depends(get_http_client),
) -> GitHubClient:
    settings = get_settings()
    return GitHubClient(http, settings.github_token, settings.github_graphql_url)


def get_llm_client() -> LLMClient:
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient.from_settings(get_settings())
    return _llm_client


async def get_vector_index(db: AsyncSession = Depends(get_db)) -> VectorIndex:
    return PgVectorIndex(db)


async def close_http_client() -> None:
    """Closes shared clients and disposes the engine; called on shutdown."""
    global _http_client, _llm_client, _engine, _session_factory
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
