from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

from constants import (
    SEARCH_PAGE_SIZE,
    MAX_SEARCH_PAGES,
    MIN_RATE_LIMIT_REMAINING,
    SUMMARIZE_BATCH_SIZE,
    INDEX_BATCH_SIZE,
    SHORT_INPUT_THRESHOLD,
    LONG_INPUT_MAX_CHARS,
    SHORT_INPUT_MAX_TOKENS,
    LONG_INPUT_MAX_TOKENS,
    ISSUE_DESCRIPTION_MAX_CHARS,
    README_MAX_CHARS,
    HYBRID_CANDIDATE_LIMIT,
    HYBRID_SCORE_THRESHOLD,
    HYBRID_RESULT_CAP,
    SIMPLE_CANDIDATE_LIMIT,
    SIMPLE_SCORE_THRESHOLD,
    DEFAULT_COLLECTION_NAME,
    DEFAULT_EMBEDDING_DIM,
)


class Settings(BaseSettings):
    database_url: str = ""

    environment: str = "development"
    cors_origins: str = "*"

    log_level: str = "INFO"
    log_json: bool = False

    github_token: str = ""
    github_graphql_url: str = "https://api.github.com/graphql"

    crawl_page_size: int = SEARCH_PAGE_SIZE
    crawl_page_cap: int = MAX_SEARCH_PAGES
    crawl_repo_query: str = ""
    crawl_min_rate_limit: int = MIN_RATE_LIMIT_REMAINING
    issue_description_max_chars: int = ISSUE_DESCRIPTION_MAX_CHARS
    readme_max_chars: int = README_MAX_CHARS

    llm_base_url: str = "https://api.openai.com/v1"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"

    # Empty embedding endpoint settings fall back to the llm_* values
    embedding_base_url: str = ""
    embedding_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = DEFAULT_EMBEDDING_DIM

    request_timeout_seconds: float = 60.0

    short_input_threshold: int = SHORT_INPUT_THRESHOLD
    long_input_max_chars: int = LONG_INPUT_MAX_CHARS
    short_input_max_tokens: int = SHORT_INPUT_MAX_TOKENS
    long_input_max_tokens: int = LONG_INPUT_MAX_TOKENS

    summarize_batch_size: int = SUMMARIZE_BATCH_SIZE
    index_batch_size: int = INDEX_BATCH_SIZE

    collection_name: str = DEFAULT_COLLECTION_NAME

    hybrid_candidate_limit: int = HYBRID_CANDIDATE_LIMIT
    hybrid_score_threshold: float = HYBRID_SCORE_THRESHOLD
    hybrid_result_cap: int = HYBRID_RESULT_CAP
    simple_candidate_limit: int = SIMPLE_CANDIDATE_LIMIT
    simple_score_threshold: float = SIMPLE_SCORE_THRESHOLD

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
