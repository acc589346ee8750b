"""
Shared constants for the IssueIndex summarize-and-search pipeline;
centralized so crawl, summarization and ranking agree on the same values.
Tunable values here are defaults; the backend Settings may override them.
"""

# GitHub search pagination
SEARCH_PAGE_SIZE: int = 100
MAX_SEARCH_PAGES: int = 10
# Remaining GraphQL points below which a crawl cycle is skipped
MIN_RATE_LIMIT_REMAINING: int = 100

# Summarization queue
SUMMARIZE_BATCH_SIZE: int = 50
INDEX_BATCH_SIZE: int = 50

# Summary generation
SHORT_INPUT_THRESHOLD: int = 200
LONG_INPUT_MAX_CHARS: int = 4000
SHORT_INPUT_MAX_TOKENS: int = 180
LONG_INPUT_MAX_TOKENS: int = 250

# Ingestion truncation
ISSUE_DESCRIPTION_MAX_CHARS: int = 240
README_MAX_CHARS: int = 4000
PROJECT_DESCRIPTION_FROM_README_CHARS: int = 1000
EMPTY_PROJECT_DESCRIPTION: str = "No description available"

# Hybrid retrieval
HYBRID_CANDIDATE_LIMIT: int = 10
HYBRID_SCORE_THRESHOLD: float = 0.75
HYBRID_RESULT_CAP: int = 5

# Simple retrieval
SIMPLE_CANDIDATE_LIMIT: int = 5
SIMPLE_SCORE_THRESHOLD: float = 0.79

# Vector collections
DEFAULT_COLLECTION_NAME: str = "gosim_search"
DEFAULT_EMBEDDING_DIM: int = 1536

# Entity kinds stored alongside summaries and vector payloads
ENTITY_KIND_PROJECT: str = "project"
ENTITY_KIND_ISSUE: str = "issue"

# Words that signal query intent (whole-word, case-insensitive)
PROJECT_INTENT_WORD: str = "project"
ISSUE_INTENT_WORD: str = "issue"

# An issue URL https://github.com/<owner>/<repo>/issues/<n> splits into 7 parts on "/"
ISSUE_URL_SEGMENTS: int = 7

# Issue lifecycle
ISSUE_STATUS_OPEN: str = "open"
ISSUE_STATUS_ASSIGNED: str = "assigned"
ISSUE_STATUS_CLOSED: str = "closed"
