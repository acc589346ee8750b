"""
Hybrid Ranker: vector similarity, a score threshold and a bias toward the
entity kind the query asks for.

Output is assembled in three phases, capped: the requested kinds first
(projects, then issues), then whatever survived the threshold regardless
of intent. Any high-similarity candidate therefore still fills the result
for queries that name no kind.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from constants import (
    ENTITY_KIND_ISSUE,
    ENTITY_KIND_PROJECT,
    ISSUE_INTENT_WORD,
    PROJECT_INTENT_WORD,
    ISSUE_URL_SEGMENTS,
)
from src.core.config import Settings
from src.services.llm_client import LLMClient
from src.services.vector_index import VectorIndex, ScoredPoint


logger = logging.getLogger(__name__)

_PROJECT_WORD = re.compile(rf"\b{PROJECT_INTENT_WORD}\b", re.IGNORECASE)
_ISSUE_WORD = re.compile(rf"\b{ISSUE_INTENT_WORD}\b", re.IGNORECASE)


@dataclass
class SearchHit:
    entity_id: str
    text: str
    score: float


def classify_intent(query: str) -> tuple[bool, bool]:
    """(wants_project, wants_issue); both, either or neither may be set."""
    return bool(_PROJECT_WORD.search(query)), bool(_ISSUE_WORD.search(query))


def entity_kind_of(payload: dict[str, Any]) -> str:
    """Stored kind tag; points written without one fall back to URL shape."""
    kind = payload.get("entity_kind")
    if kind in (ENTITY_KIND_PROJECT, ENTITY_KIND_ISSUE):
        return kind
    entity_id = str(payload.get("entity_id", ""))
    if len(entity_id.split("/")) == ISSUE_URL_SEGMENTS:
        return ENTITY_KIND_ISSUE
    return ENTITY_KIND_PROJECT


def _to_hits(candidates: Iterable[ScoredPoint]) -> list[tuple[str, SearchHit]]:
    """Pairs each candidate with its kind, keeping the best score per entity."""
    best: dict[str, tuple[str, SearchHit]] = {}
    for point in candidates:
        entity_id = point.payload.get("entity_id")
        if not entity_id:
            continue
        hit = SearchHit(
            entity_id=str(entity_id),
            text=str(point.payload.get("text", "")),
            score=point.score,
        )
        current = best.get(hit.entity_id)
        if current is None or hit.score > current[1].score:
            best[hit.entity_id] = (entity_kind_of(point.payload), hit)
    return list(best.values())


def rank_hybrid(
    candidates: Iterable[ScoredPoint],
    wants_project: bool,
    wants_issue: bool,
    threshold: float,
    cap: int,
) -> list[SearchHit]:
    """
    Drops candidates scoring <= threshold, then drains the project and
    issue pools (each sorted by descending score) in intent order.
    """
    survivors = [(kind, hit) for kind, hit in _to_hits(candidates) if hit.score > threshold]
    survivors.sort(key=lambda pair: pair[1].score, reverse=True)

    projects = [hit for kind, hit in survivors if kind == ENTITY_KIND_PROJECT]
    issues = [hit for kind, hit in survivors if kind == ENTITY_KIND_ISSUE]

    results: list[SearchHit] = []

    def drain(pool: list[SearchHit]) -> None:
        while pool and len(results) < cap:
            results.append(pool.pop(0))

    if wants_project:
        drain(projects)
    if wants_issue:
        drain(issues)
    drain(projects)
    drain(issues)

    return results


async def search_hybrid(
    query: str,
    collection: str,
    llm: LLMClient,
    index: VectorIndex,
    settings: Settings,
) -> list[SearchHit]:
    """Embedding and index failures propagate; nothing partial is returned."""
    wants_project, wants_issue = classify_intent(query)
    vector = await llm.embed(query)
    candidates = await index.search(collection, vector, settings.hybrid_candidate_limit)

    results = rank_hybrid(
        candidates,
        wants_project,
        wants_issue,
        settings.hybrid_score_threshold,
        settings.hybrid_result_cap,
    )
    logger.info(
        "Hybrid search: project=%s issue=%s candidates=%d results=%d",
        wants_project, wants_issue, len(candidates), len(results),
    )
    return results


async def search_simple(
    query: str,
    collection: str,
    llm: LLMClient,
    index: VectorIndex,
    settings: Settings,
    limit: Optional[int] = None,
) -> list[SearchHit]:
    """Top neighbours scoring above simple_score_threshold; no intent handling."""
    vector = await llm.embed(query)
    candidates = await index.search(collection, vector, limit or settings.simple_candidate_limit)

    hits = [hit for _, hit in _to_hits(candidates) if hit.score > settings.simple_score_threshold]
    hits.sort(key=lambda hit: hit.score, reverse=True)
    return hits
