"""Integration tests for the pipeline, search and issue routes."""
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from src.main import app
from src.api.dependencies import get_db, get_github_client, get_llm_client, get_vector_index
from src.core.errors import GenerationError, StoreWriteError
from src.ingestion.github_client import GitHubRateLimitError
from src.services.crawl_service import CrawlReport
from src.services.summarization_service import BatchReport
from src.services.vector_index import PointInput


ISSUE_URL = "https://github.com/acme/rocket/issues/1"


@pytest.fixture
def client(fake_llm, vector_index):
    app.dependency_overrides[get_db] = lambda: MagicMock()
    app.dependency_overrides[get_github_client] = lambda: MagicMock()
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    app.dependency_overrides[get_vector_index] = lambda: vector_index
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestMalformedBodies:

    @pytest.mark.parametrize("path", ["/search", "/deep", "/comment", "/vector/create", "/vector/delete"])
    def test_invalid_json_returns_400(self, client, path):
        response = client.post(path, content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert "detail" in response.json()

    def test_missing_field_returns_400(self, client):
        response = client.post("/search", json={"collection_name": "coll"})

        assert response.status_code == 400

    def test_empty_text_returns_400(self, client):
        response = client.post("/deep", json={"text": ""})

        assert response.status_code == 400


class TestRunRoutes:

    def test_crawl_returns_report(self, client):
        with patch(
            "src.api.routes.runs.run_crawl_cycle",
            new_callable=AsyncMock,
            return_value=CrawlReport(projects=2, open_issues=5),
        ):
            response = client.post("/run/crawl")

        assert response.status_code == 200
        assert response.json()["projects"] == 2
        assert response.json()["open_issues"] == 5

    def test_crawl_rate_limited_returns_502(self, client):
        with patch(
            "src.api.routes.runs.run_crawl_cycle",
            new_callable=AsyncMock,
            side_effect=GitHubRateLimitError("GitHub rate limit exceeded", status_code=429),
        ):
            response = client.post("/run/crawl")

        assert response.status_code == 502

    def test_summarize_store_failure_returns_500(self, client):
        with patch(
            "src.api.routes.runs.run_summarize_batch",
            new_callable=AsyncMock,
            side_effect=StoreWriteError("Failed to read unsummarized issues"),
        ):
            response = client.post("/run/summarize")

        assert response.status_code == 500

    def test_index_passes_collection_name(self, client):
        with patch(
            "src.api.routes.runs.run_index_batch",
            new_callable=AsyncMock,
            return_value=BatchReport(selected=1, succeeded=1),
        ) as mock_run:
            response = client.post("/run/index", json={"collection_name": "custom"})

        assert response.status_code == 200
        assert mock_run.await_args.kwargs["collection"] == "custom"

    def test_index_without_body_uses_default(self, client):
        with patch(
            "src.api.routes.runs.run_index_batch",
            new_callable=AsyncMock,
            return_value=BatchReport(),
        ) as mock_run:
            response = client.post("/run/index")

        assert response.status_code == 200
        assert mock_run.await_args.kwargs["collection"] is None


class TestSearchRoutes:

    def test_search_unknown_collection_returns_404(self, client):
        response = client.post("/search", json={"text": "crash issue", "collection_name": "missing"})

        assert response.status_code == 404

    def test_search_returns_matching_issue(self, client, fake_llm, vector_index):
        vector = asyncio.run(fake_llm.embed("crash issue"))
        vector_index.collections["coll"] = {"dimension": len(vector), "points": {}}
        asyncio.run(vector_index.upsert("coll", [PointInput(
            entity_id=ISSUE_URL,
            vector=vector,
            payload={"entity_id": ISSUE_URL, "entity_kind": "issue", "text": "Rocket crashes on launch"},
        )]))

        response = client.post("/search", json={"text": "crash issue", "collection_name": "coll"})

        assert response.status_code == 200
        [result] = response.json()["results"]
        assert result["entity_id"] == ISSUE_URL
        assert result["text"] == "Rocket crashes on launch"
        assert result["score"] == pytest.approx(1.0)

    def test_search_embedding_failure_returns_502(self, client, fake_llm, vector_index):
        vector_index.collections["coll"] = {"dimension": 8, "points": {}}
        fake_llm.embed_error = GenerationError("embedding down")

        response = client.post("/search", json={"text": "anything", "collection_name": "coll"})

        assert response.status_code == 502

    def test_vector_stats(self, client, vector_index):
        vector_index.collections["coll"] = {"dimension": 8, "points": {}}

        response = client.post("/vector", json={"collection_name": "coll"})

        assert response.status_code == 200
        assert response.json() == {"name": "coll", "dimension": 8, "count": 0}

    def test_vector_requires_text_or_collection(self, client):
        response = client.post("/vector", json={})

        assert response.status_code == 400

    def test_vector_simple_search(self, client, fake_llm, vector_index):
        vector = asyncio.run(fake_llm.embed("rockets"))
        vector_index.collections["coll"] = {"dimension": len(vector), "points": {}}
        asyncio.run(vector_index.upsert("coll", [PointInput(
            entity_id="https://github.com/acme/rocket",
            vector=vector,
            payload={"entity_id": "https://github.com/acme/rocket", "entity_kind": "project", "text": "Rockets"},
        )]))

        response = client.post("/vector", json={"text": "rockets", "collection_name": "coll"})

        assert response.status_code == 200
        assert [r["entity_id"] for r in response.json()["results"]] == ["https://github.com/acme/rocket"]

    def test_create_then_delete_collection(self, client, vector_index):
        response = client.post("/vector/create", json={"collection_name": "fresh"})

        assert response.status_code == 200
        assert response.json()["name"] == "fresh"
        assert response.json()["count"] == 0
        assert "fresh" in vector_index.collections

        response = client.post("/vector/delete", json={"collection_name": "fresh"})

        assert response.status_code == 200
        assert response.json() == {"name": "fresh", "deleted": True}
        assert "fresh" not in vector_index.collections

    def test_delete_missing_collection_returns_404(self, client):
        response = client.post("/vector/delete", json={"collection_name": "missing"})

        assert response.status_code == 404


class TestIssueRoutes:

    def test_comments(self, client):
        comment = MagicMock()
        comment.comment_creator = "carol"
        comment.comment_date = datetime(2024, 2, 2, 10, 0, tzinfo=timezone.utc)
        comment.comment_body = "Same here"

        with patch(
            "src.api.routes.issues.get_comments_by_issue_id",
            new_callable=AsyncMock,
            return_value=[comment],
        ) as mock_get:
            response = client.post("/comment", json={"issue_id": ISSUE_URL})

        assert response.status_code == 200
        body = response.json()
        assert body["issue_id"] == ISSUE_URL
        assert body["comments"][0]["comment_creator"] == "carol"
        assert body["comments"][0]["comment_body"] == "Same here"
        assert mock_get.await_args.args[1] == ISSUE_URL

    def test_deep_query(self, client, fake_llm):
        fake_llm.reply = "Rust is a systems language."

        response = client.post("/deep", json={"text": "What is Rust?"})

        assert response.status_code == 200
        assert response.json() == {"reply": "Rust is a systems language."}
        system_prompt, user_prompt, max_tokens = fake_llm.completions[0]
        assert user_prompt == "What is Rust?"
        assert max_tokens == 100

    def test_deep_query_generation_failure_returns_502(self, client, fake_llm):
        fake_llm.complete_error = GenerationError("provider down")

        response = client.post("/deep", json={"text": "What is Rust?"})

        assert response.status_code == 502
