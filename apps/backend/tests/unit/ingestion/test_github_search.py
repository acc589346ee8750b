"""Tests for GitHub search node decoders and search walks."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.errors import DecodeError
from src.ingestion.github_search import (
    decode_repository,
    decode_open_issue,
    decode_closed_issue,
    decode_assigned_events,
    decode_pull_request,
    decode_participants,
    decode_issue_comments,
    decode_search_page,
    parse_github_datetime,
    project_id_from_url,
    search_open_issues,
    search_repositories,
)


ISSUE_URL = "https://github.com/acme/rocket/issues/42"
REPO_URL = "https://github.com/acme/rocket"


class TestHelpers:

    def test_project_id_from_issue_url(self):
        assert project_id_from_url(ISSUE_URL) == REPO_URL

    def test_project_id_from_pull_url(self):
        assert project_id_from_url("https://github.com/acme/rocket/pull/7") == REPO_URL

    def test_project_id_from_short_url(self):
        assert project_id_from_url("rocket") is None

    def test_parse_github_datetime(self):
        parsed = parse_github_datetime("2024-03-01T12:30:00Z")
        assert parsed == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12])
    def test_parse_github_datetime_rejects_garbage(self, value):
        assert parse_github_datetime(value) is None


class TestDecodeRepository:

    def test_full_node(self):
        node = {
            "url": REPO_URL,
            "description": "Rockets",
            "stargazers": {"totalCount": 12},
            "owner": {"avatarUrl": "https://avatars/acme"},
            "primaryLanguage": {"name": "Rust"},
            "readme": {"text": "# Rocket\n" + "x" * 5000},
        }

        [repo] = decode_repository(node, readme_max_chars=4000)

        assert repo.project_id == REPO_URL
        assert repo.repo_stars == 12
        assert repo.main_language == "Rust"
        assert repo.project_logo == "https://avatars/acme"
        assert len(repo.repo_readme) == 4000

    def test_malformed_sub_objects_are_defaulted(self):
        node = {
            "url": REPO_URL,
            "description": None,
            "stargazers": "lots",
            "owner": None,
            "primaryLanguage": ["Rust"],
            "readme": None,
        }

        [repo] = decode_repository(node)

        assert repo.repo_stars == 0
        assert repo.main_language == ""
        assert repo.project_logo == ""
        assert repo.repo_description == ""
        assert repo.repo_readme == ""

    def test_node_without_url_is_dropped(self):
        assert decode_repository({"description": "no url"}) == []


class TestDecodeIssues:

    def test_open_issue_truncates_body(self):
        node = {"url": ISSUE_URL, "title": "Crash", "body": "b" * 500, "author": {"login": "alice"}}

        [issue] = decode_open_issue(node, description_max_chars=240)

        assert issue.issue_id == ISSUE_URL
        assert issue.project_id == REPO_URL
        assert issue.issue_creator == "alice"
        assert len(issue.issue_description) == 240

    def test_open_issue_with_deleted_author(self):
        [issue] = decode_open_issue({"url": ISSUE_URL, "title": "t", "author": None})

        assert issue.issue_creator is None
        assert issue.issue_description == ""

    def test_closed_issue_with_linked_pr(self):
        node = {
            "url": ISSUE_URL,
            "assignees": {"nodes": [{"name": "Alice"}, {"name": None}, "junk"]},
            "timelineItems": {"nodes": [{"closer": {"url": "https://github.com/acme/rocket/pull/9"}}]},
        }

        [closed] = decode_closed_issue(node)

        assert closed.issue_assignees == ["Alice"]
        assert closed.issue_linked_pr == "https://github.com/acme/rocket/pull/9"

    def test_closed_issue_without_assignees_or_closer(self):
        [closed] = decode_closed_issue({"url": ISSUE_URL, "assignees": {"nodes": []}, "timelineItems": None})

        assert closed.issue_assignees is None
        assert closed.issue_linked_pr is None

    def test_assigned_events(self):
        node = {
            "url": ISSUE_URL,
            "timelineItems": {"nodes": [{"assignee": {"login": "bob"}, "createdAt": "2024-01-02T03:04:05Z"}]},
        }

        [event] = decode_assigned_events(node)

        assert event.issue_assignee == "bob"
        assert event.date_assigned == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_issue_without_assignment_yields_nothing(self):
        assert decode_assigned_events({"url": ISSUE_URL, "timelineItems": {"nodes": []}}) == []

    def test_issue_comments_skip_undated(self):
        node = {
            "url": ISSUE_URL,
            "comments": {"nodes": [
                {"author": {"login": "carol"}, "createdAt": "2024-02-02T00:00:00Z", "body": "Same here"},
                {"author": {"login": "dave"}, "createdAt": None, "body": "lost"},
            ]},
        }

        comments = decode_issue_comments(node)

        assert [c.comment_creator for c in comments] == ["carol"]
        assert comments[0].issue_id == ISSUE_URL


class TestDecodeOthers:

    def test_pull_request(self):
        node = {
            "url": "https://github.com/acme/rocket/pull/9",
            "title": "Fix crash",
            "author": {"login": "alice"},
            "mergedAt": "2024-05-05T05:05:05Z",
        }

        [pull] = decode_pull_request(node)

        assert pull.project_id == REPO_URL
        assert pull.pull_author == "alice"
        assert pull.merged_at.year == 2024

    def test_participants(self):
        node = {"participants": {"nodes": [{"login": "alice", "avatarUrl": "a", "email": None}]}}

        [participant] = decode_participants(node)

        assert participant.login == "alice"
        assert participant.email == ""


class TestDecodeSearchPage:

    def test_decodes_nodes_and_page_info(self):
        data = {"search": {
            "nodes": [{"url": ISSUE_URL, "title": "t"}, {}, "junk"],
            "pageInfo": {"endCursor": "Y3Vyc29y", "hasNextPage": True},
        }}

        page = decode_search_page(data, decode_open_issue)

        assert [i.issue_id for i in page.nodes] == [ISSUE_URL]
        assert page.next_cursor == "Y3Vyc29y"
        assert page.has_more is True

    def test_missing_page_info_means_last_page(self):
        page = decode_search_page({"search": {"nodes": []}}, decode_open_issue)

        assert page.has_more is False
        assert page.next_cursor is None

    def test_missing_search_raises_decode_error(self):
        with pytest.raises(DecodeError):
            decode_search_page({"viewer": {}}, decode_open_issue)

    def test_non_list_nodes_raises_decode_error(self):
        with pytest.raises(DecodeError):
            decode_search_page({"search": {"nodes": {"url": ISSUE_URL}}}, decode_open_issue)


class TestSearchWalks:

    async def test_cursor_is_passed_as_variable(self):
        client = MagicMock()
        client.post_graphql = AsyncMock(side_effect=[
            {"search": {"nodes": [{"url": ISSUE_URL, "title": "a"}],
                        "pageInfo": {"endCursor": "next", "hasNextPage": True}}},
            {"search": {"nodes": [{"url": ISSUE_URL + "0", "title": "b"}],
                        "pageInfo": {"endCursor": None, "hasNextPage": False}}},
        ])

        issues = await search_open_issues(client, "repo:acme/rocket is:issue is:open", page_cap=10, page_size=50)

        assert len(issues) == 2
        first_vars = client.post_graphql.await_args_list[0].args[1]
        second_vars = client.post_graphql.await_args_list[1].args[1]
        assert first_vars == {"q": "repo:acme/rocket is:issue is:open", "first": 50, "after": None}
        assert second_vars["after"] == "next"

    async def test_repository_walk_respects_page_cap(self):
        client = MagicMock()
        client.post_graphql = AsyncMock(return_value={"search": {
            "nodes": [{"url": REPO_URL}],
            "pageInfo": {"endCursor": "more", "hasNextPage": True},
        }})

        repos = await search_repositories(client, "org:acme", page_cap=3)

        assert client.post_graphql.await_count == 3
        assert len(repos) == 3
