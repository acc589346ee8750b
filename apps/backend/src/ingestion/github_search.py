"""
GitHub search walks: GraphQL documents, typed records and node decoders.

Decoders are lenient by contract. A malformed sub-object (wrong type,
missing key) is treated as absent and defaulted; only a node missing its
identifying URL is dropped. A malformed page envelope is a DecodeError.
"""
from datetime import datetime
from functools import partial
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from constants import (
    SEARCH_PAGE_SIZE,
    MAX_SEARCH_PAGES,
    ISSUE_DESCRIPTION_MAX_CHARS,
    README_MAX_CHARS,
)
from src.core.errors import DecodeError
from src.ingestion.cursor_walker import Page, PageFetcher, walk
from src.ingestion.github_client import GitHubClient


T = TypeVar("T")

NodeDecoder = Callable[[dict[str, Any]], list[T]]


class ProjectSummary(BaseModel):
    project_id: str
    project_logo: str = ""
    main_language: str = ""
    repo_stars: int = 0
    repo_description: str = ""
    repo_readme: str = ""


class OpenIssue(BaseModel):
    issue_id: str
    project_id: str
    issue_title: str = ""
    issue_creator: Optional[str] = None
    issue_description: str = ""


class ClosedIssue(BaseModel):
    issue_id: str
    issue_assignees: Optional[list[str]] = None
    issue_linked_pr: Optional[str] = None


class AssignedIssueEvent(BaseModel):
    issue_id: str
    issue_assignee: Optional[str] = None
    date_assigned: Optional[datetime] = None


class PullRequestRecord(BaseModel):
    pull_id: str
    project_id: str
    pull_title: str = ""
    pull_author: Optional[str] = None
    merged_at: Optional[datetime] = None


class Participant(BaseModel):
    login: str = ""
    avatar_url: str = ""
    email: str = ""


class CommentRecord(BaseModel):
    issue_id: str
    comment_creator: Optional[str] = None
    comment_date: datetime
    comment_body: str = ""


_PAGE_INFO = """
        pageInfo {
            endCursor
            hasNextPage
        }
"""

REPOSITORY_SEARCH = """
query($q: String!, $first: Int!, $after: String) {
    search(query: $q, type: REPOSITORY, first: $first, after: $after) {
        repositoryCount
        nodes {
            ... on Repository {
                url
                description
                stargazers {
                    totalCount
                }
                owner {
                    avatarUrl
                }
                primaryLanguage {
                    name
                }
                readme: object(expression: "HEAD:README.md") {
                    ... on Blob {
                        text
                    }
                }
            }
        }
""" + _PAGE_INFO + """
    }
}
"""

OPEN_ISSUE_SEARCH = """
query($q: String!, $first: Int!, $after: String) {
    search(query: $q, type: ISSUE, first: $first, after: $after) {
        issueCount
        nodes {
            ... on Issue {
                title
                url
                body
                author {
                    login
                }
            }
        }
""" + _PAGE_INFO + """
    }
}
"""

CLOSED_ISSUE_SEARCH = """
query($q: String!, $first: Int!, $after: String) {
    search(query: $q, type: ISSUE, first: $first, after: $after) {
        issueCount
        nodes {
            ... on Issue {
                url
                assignees(first: 5) {
                    nodes {
                        name
                    }
                }
                timelineItems(first: 1, itemTypes: [CLOSED_EVENT]) {
                    nodes {
                        ... on ClosedEvent {
                            stateReason
                            closer {
                                ... on PullRequest {
                                    title
                                    url
                                    author {
                                        login
                                    }
                                }
                            }
                        }
                    }
                }
            }
        }
""" + _PAGE_INFO + """
    }
}
"""

ASSIGNED_ISSUE_SEARCH = """
query($q: String!, $first: Int!, $after: String) {
    search(query: $q, type: ISSUE, first: $first, after: $after) {
        issueCount
        nodes {
            ... on Issue {
                url
                timelineItems(first: 1, itemTypes: [ASSIGNED_EVENT]) {
                    nodes {
                        ... on AssignedEvent {
                            assignee {
                                ... on User {
                                    login
                                }
                            }
                            createdAt
                        }
                    }
                }
            }
        }
""" + _PAGE_INFO + """
    }
}
"""

PULL_REQUEST_SEARCH = """
query($q: String!, $first: Int!, $after: String) {
    search(query: $q, type: ISSUE, first: $first, after: $after) {
        issueCount
        nodes {
            ... on PullRequest {
                title
                url
                author {
                    login
                }
                mergedAt
            }
        }
""" + _PAGE_INFO + """
    }
}
"""

PARTICIPANT_SEARCH = """
query($q: String!, $first: Int!, $after: String) {
    search(query: $q, type: ISSUE, first: $first, after: $after) {
        issueCount
        nodes {
            ... on Issue {
                participants(first: 10) {
                    nodes {
                        login
                        avatarUrl
                        email
                    }
                }
            }
        }
""" + _PAGE_INFO + """
    }
}
"""

ISSUE_COMMENT_SEARCH = """
query($q: String!, $first: Int!, $after: String) {
    search(query: $q, type: ISSUE, first: $first, after: $after) {
        issueCount
        nodes {
            ... on Issue {
                url
                comments(first: 100) {
                    nodes {
                        author {
                            login
                        }
                        createdAt
                        body
                    }
                }
            }
        }
""" + _PAGE_INFO + """
    }
}
"""


def _dig(obj: Any, *keys: str) -> Any:
    """Follows keys through nested dicts; None as soon as a step is not a dict."""
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _nodes(obj: Any) -> list[dict[str, Any]]:
    nodes = _dig(obj, "nodes")
    if not isinstance(nodes, list):
        return []
    return [n for n in nodes if isinstance(n, dict)]


def parse_github_datetime(value: Any) -> Optional[datetime]:
    """ISO-8601 timestamp from GitHub; None when absent or unparseable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def project_id_from_url(url: str) -> Optional[str]:
    """
    https://github.com/owner/repo/issues/1 -> https://github.com/owner/repo
    Works for pull URLs too.
    """
    parts = url.rsplit("/", 2)
    if len(parts) != 3 or not parts[0]:
        return None
    return parts[0]


def decode_repository(node: dict[str, Any], readme_max_chars: int = README_MAX_CHARS) -> list[ProjectSummary]:
    url = _str(node.get("url"))
    if not url:
        return []

    stars = _dig(node, "stargazers", "totalCount")
    return [ProjectSummary(
        project_id=url,
        project_logo=_str(_dig(node, "owner", "avatarUrl")) or "",
        main_language=_str(_dig(node, "primaryLanguage", "name")) or "",
        repo_stars=stars if isinstance(stars, int) else 0,
        repo_description=_str(node.get("description")) or "",
        repo_readme=(_str(_dig(node, "readme", "text")) or "")[:readme_max_chars],
    )]


def decode_open_issue(
    node: dict[str, Any],
    description_max_chars: int = ISSUE_DESCRIPTION_MAX_CHARS,
) -> list[OpenIssue]:
    url = _str(node.get("url"))
    if not url:
        return []
    project_id = project_id_from_url(url)
    if project_id is None:
        return []

    return [OpenIssue(
        issue_id=url,
        project_id=project_id,
        issue_title=_str(node.get("title")) or "",
        issue_creator=_str(_dig(node, "author", "login")),
        issue_description=(_str(node.get("body")) or "")[:description_max_chars],
    )]


def decode_closed_issue(node: dict[str, Any]) -> list[ClosedIssue]:
    url = _str(node.get("url"))
    if not url:
        return []

    assignees = [
        name for name in (_str(a.get("name")) for a in _nodes(node.get("assignees")))
        if name
    ]

    linked_pr = None
    events = _nodes(node.get("timelineItems"))
    if events:
        linked_pr = _str(_dig(events[0], "closer", "url"))

    return [ClosedIssue(
        issue_id=url,
        issue_assignees=assignees or None,
        issue_linked_pr=linked_pr,
    )]


def decode_assigned_events(node: dict[str, Any]) -> list[AssignedIssueEvent]:
    url = _str(node.get("url"))
    if not url:
        return []

    return [
        AssignedIssueEvent(
            issue_id=url,
            issue_assignee=_str(_dig(event, "assignee", "login")) or None,
            date_assigned=parse_github_datetime(event.get("createdAt")),
        )
        for event in _nodes(node.get("timelineItems"))
    ]


def decode_pull_request(node: dict[str, Any]) -> list[PullRequestRecord]:
    url = _str(node.get("url"))
    if not url:
        return []
    project_id = project_id_from_url(url)
    if project_id is None:
        return []

    return [PullRequestRecord(
        pull_id=url,
        project_id=project_id,
        pull_title=_str(node.get("title")) or "",
        pull_author=_str(_dig(node, "author", "login")),
        merged_at=parse_github_datetime(node.get("mergedAt")),
    )]


def decode_participants(node: dict[str, Any]) -> list[Participant]:
    return [
        Participant(
            login=_str(p.get("login")) or "",
            avatar_url=_str(p.get("avatarUrl")) or "",
            email=_str(p.get("email")) or "",
        )
        for p in _nodes(node.get("participants"))
    ]


def decode_issue_comments(node: dict[str, Any]) -> list[CommentRecord]:
    url = _str(node.get("url"))
    if not url:
        return []

    comments = []
    for comment in _nodes(node.get("comments")):
        created_at = parse_github_datetime(comment.get("createdAt"))
        # (issue_id, comment_date) is the dedup key; undated comments cannot be keyed
        if created_at is None:
            continue
        comments.append(CommentRecord(
            issue_id=url,
            comment_creator=_str(_dig(comment, "author", "login")),
            comment_date=created_at,
            comment_body=_str(comment.get("body")) or "",
        ))
    return comments


def decode_search_page(data: dict[str, Any], decode_node: NodeDecoder[T]) -> Page[T]:
    """Raises DecodeError when the search envelope itself is malformed."""
    search = data.get("search")
    if not isinstance(search, dict):
        raise DecodeError("GraphQL response has no search object")

    raw_nodes = search.get("nodes")
    if raw_nodes is not None and not isinstance(raw_nodes, list):
        raise DecodeError("search.nodes is not a list")

    decoded: list[T] = []
    for node in raw_nodes or []:
        if isinstance(node, dict):
            decoded.extend(decode_node(node))

    page_info = search.get("pageInfo")
    has_more = _dig(page_info, "hasNextPage") is True
    next_cursor = _str(_dig(page_info, "endCursor"))

    return Page(nodes=decoded, next_cursor=next_cursor, has_more=has_more)


def make_search_fetcher(
    client: GitHubClient,
    document: str,
    decode_node: NodeDecoder[T],
    page_size: int = SEARCH_PAGE_SIZE,
) -> PageFetcher[T]:
    async def fetch_page(query: str, cursor: Optional[str]) -> Page[T]:
        data = await client.post_graphql(
            document,
            {"q": query, "first": page_size, "after": cursor},
        )
        return decode_search_page(data, decode_node)

    return fetch_page


async def search_repositories(
    client: GitHubClient,
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
    page_size: int = SEARCH_PAGE_SIZE,
    readme_max_chars: int = README_MAX_CHARS,
) -> list[ProjectSummary]:
    decoder = partial(decode_repository, readme_max_chars=readme_max_chars)
    fetcher = make_search_fetcher(client, REPOSITORY_SEARCH, decoder, page_size)
    return await walk(fetcher, query, page_cap)


async def search_open_issues(
    client: GitHubClient,
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
    page_size: int = SEARCH_PAGE_SIZE,
    description_max_chars: int = ISSUE_DESCRIPTION_MAX_CHARS,
) -> list[OpenIssue]:
    decoder = partial(decode_open_issue, description_max_chars=description_max_chars)
    fetcher = make_search_fetcher(client, OPEN_ISSUE_SEARCH, decoder, page_size)
    return await walk(fetcher, query, page_cap)


async def search_closed_issues(
    client: GitHubClient,
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
    page_size: int = SEARCH_PAGE_SIZE,
) -> list[ClosedIssue]:
    fetcher = make_search_fetcher(client, CLOSED_ISSUE_SEARCH, decode_closed_issue, page_size)
    return await walk(fetcher, query, page_cap)


async def search_assigned_events(
    client: GitHubClient,
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
    page_size: int = SEARCH_PAGE_SIZE,
) -> list[AssignedIssueEvent]:
    fetcher = make_search_fetcher(client, ASSIGNED_ISSUE_SEARCH, decode_assigned_events, page_size)
    return await walk(fetcher, query, page_cap)


async def search_pull_requests(
    client: GitHubClient,
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
    page_size: int = SEARCH_PAGE_SIZE,
) -> list[PullRequestRecord]:
    fetcher = make_search_fetcher(client, PULL_REQUEST_SEARCH, decode_pull_request, page_size)
    return await walk(fetcher, query, page_cap)


async def search_participants(
    client: GitHubClient,
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
    page_size: int = SEARCH_PAGE_SIZE,
) -> list[Participant]:
    fetcher = make_search_fetcher(client, PARTICIPANT_SEARCH, decode_participants, page_size)
    return await walk(fetcher, query, page_cap)


async def search_issue_comments(
    client: GitHubClient,
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
    page_size: int = SEARCH_PAGE_SIZE,
) -> list[CommentRecord]:
    fetcher = make_search_fetcher(client, ISSUE_COMMENT_SEARCH, decode_issue_comments, page_size)
    return await walk(fetcher, query, page_cap)
