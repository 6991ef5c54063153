"""Upstream comment sources: where review threads come from."""

from __future__ import annotations

import abc
import logging
from typing import Any

import httpx

from audit_review.config import DEFAULT_GRAPHQL_URL
from audit_review.models import Comment, PullRequestRef, Reaction, ReactionKind, Thread

logger = logging.getLogger(__name__)

GHOST_USER = "ghost"

REVIEW_THREADS_QUERY = """
query ($owner: String!, $repo: String!, $number: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      reviewThreads(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          isResolved
          comments(first: 50) {
            nodes {
              id
              body
              url
              author { login }
              reactions(first: 50) {
                nodes { content user { login } }
              }
            }
          }
        }
      }
    }
  }
}
"""

_REACTION_KINDS: dict[str, ReactionKind] = {
    "THUMBS_UP": ReactionKind.APPROVE,
    "THUMBS_DOWN": ReactionKind.REJECT,
    "ROCKET": ReactionKind.TRACKED,
    "EYES": ReactionKind.IGNORED,
}


class SourceError(Exception):
    """Fetching review threads from upstream failed."""

    def __init__(self, message: str, *, rate_limited: bool = False) -> None:
        self.rate_limited = rate_limited
        super().__init__(message)


class CommentSource(abc.ABC):
    """Abstract base class for review thread providers."""

    @abc.abstractmethod
    async def fetch_threads(self, ref: PullRequestRef) -> list[Thread]:
        """Return the pull request's review threads in thread order.

        Raises SourceError on any failure; never returns partial data.
        """
        ...

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""


def reaction_kind(content: str) -> ReactionKind:
    kind = _REACTION_KINDS.get((content or "").upper())
    if kind is None:
        logger.warning("Unexpected reaction %s, ignoring", content)
        return ReactionKind.IGNORED
    return kind


def _login(node: dict[str, Any] | None) -> str:
    if not node:
        return GHOST_USER
    return node.get("login") or GHOST_USER


def parse_thread(node: dict[str, Any]) -> Thread:
    comments = []
    for c in (node.get("comments") or {}).get("nodes") or []:
        reactions = tuple(
            Reaction(kind=reaction_kind(r.get("content", "")), user=_login(r.get("user")))
            for r in (c.get("reactions") or {}).get("nodes") or []
        )
        comments.append(
            Comment(
                id=c["id"],
                url=c["url"],
                author=_login(c.get("author")),
                body=c.get("body") or "",
                resolved=bool(node.get("isResolved")),
                reactions=reactions,
            )
        )
    return Thread(resolved=bool(node.get("isResolved")), comments=tuple(comments))


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


class GitHubCommentSource(CommentSource):
    """Fetch review threads through the GitHub GraphQL API."""

    def __init__(
        self,
        token: str,
        *,
        url: str = DEFAULT_GRAPHQL_URL,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"bearer {token}"

    async def _query(self, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(
                self._url,
                json={"query": REVIEW_THREADS_QUERY, "variables": variables},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise SourceError(f"GitHub request failed: {e}") from e

        if _is_rate_limited(response):
            raise SourceError("GitHub API rate limit exceeded", rate_limited=True)
        if response.status_code >= 400:
            raise SourceError(f"GitHub returned HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise SourceError("GitHub returned invalid JSON") from e

        errors = payload.get("errors")
        if errors:
            message = "; ".join(str(err.get("message", err)) for err in errors)
            rate_limited = any(err.get("type") == "RATE_LIMITED" for err in errors if isinstance(err, dict))
            raise SourceError(f"GitHub GraphQL error: {message}", rate_limited=rate_limited)
        return payload.get("data") or {}

    async def fetch_threads(self, ref: PullRequestRef) -> list[Thread]:
        threads: list[Thread] = []
        cursor: str | None = None
        while True:
            data = await self._query({"owner": ref.owner, "repo": ref.repo, "number": ref.number, "cursor": cursor})
            pull = ((data.get("repository") or {}).get("pullRequest"))
            if pull is None:
                raise SourceError(f"Pull request not found: {ref.key}")

            page = pull.get("reviewThreads") or {}
            threads.extend(parse_thread(node) for node in page.get("nodes") or [])

            info = page.get("pageInfo") or {}
            if not info.get("hasNextPage"):
                break
            cursor = info.get("endCursor")

        logger.info("Fetched %d review threads for %s", len(threads), ref.key)
        return threads

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
