"""Tests for the GitHub GraphQL comment source."""

import json

import httpx
import pytest

from audit_review.models import PullRequestRef, ReactionKind
from audit_review.source import GitHubCommentSource, SourceError, parse_thread, reaction_kind


def _thread_node(comment_id: int, author: str | None = "alice", resolved: bool = False, reactions=()):
    return {
        "isResolved": resolved,
        "comments": {
            "nodes": [
                {
                    "id": f"C_{comment_id}",
                    "body": f"body {comment_id}",
                    "url": f"https://github.com/acme/vault/pull/7#discussion_r{comment_id}",
                    "author": {"login": author} if author else None,
                    "reactions": {
                        "nodes": [{"content": content, "user": {"login": user}} for content, user in reactions]
                    },
                }
            ]
        },
    }


def _page(nodes, has_next=False, cursor=None):
    return {
        "data": {
            "repository": {
                "pullRequest": {
                    "reviewThreads": {
                        "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
                        "nodes": nodes,
                    }
                }
            }
        }
    }


def _source(handler) -> GitHubCommentSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubCommentSource("ghp_test", url="https://api.test/graphql", client=client)


REF = PullRequestRef(owner="acme", repo="vault", number=7)


class TestParsing:
    @pytest.mark.parametrize(
        "content,kind",
        [
            ("THUMBS_UP", ReactionKind.APPROVE),
            ("THUMBS_DOWN", ReactionKind.REJECT),
            ("ROCKET", ReactionKind.TRACKED),
            ("EYES", ReactionKind.IGNORED),
            ("HEART", ReactionKind.IGNORED),
            ("thumbs_up", ReactionKind.APPROVE),
        ],
    )
    def test_reaction_kind(self, content, kind):
        assert reaction_kind(content) == kind

    def test_parse_thread(self):
        thread = parse_thread(_thread_node(1, resolved=True, reactions=[("THUMBS_UP", "bob"), ("ROCKET", "carol")]))
        assert thread.resolved is True
        comment = thread.comments[0]
        assert comment.author == "alice"
        assert comment.resolved is True
        assert [(r.kind, r.user) for r in comment.reactions] == [
            (ReactionKind.APPROVE, "bob"),
            (ReactionKind.TRACKED, "carol"),
        ]

    def test_deleted_author_is_ghost(self):
        thread = parse_thread(_thread_node(1, author=None))
        assert thread.comments[0].author == "ghost"


class TestFetchThreads:
    async def test_single_page(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["variables"] = json.loads(request.content)["variables"]
            return httpx.Response(200, json=_page([_thread_node(1), _thread_node(2)]))

        source = _source(handler)
        threads = await source.fetch_threads(REF)
        assert [t.comments[0].id for t in threads] == ["C_1", "C_2"]
        assert seen["auth"] == "bearer ghp_test"
        assert seen["variables"] == {"owner": "acme", "repo": "vault", "number": 7, "cursor": None}

    async def test_follows_pagination(self):
        cursors = []

        def handler(request: httpx.Request) -> httpx.Response:
            cursor = json.loads(request.content)["variables"]["cursor"]
            cursors.append(cursor)
            if cursor is None:
                return httpx.Response(200, json=_page([_thread_node(1)], has_next=True, cursor="abc"))
            return httpx.Response(200, json=_page([_thread_node(2)]))

        threads = await _source(handler).fetch_threads(REF)
        assert cursors == [None, "abc"]
        assert len(threads) == 2

    async def test_http_error(self):
        source = _source(lambda request: httpx.Response(502, text="bad gateway"))
        with pytest.raises(SourceError, match="HTTP 502") as exc_info:
            await source.fetch_threads(REF)
        assert exc_info.value.rate_limited is False

    async def test_rate_limited_status(self):
        source = _source(lambda request: httpx.Response(403, headers={"x-ratelimit-remaining": "0"}))
        with pytest.raises(SourceError) as exc_info:
            await source.fetch_threads(REF)
        assert exc_info.value.rate_limited is True

    async def test_graphql_errors(self):
        body = {"errors": [{"type": "RATE_LIMITED", "message": "API rate limit exceeded"}]}
        source = _source(lambda request: httpx.Response(200, json=body))
        with pytest.raises(SourceError, match="rate limit") as exc_info:
            await source.fetch_threads(REF)
        assert exc_info.value.rate_limited is True

    async def test_missing_pull_request(self):
        body = {"data": {"repository": {"pullRequest": None}}}
        source = _source(lambda request: httpx.Response(200, json=body))
        with pytest.raises(SourceError, match="not found"):
            await source.fetch_threads(REF)

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        with pytest.raises(SourceError, match="request failed"):
            await _source(handler).fetch_threads(REF)
