"""Shared fixtures for Audit Review tests."""

import pytest

from audit_review.markers import MarkerContext, comment_url
from audit_review.models import Comment, PullRequestRef, Reaction, ReactionKind, Thread

OWNER = "acme"
REPO = "vault"
NUMBER = 7


def url_for(comment_id: int) -> str:
    return comment_url(OWNER, REPO, NUMBER, comment_id)


def make_comment(
    comment_id: int,
    author: str,
    body: str = "",
    *,
    resolved: bool = False,
    reactions: list[tuple[str, str]] | None = None,
) -> Comment:
    """Build a comment; reactions are ``(kind, user)`` pairs."""
    return Comment(
        id=f"C_{comment_id}",
        url=url_for(comment_id),
        author=author,
        body=body,
        resolved=resolved,
        reactions=tuple(Reaction(kind=ReactionKind(kind), user=user) for kind, user in reactions or []),
    )


def make_thread(*comments: Comment, resolved: bool = False) -> Thread:
    return Thread(resolved=resolved, comments=comments)


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path, monkeypatch):
    """Prevent tests from writing config or assignments into the working tree."""
    monkeypatch.chdir(tmp_path)
    for var in ("APP_DATA_DIR", "CONFIG_FILE", "CONFIG_DIR", "GITHUB_TOKEN", "PORT", "CACHE_TTL_SECONDS"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def context() -> MarkerContext:
    return MarkerContext(owner=OWNER, repo=REPO, number=NUMBER)


@pytest.fixture
def pr_ref() -> PullRequestRef:
    return PullRequestRef(owner=OWNER, repo=REPO, number=NUMBER)


@pytest.fixture
def bac_threads() -> list[Thread]:
    """Arrival order B, A, C where A and C both duplicate B."""
    b = make_comment(2, "bob", "Reentrancy in withdraw()")
    a = make_comment(1, "alice", f"Dup {url_for(2)}")
    c = make_comment(3, "carol", f"dup of <{url_for(2)}>")
    return [make_thread(b), make_thread(a), make_thread(c)]
