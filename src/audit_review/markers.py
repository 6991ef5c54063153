"""Duplicate marker extraction from comment text.

A reviewer flags a comment as a duplicate by writing ``Dup <link>`` in it
(or in a later reply on the same thread). Three encodings of the target are
understood:

* a full GitHub comment link, optionally wrapped in ``<...>`` and/or backticks;
* a bare anchor such as ``#discussion_r123``, expanded with the thread context;
* a numbered reference such as ``#12 (comment)``. This one names a pull
  request rather than a comment, so it is reported as ambiguous and never
  resolved.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_KEYWORD_RE = re.compile(
    r"\bdup(?:e|licate)?\b(?:\s+of\b)?\s*:?\s*(?P<target>\S+)(?P<tail>\s*\(comment\))?",
    re.IGNORECASE,
)
_FULL_LINK_RE = re.compile(
    r"^https://github\.com/(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)/pull/(?P<number>\d+)"
    r"(?:/files)?#(?:discussion_)?r(?P<comment>\d+)$"
)
_ANCHOR_RE = re.compile(r"^#?discussion_r(?P<comment>\d+)$")
_NUMBERED_RE = re.compile(r"^#\d+$")

_LEADING = "`<(['\""
_TRAILING = "`>)]'\".,;:!?"


@dataclass(frozen=True)
class MarkerContext:
    """The thread a comment lives on: used to expand short anchors."""

    owner: str
    repo: str
    number: int


@dataclass(frozen=True)
class MarkerMatch:
    url: str | None = None
    ambiguous: str | None = None  # raw marker text that could not be resolved


def comment_url(owner: str, repo: str, number: int | str, comment_id: int | str) -> str:
    return f"https://github.com/{owner}/{repo}/pull/{number}#discussion_r{comment_id}"


def canonical_url(url: str) -> str:
    """Normalise the ``/files#r123`` link form to ``#discussion_r123``."""
    m = _FULL_LINK_RE.match(url)
    if not m:
        return url
    return comment_url(m["owner"], m["repo"], m["number"], m["comment"])


def _strip_target(raw: str) -> str:
    """Drop wrapping brackets, backticks, quotes and trailing punctuation."""
    return raw.lstrip(_LEADING).rstrip(_TRAILING)


def parse_marker(body: str, context: MarkerContext | None = None) -> MarkerMatch:
    """Find the first resolvable duplicate marker in *body*.

    Returns an empty match when nothing resolves. The last ambiguous marker
    seen, if any, is returned alongside so the caller can report it.
    """
    ambiguous: str | None = None
    for m in _KEYWORD_RE.finditer(body or ""):
        target = _strip_target(m["target"])

        if target.startswith("https://github.com/"):
            if _FULL_LINK_RE.match(target):
                return MarkerMatch(url=canonical_url(target))
            continue

        anchor = _ANCHOR_RE.match(target)
        if anchor:
            if context is None:
                ambiguous = m.group(0).strip()
                continue
            return MarkerMatch(url=comment_url(context.owner, context.repo, context.number, anchor["comment"]))

        if _NUMBERED_RE.match(target) and m["tail"]:
            ambiguous = m.group(0).strip()

    return MarkerMatch(ambiguous=ambiguous)


def extract_duplicate_marker(body: str, context: MarkerContext | None = None) -> str | None:
    """Return the URL of the comment *body* claims to duplicate, or None."""
    return parse_marker(body, context).url


def scan_thread_markers(bodies: Iterable[str], context: MarkerContext | None = None) -> str | None:
    """Scan a thread's comment bodies in order; the last resolved marker wins."""
    found: str | None = None
    for body in bodies:
        match = parse_marker(body, context)
        if match.ambiguous:
            logger.warning("Unresolvable duplicate marker %r on %s", match.ambiguous, _context_key(context))
        if match.url:
            found = match.url
    return found


def _context_key(context: MarkerContext | None) -> str:
    if context is None:
        return "unknown thread"
    return f"{context.owner}/{context.repo}#{context.number}"
