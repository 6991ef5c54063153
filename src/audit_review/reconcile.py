"""One reconciliation pass: threads in, numbered findings and engagement out."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from audit_review.assignment import default_owner
from audit_review.engagement import (
    account_for,
    approval_count,
    consensus_highlight,
    count_statuses,
    rejection_count,
)
from audit_review.grouping import Grouping, SuppressionSet, group_comments
from audit_review.markers import MarkerContext, canonical_url, scan_thread_markers
from audit_review.models import (
    Comment,
    CommentView,
    DuplicateEdge,
    FindingMemberView,
    FindingView,
    ReactionKind,
    ReactionMark,
    ReconcileResult,
    ResearchersConfig,
    Thread,
)
from audit_review.numbering import Numbering, assign_numbers, presentation_key

logger = logging.getLogger(__name__)

TEXT_LIMIT = 300

_REACTION_MARKS = {
    ReactionKind.APPROVE: ReactionMark.APPROVE,
    ReactionKind.REJECT: ReactionMark.REJECT,
}


def truncate_text(text: str, limit: int = TEXT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def collect_comments(
    threads: Iterable[Thread], context: MarkerContext | None = None,
) -> tuple[list[Comment], dict[str, str]]:
    """Flatten threads into finding comments (arrival order) and their markers.

    The thread's resolution state is copied onto its first comment; replies
    only contribute duplicate markers, the latest one winning.
    """
    comments: list[Comment] = []
    markers: dict[str, str] = {}
    seen: set[str] = set()
    for thread in threads:
        if not thread.comments:
            continue
        root = thread.comments[0]
        url = canonical_url(root.url)
        if url in seen:
            logger.warning("Skipping repeated comment %s", url)
            continue
        seen.add(url)
        comments.append(root.model_copy(update={"url": url, "resolved": thread.resolved}))
        marker = scan_thread_markers((c.body for c in thread.comments), context)
        if marker and marker != url:
            markers[url] = marker
    return comments, markers


def _restrict(comments: list[Comment], researchers: ResearchersConfig | None) -> tuple[list[Comment], list[str] | None]:
    """Comments to display: only those by configured researchers, if a roster exists.

    Grouping and numbering always run over every comment, so this only
    narrows what is shown and tallied.
    """
    if researchers is None or not researchers.researchers:
        return comments, None
    roster = list(dict.fromkeys(researchers.handles))
    allowed = set(roster)
    return [c for c in comments if c.author in allowed], roster


def _edges(urls: Sequence[str], markers: Mapping[str, str]) -> list[DuplicateEdge]:
    return [DuplicateEdge(duplicate_url=url, original_url=markers[url]) for url in urls if url in markers]


def _marks(comment: Comment) -> dict[str, ReactionMark]:
    marks = {comment.author: ReactionMark.PROPOSER}
    for reaction in comment.reactions:
        mark = _REACTION_MARKS.get(reaction.kind)
        if mark is None or reaction.user == comment.author:
            continue
        marks[reaction.user] = mark
    return marks


def _finding_views(
    grouping: Grouping, numbering: Numbering, authors: Mapping[str, str], shown: set[str],
) -> list[FindingView]:
    return [
        FindingView(
            label=numbering.labels[finding.id],
            members=[
                FindingMemberView(url=url, suffix_label=str(numbering.numbers[url]), author=authors[url])
                for url in finding.members
            ],
        )
        for finding in grouping.findings
        if shown.intersection(finding.members)
    ]


def reconcile(
    threads: Sequence[Thread],
    context: MarkerContext | None = None,
    *,
    suppressions: Iterable[frozenset[str]] | SuppressionSet = frozenset(),
    assignments: Mapping[str, str] | None = None,
    researchers: ResearchersConfig | None = None,
) -> ReconcileResult:
    """Run marker extraction, grouping, numbering and engagement over *threads*."""
    everything, markers = collect_comments(threads, context)
    comments, roster = _restrict(everything, researchers)

    urls = [c.url for c in everything]
    authors = {c.url: c.author for c in everything}
    edges = _edges(urls, markers)

    grouping = group_comments(urls, edges, suppressions)
    numbering = assign_numbers(urls, grouping)
    engagement = account_for(comments, participants=roster)
    stored = assignments or {}
    shown = {c.url for c in comments}

    rows: list[CommentView] = []
    for comment in comments:
        url = comment.url
        number = numbering.numbers[url]
        finding = grouping.finding_for(url)
        marker = markers.get(url)
        if finding is None or marker not in finding.members:
            marker = None
        spotters = []
        if finding is not None:
            spotters = [f"{numbering.numbers[m]} ({authors[m]})" for m in finding.members if m != url]

        rows.append(
            CommentView(
                id=comment.id,
                url=url,
                author=comment.author,
                text=truncate_text(comment.body),
                resolved=comment.resolved,
                status=engagement.statuses[url],
                issue_number=str(number),
                finding_label=number.group_label,
                duplicate_of=marker,
                is_duplicate=finding is not None,
                other_spotters=spotters,
                marks=_marks(comment),
                approvals=approval_count(comment),
                rejections=rejection_count(comment),
                tracked=any(r.kind == ReactionKind.TRACKED for r in comment.reactions),
                consensus=consensus_highlight(comment, len(engagement.participants)),
                assigned_to=default_owner(url, comment.author, grouping, stored),
            )
        )
    rows.sort(key=lambda row: presentation_key(numbering.numbers[row.url]))

    logger.debug(
        "Reconciled %d comments into %d findings (%d edges, %d participants)",
        len(comments), len(grouping.findings), len(edges), len(engagement.participants),
    )
    return ReconcileResult(
        rows=rows,
        participants=engagement.participants,
        engagement=engagement.tallies,
        counts=count_statuses(engagement.statuses, grouping),
        findings=_finding_views(grouping, numbering, authors, shown),
    )


def group_threads(
    threads: Sequence[Thread],
    context: MarkerContext | None = None,
    suppressions: Iterable[frozenset[str]] | SuppressionSet = frozenset(),
) -> Grouping:
    """Grouping only, for callers that need membership without the full view."""
    comments, markers = collect_comments(threads, context)
    urls = [c.url for c in comments]
    return group_comments(urls, _edges(urls, markers), suppressions)
