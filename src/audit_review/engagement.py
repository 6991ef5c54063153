"""Engagement accounting: who acknowledged which comments, and review status.

Every participant other than a comment's author is expected to react to it
with an approve or reject reaction. Tracked and ignored reactions never count.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from audit_review.grouping import Grouping
from audit_review.models import Comment, EngagementTally, ReactionKind, ReviewCounts, ReviewStatus

# Reactions that satisfy an engagement opportunity
_ACKNOWLEDGING = frozenset({ReactionKind.APPROVE, ReactionKind.REJECT})

# Share of participants whose approval (author included) marks a finding as accepted
ACCEPT_RATIO = 2 / 3


@dataclass
class Engagement:
    participants: list[str] = field(default_factory=list)
    tallies: dict[str, EngagementTally] = field(default_factory=dict)
    statuses: dict[str, ReviewStatus] = field(default_factory=dict)  # url -> status


def collect_participants(comments: Iterable[Comment], extra: Iterable[str] = ()) -> list[str]:
    """Every author and reactor in first-seen order, then any *extra* handles."""
    seen: dict[str, None] = {}
    for comment in comments:
        seen.setdefault(comment.author, None)
        for reaction in comment.reactions:
            seen.setdefault(reaction.user, None)
    for handle in extra:
        seen.setdefault(handle, None)
    return list(seen)


def percentage(satisfied: int, opportunities: int) -> int:
    """Rounded completion percentage (half up); 100 when nothing was expected."""
    if opportunities == 0:
        return 100
    return (200 * satisfied + opportunities) // (2 * opportunities)


def acknowledged_by(comment: Comment) -> set[str]:
    return {r.user for r in comment.reactions if r.kind in _ACKNOWLEDGING}


def _voters(comment: Comment, kind: ReactionKind) -> set[str]:
    return {r.user for r in comment.reactions if r.kind == kind and r.user != comment.author}


def approval_count(comment: Comment) -> int:
    return len(_voters(comment, ReactionKind.APPROVE))


def rejection_count(comment: Comment) -> int:
    return len(_voters(comment, ReactionKind.REJECT))


def is_accepted(comment: Comment, participant_count: int) -> bool:
    """Approvals plus the author's implicit one reach two thirds of participants."""
    return approval_count(comment) + 1 >= ACCEPT_RATIO * participant_count


def is_rejected(comment: Comment, participant_count: int) -> bool:
    return rejection_count(comment) >= ACCEPT_RATIO * (participant_count - 1)


def review_status(comment: Comment, participant_count: int) -> ReviewStatus:
    if not comment.resolved:
        return ReviewStatus.PENDING
    if is_accepted(comment, participant_count):
        return ReviewStatus.REPORTED_POSITIVE
    return ReviewStatus.REPORTED_NEGATIVE


def consensus_highlight(comment: Comment, participant_count: int) -> str | None:
    """Row highlight: "accepted", "rejected" or None when undecided."""
    if is_accepted(comment, participant_count):
        return "accepted"
    if rejection_count(comment) > 0 and is_rejected(comment, participant_count):
        return "rejected"
    return None


def tally_engagement(comments: Sequence[Comment], participants: Sequence[str]) -> dict[str, EngagementTally]:
    satisfied = dict.fromkeys(participants, 0)
    opportunities = dict.fromkeys(participants, 0)

    for comment in comments:
        reacted = acknowledged_by(comment)
        for handle in participants:
            if handle == comment.author:
                continue
            opportunities[handle] += 1
            if handle in reacted:
                satisfied[handle] += 1

    return {
        handle: EngagementTally(
            satisfied=satisfied[handle],
            opportunities=opportunities[handle],
            percentage=percentage(satisfied[handle], opportunities[handle]),
        )
        for handle in participants
    }


def account_for(
    comments: Sequence[Comment],
    extra_participants: Iterable[str] = (),
    *,
    participants: Sequence[str] | None = None,
) -> Engagement:
    """Compute per-participant tallies and per-comment review status.

    *participants* overrides the derived participant list entirely (used
    when a fixed researcher roster is configured).
    """
    if participants is None:
        participants = collect_participants(comments, extra_participants)
    else:
        participants = list(participants)

    return Engagement(
        participants=list(participants),
        tallies=tally_engagement(comments, participants),
        statuses={c.url: review_status(c, len(participants)) for c in comments},
    )


def count_statuses(statuses: dict[str, ReviewStatus], grouping: Grouping) -> ReviewCounts:
    """Organisation-wide counts; each finding counts once.

    A finding is represented by its earliest member present in *statuses*,
    which is the primary unless a researcher roster hides it.
    """
    counts = ReviewCounts()
    for url, status in statuses.items():
        finding = grouping.finding_for(url)
        if finding is not None and next(m for m in finding.members if m in statuses) != url:
            continue
        if status == ReviewStatus.PENDING:
            counts.pending += 1
        elif status == ReviewStatus.REPORTED_POSITIVE:
            counts.reported_positive += 1
        else:
            counts.reported_negative += 1
    return counts
