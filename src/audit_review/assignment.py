"""Owner assignment across merged findings.

Ownership is a property of the finding, but it is stored per comment URL.
Writing an owner for any member therefore writes it for every member.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from audit_review.grouping import Grouping
from audit_review.models import Finding


def propagate(finding: Finding) -> set[str]:
    """All URLs whose stored owner must change when *finding* is reassigned."""
    return set(finding.members)


def owner_targets(urls: Iterable[str], grouping: Grouping) -> set[str]:
    """Expand *urls* to every member of the findings they belong to."""
    targets: set[str] = set()
    for url in urls:
        finding = grouping.finding_for(url)
        if finding is None:
            targets.add(url)
        else:
            targets |= propagate(finding)
    return targets


def default_owner(url: str, author: str, grouping: Grouping, stored: Mapping[str, str]) -> str:
    """Owner to display for *url*.

    A stored value always wins. Otherwise a standalone comment belongs to its
    author, and a finding member stays unassigned until someone decides.
    """
    saved = stored.get(url)
    if saved:
        return saved
    if url in grouping.membership:
        return ""
    return author
