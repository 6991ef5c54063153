"""Issue numbering for standalone comments and merged findings."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from audit_review.grouping import Grouping

FINDING_PREFIX = "D-"


@dataclass(frozen=True)
class IssueNumber:
    """Either a plain standalone number or ``D-<sequence>.<position>``."""

    standalone: int | None = None
    sequence: int | None = None
    position: int | None = None

    @property
    def is_compound(self) -> bool:
        return self.sequence is not None

    @property
    def group_label(self) -> str | None:
        if self.sequence is None:
            return None
        return f"{FINDING_PREFIX}{self.sequence}"

    def __str__(self) -> str:
        if self.sequence is not None:
            return f"{FINDING_PREFIX}{self.sequence}.{self.position}"
        return str(self.standalone)


@dataclass
class Numbering:
    numbers: dict[str, IssueNumber] = field(default_factory=dict)
    labels: dict[int, str] = field(default_factory=dict)  # finding id -> "D-n"


def assign_numbers(urls: Sequence[str], grouping: Grouping) -> Numbering:
    """Number every comment in *urls* (arrival order).

    Standalone comments and findings use independent sequences, both in
    arrival order. Labels are stable for a given grouping but not across
    groupings: splitting a member off a finding renumbers the standalone
    comments after it, and a finding that dissolves shifts every later ``D-n``.
    """
    numbering = Numbering()

    next_standalone = 1
    for url in urls:
        if url in grouping.membership or url in numbering.numbers:
            continue
        numbering.numbers[url] = IssueNumber(standalone=next_standalone)
        next_standalone += 1

    for sequence, finding in enumerate(grouping.findings, start=1):
        numbering.labels[finding.id] = f"{FINDING_PREFIX}{sequence}"
        for position, url in enumerate(finding.members, start=1):
            numbering.numbers[url] = IssueNumber(sequence=sequence, position=position)

    return numbering


def presentation_key(number: IssueNumber) -> tuple[int, int, int]:
    """Sort key for display: findings first, then standalone comments."""
    if number.sequence is not None:
        return (0, number.sequence, number.position or 0)
    return (1, number.standalone or 0, 0)
