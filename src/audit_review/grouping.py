"""Duplicate grouping: merge comments that report the same issue into findings."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from audit_review.models import DuplicateEdge, Finding


def _pair(a: str, b: str) -> frozenset[str]:
    return frozenset((a, b))


class SuppressionSet:
    """Process-wide, append-only set of severed duplicate relationships.

    A suppression is recorded against one edge direction but matches the
    same two URLs in either order. Entries are never removed.
    """

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._lock = threading.Lock()
        self._pairs: set[frozenset[str]] = {_pair(a, b) for a, b in pairs}

    def add(self, duplicate_url: str, original_url: str) -> bool:
        """Record a suppression. Returns False when it was already present."""
        key = _pair(duplicate_url, original_url)
        with self._lock:
            if key in self._pairs:
                return False
            self._pairs.add(key)
            return True

    def snapshot(self) -> frozenset[frozenset[str]]:
        with self._lock:
            return frozenset(self._pairs)

    def __contains__(self, pair: tuple[str, str]) -> bool:
        with self._lock:
            return _pair(*pair) in self._pairs

    def __len__(self) -> int:
        with self._lock:
            return len(self._pairs)


class DisjointSet:
    """Union-find over a fixed, ordered universe of URLs.

    The root of every set is its member with the lowest arrival index.
    """

    def __init__(self, items: Sequence[str]) -> None:
        self._index: dict[str, int] = {}
        for item in items:
            self._index.setdefault(item, len(self._index))
        self._parent: dict[str, str] = {item: item for item in self._index}

    def __contains__(self, item: str) -> bool:
        return item in self._index

    def index(self, item: str) -> int:
        return self._index[item]

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        if self._index[root_b] < self._index[root_a]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a

    def sets(self) -> list[list[str]]:
        """Return all sets ordered by root index, members by arrival index."""
        buckets: dict[str, list[str]] = {}
        for item in self._index:  # insertion order == arrival order
            buckets.setdefault(self.find(item), []).append(item)
        return sorted(buckets.values(), key=lambda members: self._index[members[0]])


@dataclass
class Grouping:
    membership: dict[str, int] = field(default_factory=dict)  # url -> finding id
    findings: list[Finding] = field(default_factory=list)

    def finding_for(self, url: str) -> Finding | None:
        finding_id = self.membership.get(url)
        if finding_id is None:
            return None
        return self.findings[finding_id]


def group_comments(
    urls: Sequence[str],
    edges: Iterable[DuplicateEdge],
    suppressions: Iterable[frozenset[str]] | SuppressionSet = frozenset(),
) -> Grouping:
    """Build findings from duplicate edges.

    *urls* is the arrival (thread) order of every comment in the snapshot.
    Edges that reference a URL outside *urls* are dropped, as are edges whose
    pair appears in *suppressions* in either orientation.
    """
    if isinstance(suppressions, SuppressionSet):
        suppressed = suppressions.snapshot()
    else:
        suppressed = frozenset(suppressions)

    ds = DisjointSet(urls)
    for edge in edges:
        d, o = edge.duplicate_url, edge.original_url
        if d == o or d not in ds or o not in ds:
            continue
        if _pair(d, o) in suppressed:
            continue
        ds.union(d, o)

    grouping = Grouping()
    for members in ds.sets():
        if len(members) < 2:
            continue
        finding = Finding(id=len(grouping.findings), members=members)
        for url in members:
            assert url not in grouping.membership, f"{url} assigned to two findings"
            grouping.membership[url] = finding.id
        grouping.findings.append(finding)
    return grouping
