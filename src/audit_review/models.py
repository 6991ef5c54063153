"""Data models for Audit Review."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ReactionKind(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    TRACKED = "tracked"  # acknowledged upstream (rocket); never counts as a review vote
    IGNORED = "ignored"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    REPORTED_POSITIVE = "reported_positive"
    REPORTED_NEGATIVE = "reported_negative"


class ReactionMark(str, enum.Enum):
    """What a participant's cell shows for a single comment row."""

    PROPOSER = "proposer"
    APPROVE = "approve"
    REJECT = "reject"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Upstream snapshot ---


class Reaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ReactionKind
    user: str


class Comment(BaseModel):
    """A single review comment as fetched for one reconciliation pass."""

    model_config = ConfigDict(frozen=True)

    id: str
    url: str
    author: str
    body: str = ""
    resolved: bool = False
    reactions: tuple[Reaction, ...] = ()


class Thread(BaseModel):
    """A review thread: the first comment is the finding, the rest are replies."""

    model_config = ConfigDict(frozen=True)

    resolved: bool = False
    comments: tuple[Comment, ...] = ()


# --- Duplicates ---


class DuplicateEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    duplicate_url: str
    original_url: str
    manual: bool = True


class Finding(BaseModel):
    """An equivalence class of comment URLs; ``members[0]`` is the primary."""

    id: int
    members: list[str]

    @property
    def primary(self) -> str:
        return self.members[0]


# --- Engagement ---


class EngagementTally(BaseModel):
    satisfied: int = 0
    opportunities: int = 0
    percentage: int = 100

    @property
    def text(self) -> str:
        return f"{self.satisfied}/{self.opportunities} ({self.percentage}%)"


class ReviewCounts(BaseModel):
    pending: int = 0
    reported_positive: int = 0
    reported_negative: int = 0


# --- Result view ---


class CommentView(BaseModel):
    id: str
    url: str
    author: str
    text: str
    resolved: bool
    status: ReviewStatus
    issue_number: str
    finding_label: str | None = None
    duplicate_of: str | None = None
    is_duplicate: bool = False
    other_spotters: list[str] = Field(default_factory=list)
    marks: dict[str, ReactionMark] = Field(default_factory=dict)
    approvals: int = 0
    rejections: int = 0
    tracked: bool = False
    consensus: str | None = None  # "accepted", "rejected"
    assigned_to: str = ""


class FindingMemberView(BaseModel):
    url: str
    suffix_label: str
    author: str


class FindingView(BaseModel):
    label: str
    members: list[FindingMemberView] = Field(default_factory=list)


class ReconcileResult(BaseModel):
    rows: list[CommentView] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)
    engagement: dict[str, EngagementTally] = Field(default_factory=dict)
    counts: ReviewCounts = Field(default_factory=ReviewCounts)
    findings: list[FindingView] = Field(default_factory=list)


# --- Configuration ---


class PullRequestRef(BaseModel):
    owner: str
    repo: str
    number: int = Field(validation_alias=AliasChoices("number", "pull_request_number", "pullRequestNumber"))
    label: str = ""

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    def same_target(self, other: PullRequestRef) -> bool:
        return (self.owner, self.repo, self.number) == (other.owner, other.repo, other.number)


class ProjectConfig(BaseModel):
    name: str = "Audit Review"
    repositories: list[PullRequestRef] = Field(default_factory=list)


class Researcher(BaseModel):
    handle: str
    name: str = ""


class ResearchersConfig(BaseModel):
    researchers: list[Researcher] = Field(default_factory=list)
    lsr: str | None = None  # lead security researcher handle

    @property
    def handles(self) -> list[str]:
        return [r.handle for r in self.researchers]


class ReportEnvelope(BaseModel):
    repository: PullRequestRef
    researchers: ResearchersConfig = Field(default_factory=ResearchersConfig)
    result: ReconcileResult
    stale: bool = False
    fetched_at: datetime = Field(default_factory=_utcnow)
