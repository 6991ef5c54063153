"""Tests for engagement accounting and review status."""

import pytest

from audit_review.engagement import (
    account_for,
    collect_participants,
    consensus_highlight,
    count_statuses,
    percentage,
    review_status,
)
from audit_review.grouping import group_comments
from audit_review.models import DuplicateEdge, ReviewStatus

from conftest import make_comment, url_for


class TestPercentage:
    def test_zero_opportunities_is_complete(self):
        assert percentage(0, 0) == 100

    @pytest.mark.parametrize(
        "satisfied,opportunities,expected",
        [(0, 3, 0), (1, 3, 33), (2, 3, 67), (3, 3, 100), (1, 8, 13), (1, 2, 50), (5, 8, 63)],
    )
    def test_rounded(self, satisfied, opportunities, expected):
        assert percentage(satisfied, opportunities) == expected


class TestParticipants:
    def test_authors_then_reactors_in_first_seen_order(self):
        comments = [
            make_comment(1, "alice", reactions=[("approve", "carol")]),
            make_comment(2, "bob", reactions=[("ignored", "dave"), ("approve", "alice")]),
        ]
        assert collect_participants(comments) == ["alice", "carol", "bob", "dave"]

    def test_extra_handles_appended_once(self):
        comments = [make_comment(1, "alice")]
        assert collect_participants(comments, ["zoe", "alice", "zoe"]) == ["alice", "zoe"]


class TestAccountFor:
    def test_tallies(self):
        comments = [
            make_comment(1, "alice", reactions=[("approve", "bob"), ("reject", "carol")]),
            make_comment(2, "bob", reactions=[("approve", "alice")]),
            make_comment(3, "carol"),
        ]
        engagement = account_for(comments)
        assert engagement.participants == ["alice", "bob", "carol"]
        alice = engagement.tallies["alice"]
        assert (alice.satisfied, alice.opportunities, alice.percentage) == (1, 2, 50)
        bob = engagement.tallies["bob"]
        assert (bob.satisfied, bob.opportunities) == (1, 2)
        carol = engagement.tallies["carol"]
        assert (carol.satisfied, carol.opportunities, carol.percentage) == (1, 2, 50)
        assert carol.text == "1/2 (50%)"

    def test_tracked_and_ignored_reactions_do_not_satisfy(self):
        comments = [
            make_comment(1, "alice", reactions=[("tracked", "bob"), ("ignored", "carol")]),
        ]
        engagement = account_for(comments)
        assert engagement.tallies["bob"].satisfied == 0
        assert engagement.tallies["bob"].opportunities == 1
        assert engagement.tallies["carol"].satisfied == 0

    def test_silent_participant_scores_zero(self):
        comments = [make_comment(1, "alice"), make_comment(2, "bob"), make_comment(3, "alice")]
        engagement = account_for(comments, ["quinn"])
        quinn = engagement.tallies["quinn"]
        assert quinn.opportunities == 3
        assert quinn.satisfied == 0
        assert quinn.percentage == 0

    def test_sole_author_has_no_opportunities(self):
        engagement = account_for([make_comment(1, "alice")])
        tally = engagement.tallies["alice"]
        assert (tally.opportunities, tally.percentage) == (0, 100)

    def test_fixed_roster(self):
        comments = [make_comment(1, "alice", reactions=[("approve", "bob")])]
        engagement = account_for(comments, participants=["alice", "bob", "erin"])
        assert engagement.participants == ["alice", "bob", "erin"]
        assert engagement.tallies["erin"].opportunities == 1


class TestReviewStatus:
    def test_unresolved_is_pending(self):
        comment = make_comment(1, "alice", reactions=[("approve", "bob"), ("approve", "carol")])
        assert review_status(comment, 3) == ReviewStatus.PENDING

    def test_two_thirds_with_author_is_positive(self):
        # 1 approval + author >= 2/3 * 3
        comment = make_comment(1, "alice", resolved=True, reactions=[("approve", "bob")])
        assert review_status(comment, 3) == ReviewStatus.REPORTED_POSITIVE

    def test_below_two_thirds_is_negative(self):
        comment = make_comment(1, "alice", resolved=True, reactions=[("approve", "bob")])
        assert review_status(comment, 4) == ReviewStatus.REPORTED_NEGATIVE

    def test_author_self_approval_not_counted_twice(self):
        comment = make_comment(1, "alice", resolved=True, reactions=[("approve", "alice")])
        assert review_status(comment, 3) == ReviewStatus.REPORTED_NEGATIVE

    def test_highlight(self):
        accepted = make_comment(1, "alice", reactions=[("approve", "bob"), ("approve", "carol")])
        rejected = make_comment(2, "alice", reactions=[("reject", "bob"), ("reject", "carol")])
        undecided = make_comment(3, "alice", reactions=[("reject", "bob")])
        assert consensus_highlight(accepted, 4) == "accepted"
        assert consensus_highlight(rejected, 4) == "rejected"
        assert consensus_highlight(undecided, 4) is None


class TestCountStatuses:
    def test_non_primary_members_not_counted(self):
        comments = [
            make_comment(1, "alice", resolved=True, reactions=[("approve", "bob")]),
            make_comment(2, "bob", resolved=True),
            make_comment(3, "carol"),
            make_comment(4, "carol"),
        ]
        urls = [c.url for c in comments]
        grouping = group_comments(urls, [DuplicateEdge(duplicate_url=url_for(2), original_url=url_for(1))])
        engagement = account_for(comments)
        counts = count_statuses(engagement.statuses, grouping)
        assert counts.reported_positive == 1
        assert counts.reported_negative == 0
        assert counts.pending == 2

    def test_hidden_primary_counts_first_present_member(self):
        comments = [
            make_comment(1, "alice"),
            make_comment(2, "bob", resolved=True),
            make_comment(3, "carol"),
        ]
        urls = [c.url for c in comments]
        edges = [
            DuplicateEdge(duplicate_url=url_for(2), original_url=url_for(1)),
            DuplicateEdge(duplicate_url=url_for(3), original_url=url_for(1)),
        ]
        grouping = group_comments(urls, edges)
        engagement = account_for(comments[1:])
        counts = count_statuses(engagement.statuses, grouping)
        assert counts.reported_negative == 1
        assert counts.pending == 0
