"""Tests for representation score calculation and publishing."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from repscore.analysis.representation_score import (
    MIN_CONSTITUENT_VOTES,
    ScoreResult,
    calculate_alignment,
    compute_score,
    get_representation_score,
    list_votes_by_legislator,
    publish_score,
    round_percentage,
    update_representation_score,
)
from repscore.analysis.sentiment import SentimentTally
from repscore.models import BillVote, RepresentationScore, UserBillSentiment

from conftest import add_sentiments, make_bill, make_legislator


# ---------------------------------------------------------------------------
# calculate_alignment
# ---------------------------------------------------------------------------


class TestCalculateAlignment:
    """The scoring rules, without a database."""

    def test_all_votes_align(self):
        votes = [('a', 'yea'), ('b', 'yea')]
        tallies = {'a': SentimentTally(10, 2), 'b': SentimentTally(8, 3)}
        assert calculate_alignment(votes, tallies) == ScoreResult(100.0, 2)

    def test_no_votes_align(self):
        votes = [('a', 'yea'), ('b', 'yea')]
        tallies = {'a': SentimentTally(2, 10), 'b': SentimentTally(3, 8)}
        assert calculate_alignment(votes, tallies) == ScoreResult(0.0, 2)

    def test_half_align(self):
        votes = [('a', 'yea'), ('b', 'yea')]
        tallies = {'a': SentimentTally(2, 10), 'b': SentimentTally(10, 2)}
        assert calculate_alignment(votes, tallies) == ScoreResult(50.0, 2)

    def test_below_threshold_bill_skipped(self):
        votes = [('a', 'yea'), ('b', 'yea')]
        tallies = {'a': SentimentTally(2, 2), 'b': SentimentTally(8, 2)}
        assert calculate_alignment(votes, tallies) == ScoreResult(100.0, 1)

    def test_nay_matches_oppose_majority(self):
        votes = [('a', 'nay')]
        tallies = {'a': SentimentTally(2, 10)}
        assert calculate_alignment(votes, tallies) == ScoreResult(100.0, 1)

    def test_absent_and_present_never_match(self):
        votes = [('a', 'absent'), ('b', 'present')]
        tallies = {'a': SentimentTally(10, 2), 'b': SentimentTally(10, 2)}
        assert calculate_alignment(votes, tallies) == ScoreResult(0.0, 2)

    def test_tie_counts_as_support(self):
        votes = [('a', 'yea'), ('b', 'nay')]
        tallies = {'a': SentimentTally(3, 3), 'b': SentimentTally(5, 5)}
        assert calculate_alignment(votes, tallies) == ScoreResult(50.0, 2)

    def test_bill_without_sentiment_skipped(self):
        votes = [('a', 'yea'), ('unknown', 'nay')]
        tallies = {'a': SentimentTally(6, 0)}
        assert calculate_alignment(votes, tallies) == ScoreResult(100.0, 1)

    def test_exactly_threshold_qualifies(self):
        votes = [('a', 'nay')]
        tallies = {'a': SentimentTally(0, MIN_CONSTITUENT_VOTES)}
        assert calculate_alignment(votes, tallies) == ScoreResult(100.0, 1)

    def test_one_below_threshold_never_counts(self):
        for vote in ('yea', 'nay', 'absent', 'present'):
            tallies = {'a': SentimentTally(MIN_CONSTITUENT_VOTES - 1, 0)}
            assert calculate_alignment([('a', vote)], tallies) == ScoreResult(0.0, 0)

    def test_no_qualifying_bills_scores_zero(self):
        assert calculate_alignment([], {}) == ScoreResult(0.0, 0)

    def test_score_rounded_to_two_places(self):
        votes = [('a', 'yea'), ('b', 'yea'), ('c', 'nay')]
        tallies = {k: SentimentTally(9, 1) for k in ('a', 'b', 'c')}
        assert calculate_alignment(votes, tallies) == ScoreResult(66.67, 3)


class TestRoundPercentage:

    def test_rounds_half_up(self):
        # 1/32 = 3.125%
        assert round_percentage(1, 32) == 3.13

    def test_one_third(self):
        assert round_percentage(1, 3) == 33.33

    def test_zero_total(self):
        assert round_percentage(0, 0) == 0.0

    def test_bounds(self):
        assert round_percentage(0, 7) == 0.0
        assert round_percentage(7, 7) == 100.0


# ---------------------------------------------------------------------------
# compute_score against the database
# ---------------------------------------------------------------------------


class TestComputeScore:

    def test_no_votes_returns_zero(self, session):
        session.add(make_legislator('leg-x'))
        session.flush()
        assert compute_score(session, 'leg-x') == ScoreResult(0.0, 0)

    def test_unknown_legislator_returns_zero(self, session):
        assert compute_score(session, 'does-not-exist') == ScoreResult(0.0, 0)

    def test_mixed_votes(self, seeded):
        with seeded.get_session() as session:
            # bill-a: yea, majority support -> match; bill-b: yea, majority oppose -> mismatch
            assert compute_score(session, 'leg-1') == ScoreResult(50.0, 2)
            # bill-a: nay, majority support -> mismatch
            assert compute_score(session, 'leg-2') == ScoreResult(0.0, 1)

    def test_is_repeatable(self, seeded):
        with seeded.get_session() as session:
            first = compute_score(session, 'leg-1')
            second = compute_score(session, 'leg-1')
        assert first == second

    def test_low_sentiment_bill_ignored(self, session):
        session.add_all([make_legislator('leg-x'), make_bill('quiet'), make_bill('busy')])
        session.flush()
        session.add_all([
            BillVote(bill_id='quiet', legislator_id='leg-x', vote='nay'),
            BillVote(bill_id='busy', legislator_id='leg-x', vote='yea'),
        ])
        add_sentiments(session, 'quiet', support=2, oppose=2)
        add_sentiments(session, 'busy', support=8, oppose=2)
        session.flush()

        assert compute_score(session, 'leg-x') == ScoreResult(100.0, 1)

    def test_list_votes_by_legislator(self, seeded):
        with seeded.get_session() as session:
            votes = sorted(list_votes_by_legislator(session, 'leg-1'))
        assert votes == [('bill-a', 'yea'), ('bill-b', 'yea')]


# ---------------------------------------------------------------------------
# publish_score
# ---------------------------------------------------------------------------


class TestPublishScore:

    def test_inserts_row(self, session):
        session.add(make_legislator('leg-x'))
        session.flush()
        publish_score(session, 'leg-x', 75.5, 4)

        row = get_representation_score(session, 'leg-x')
        assert row.score == 75.5
        assert row.bills_analyzed == 4
        assert row.last_calculated is not None

    def test_second_publish_overwrites(self, session):
        session.add(make_legislator('leg-x'))
        session.flush()
        first_time = datetime(2025, 1, 1, tzinfo=timezone.utc)
        later_time = datetime(2025, 6, 1, tzinfo=timezone.utc)

        publish_score(session, 'leg-x', 10.0, 1, computed_at=first_time)
        publish_score(session, 'leg-x', 90.0, 9, computed_at=later_time)
        session.expire_all()

        rows = session.query(RepresentationScore).filter_by(legislator_id='leg-x').all()
        assert len(rows) == 1
        assert rows[0].score == 90.0
        assert rows[0].bills_analyzed == 9
        assert rows[0].last_calculated.replace(tzinfo=None) == later_time.replace(tzinfo=None)

    def test_same_values_twice_leaves_one_row(self, session):
        session.add(make_legislator('leg-x'))
        session.flush()
        publish_score(session, 'leg-x', 50.0, 2)
        publish_score(session, 'leg-x', 50.0, 2)

        assert session.query(RepresentationScore).filter_by(legislator_id='leg-x').count() == 1

    def test_rejects_out_of_range_score(self, session):
        with pytest.raises(ValueError):
            publish_score(session, 'leg-x', 100.01, 1)
        with pytest.raises(ValueError):
            publish_score(session, 'leg-x', -1, 1)

    def test_rejects_negative_bill_count(self, session):
        with pytest.raises(ValueError):
            publish_score(session, 'leg-x', 50.0, -1)

    def test_missing_score_is_none(self, session):
        assert get_representation_score(session, 'nobody') is None


class TestUpdateRepresentationScore:

    def test_computes_and_stores(self, seeded):
        result = update_representation_score('leg-1')
        assert result == ScoreResult(50.0, 2)

        with seeded.get_session() as session:
            row = get_representation_score(session, 'leg-1')
            assert row.score == 50.0
            assert row.bills_analyzed == 2

    def test_refresh_tracks_new_sentiment(self, seeded):
        update_representation_score('leg-1')

        # Swing bill-b to majority support
        with seeded.get_session() as session:
            add_sentiments(session, 'bill-b', support=10, oppose=0, prefix='late')

        assert update_representation_score('leg-1') == ScoreResult(100.0, 2)
        with seeded.get_session() as session:
            assert session.query(RepresentationScore).count() == 1
            assert get_representation_score(session, 'leg-1').score == 100.0


class TestStoreFailures:
    """Database errors reach the caller instead of becoming a score."""

    def test_compute_raises_without_sentiment_table(self, seeded):
        UserBillSentiment.__table__.drop(seeded.engine)
        with pytest.raises(OperationalError):
            with seeded.get_session() as session:
                compute_score(session, 'leg-1')

    def test_compute_raises_when_queries_fail(self, seeded, monkeypatch):
        def refuse(*args, **kwargs):
            raise OperationalError('SELECT', {}, Exception('unable to open database file'))

        monkeypatch.setattr(Session, 'execute', refuse)
        with pytest.raises(OperationalError):
            with seeded.get_session() as session:
                compute_score(session, 'leg-1')

    def test_publish_raises_without_score_table(self, session, db_manager):
        RepresentationScore.__table__.drop(db_manager.engine)
        with pytest.raises(OperationalError):
            publish_score(session, 'leg-1', 50.0, 2)

    def test_update_publishes_nothing_when_compute_fails(self, seeded):
        UserBillSentiment.__table__.drop(seeded.engine)
        with pytest.raises(OperationalError):
            update_representation_score('leg-1')

        with seeded.get_session() as session:
            assert session.query(RepresentationScore).count() == 0
