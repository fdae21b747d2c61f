"""
Tests for the Candidate Index and the Matcher.

Covers:
- Index bucketing, consumption and identity filtering
- Day and time windows (same day vs adjacent day)
- Payout weighting (bonus within tolerance, penalty otherwise)
- Tie-break by index order and at-most-one consumption
- Unmatched reason precedence
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from callsync.models.enums import Category, UnmatchedReason
from callsync.services.matching import (
    CandidateIndex,
    Matched,
    MatchingRules,
    Unmatched,
    evaluate_candidate,
    match_calls,
    match_one,
)
from callsync.tests.conftest import DEFAULT_INSTANT, make_origin, make_target


UTC = timezone.utc
RULES = MatchingRules()


class TestCandidateIndex:

    def test_buckets_by_category_and_phone(self) -> None:
        index = CandidateIndex.build([
            make_target('1'),
            make_target('2', category=Category.API),
            make_target('3', phone='5559876543'),
            make_target('4'),
        ])

        assert [t.external_id for t in index.candidates(Category.STATIC, '+15551234567')] == ['1', '4']
        assert [t.external_id for t in index.candidates(Category.API, '+15551234567')] == ['2']
        assert index.candidates(Category.API, '+15559876543') == []
        assert len(index) == 4

    def test_records_without_identity_are_reported_not_indexed(self) -> None:
        index = CandidateIndex.build([
            make_target('1', phone=None),
            make_target('2', category=None),
            make_target('3'),
        ])

        assert [t.external_id for t in index.without_identity] == ['1', '2']
        assert len(index) == 1

    def test_consume_removes_from_bucket(self) -> None:
        first, second = make_target('1'), make_target('2')
        index = CandidateIndex.build([first, second])

        index.consume(first)

        assert [t.external_id for t in index.candidates(Category.STATIC, '+15551234567')] == ['2']
        assert index.is_consumed('1')
        assert index.consumed_count == 1

    def test_consume_twice_raises(self) -> None:
        target = make_target('1')
        index = CandidateIndex.build([target])
        index.consume(target)

        with pytest.raises(KeyError):
            index.consume(target)


class TestEvaluateCandidate:

    def test_same_day_within_window(self) -> None:
        origin = make_origin(instant=datetime(2026, 2, 3, 18, 0, tzinfo=UTC))
        target = make_target(instant=datetime(2026, 2, 3, 18, 5, tzinfo=UTC))

        score = evaluate_candidate(origin, target, RULES)

        assert score.accepted
        assert score.days_diff == 0
        assert score.time_diff_minutes == 5
        assert score.payout_diff == Decimal('0.00')
        assert score.score == Decimal('0.5')

    def test_same_day_outside_window(self) -> None:
        origin = make_origin(instant=datetime(2026, 2, 3, 14, 0, tzinfo=UTC))
        target = make_target(instant=datetime(2026, 2, 3, 17, 20, tzinfo=UTC))

        score = evaluate_candidate(origin, target, RULES)

        assert score.time_diff_minutes == 200
        assert score.rejection == UnmatchedReason.TIME_WINDOW_EXCEEDED

    def test_adjacent_day_across_midnight(self) -> None:
        # 23:55 Eastern and 00:10 Eastern the next day
        origin = make_origin(instant=datetime(2026, 2, 4, 4, 55, tzinfo=UTC))
        target = make_target(instant=datetime(2026, 2, 4, 5, 10, tzinfo=UTC))

        score = evaluate_candidate(origin, target, RULES)

        assert score.accepted
        assert score.days_diff == 1
        assert score.time_diff_minutes == 15

    def test_adjacent_day_wider_window(self) -> None:
        origin = make_origin(instant=datetime(2026, 2, 3, 14, 0, tzinfo=UTC))
        target = make_target(instant=datetime(2026, 2, 4, 13, 0, tzinfo=UTC))

        score = evaluate_candidate(origin, target, RULES)

        assert score.accepted
        assert score.days_diff == 1
        assert score.time_diff_minutes == 1380

    def test_two_days_apart_rejected(self) -> None:
        origin = make_origin(instant=datetime(2026, 2, 3, 18, 0, tzinfo=UTC))
        target = make_target(instant=datetime(2026, 2, 5, 18, 0, tzinfo=UTC))

        score = evaluate_candidate(origin, target, RULES)

        assert score.days_diff == 2
        assert score.rejection == UnmatchedReason.DAY_WINDOW_EXCEEDED

    def test_payout_mismatch_is_penalized_not_rejected(self) -> None:
        origin = make_origin(payout=Decimal('12.00'))
        target = make_target(instant=DEFAULT_INSTANT + timedelta(minutes=3), payout=Decimal('10.00'))

        score = evaluate_candidate(origin, target, RULES)

        assert score.accepted
        assert score.payout_diff == Decimal('2.00')
        assert score.score == Decimal('23.00')

    def test_zero_payout_is_neutral(self) -> None:
        origin = make_origin(payout=Decimal('0'))
        target = make_target(instant=DEFAULT_INSTANT + timedelta(minutes=3), payout=Decimal('10.00'))

        score = evaluate_candidate(origin, target, RULES)

        assert score.score == Decimal('3')
        assert score.payout_diff is None

    def test_unparseable_target_time(self) -> None:
        score = evaluate_candidate(make_origin(), make_target(instant=None), RULES)
        assert score.rejection == UnmatchedReason.PARSE_FAILURE


class TestMatchOne:

    def test_no_identity(self) -> None:
        index = CandidateIndex.build([make_target()])
        outcome = match_one(make_origin(phone='unknown'), index, RULES)

        assert isinstance(outcome, Unmatched)
        assert outcome.reason == UnmatchedReason.NO_IDENTITY

    def test_unparseable_origin_time(self) -> None:
        index = CandidateIndex.build([make_target()])
        outcome = match_one(make_origin(instant=None), index, RULES)

        assert outcome.reason == UnmatchedReason.PARSE_FAILURE

    def test_no_candidate(self) -> None:
        index = CandidateIndex.build([make_target(category=Category.API)])
        outcome = match_one(make_origin(), index, RULES)

        assert outcome.reason == UnmatchedReason.NO_CANDIDATE

    def test_time_window_reason_beats_day_window(self) -> None:
        index = CandidateIndex.build([
            make_target('1', instant=DEFAULT_INSTANT + timedelta(days=3)),
            make_target('2', instant=DEFAULT_INSTANT + timedelta(minutes=180)),
        ])
        outcome = match_one(make_origin(), index, RULES)

        assert outcome.reason == UnmatchedReason.TIME_WINDOW_EXCEEDED

    def test_day_window_reason(self) -> None:
        index = CandidateIndex.build([make_target(instant=DEFAULT_INSTANT - timedelta(days=2))])
        outcome = match_one(make_origin(), index, RULES)

        assert outcome.reason == UnmatchedReason.DAY_WINDOW_EXCEEDED

    def test_all_candidates_unparseable(self) -> None:
        index = CandidateIndex.build([make_target(instant=None)])
        outcome = match_one(make_origin(), index, RULES)

        assert outcome.reason == UnmatchedReason.PARSE_FAILURE

    def test_lowest_score_wins(self) -> None:
        index = CandidateIndex.build([
            make_target('far', instant=DEFAULT_INSTANT + timedelta(minutes=40)),
            make_target('near', instant=DEFAULT_INSTANT + timedelta(minutes=10)),
        ])
        outcome = match_one(make_origin(), index, RULES)

        assert isinstance(outcome, Matched)
        assert outcome.assignment.target.external_id == 'near'
        assert outcome.assignment.time_diff_minutes == 10

    def test_payout_confirmation_beats_closer_time(self) -> None:
        index = CandidateIndex.build([
            make_target('closer', instant=DEFAULT_INSTANT + timedelta(minutes=2), payout=Decimal('30.00')),
            make_target('confirmed', instant=DEFAULT_INSTANT + timedelta(minutes=15), payout=Decimal('12.00')),
        ])
        outcome = match_one(make_origin(payout=Decimal('12.00')), index, RULES)

        assert outcome.assignment.target.external_id == 'confirmed'
        assert outcome.assignment.score == Decimal('1.5')

    def test_tie_keeps_earliest_candidate(self) -> None:
        index = CandidateIndex.build([
            make_target('before', instant=DEFAULT_INSTANT - timedelta(minutes=5)),
            make_target('after', instant=DEFAULT_INSTANT + timedelta(minutes=5)),
        ])
        outcome = match_one(make_origin(), index, RULES)

        assert outcome.assignment.target.external_id == 'before'

    def test_winner_is_consumed(self) -> None:
        index = CandidateIndex.build([make_target('1')])
        match_one(make_origin(), index, RULES)

        assert index.is_consumed('1')
        assert index.candidates(Category.STATIC, '+15551234567') == []


class TestMatchCalls:

    def test_scenario_single_assignment(self) -> None:
        origin = make_origin(
            'RGB1',
            phone='+15551234567',
            instant=datetime(2026, 2, 3, 18, 0, tzinfo=UTC),
            payout=Decimal('12.00'),
        )
        target = make_target(
            '101',
            phone='+15551234567',
            instant=datetime(2026, 2, 3, 18, 5, tzinfo=UTC),
            payout=Decimal('12.00'),
        )

        result = match_calls([origin], CandidateIndex.build([target]), RULES)

        assert len(result.assignments) == 1
        assignment = result.assignments[0]
        assert assignment.origin.external_id == 'RGB1'
        assert assignment.target.external_id == '101'
        assert assignment.time_diff_minutes == 5
        assert result.unmatched == []

    def test_each_target_assigned_at_most_once(self) -> None:
        origins = [
            make_origin('RGB1', instant=DEFAULT_INSTANT),
            make_origin('RGB2', instant=DEFAULT_INSTANT + timedelta(minutes=1)),
            make_origin('RGB3', instant=DEFAULT_INSTANT + timedelta(minutes=2)),
        ]
        targets = [
            make_target('101', instant=DEFAULT_INSTANT + timedelta(minutes=1)),
            make_target('102', instant=DEFAULT_INSTANT + timedelta(minutes=3)),
        ]

        result = match_calls(origins, CandidateIndex.build(targets), RULES)

        assigned = [a.target.external_id for a in result.assignments]
        assert sorted(assigned) == ['101', '102']
        assert len(set(assigned)) == len(assigned)
        assert [u.origin.external_id for u in result.unmatched] == ['RGB3']
        assert result.unmatched[0].reason == UnmatchedReason.NO_CANDIDATE

    def test_greedy_arrival_order(self) -> None:
        # The first origin takes the only candidate even though the second is closer
        origins = [
            make_origin('RGB1', instant=DEFAULT_INSTANT),
            make_origin('RGB2', instant=DEFAULT_INSTANT + timedelta(minutes=30)),
        ]
        targets = [make_target('101', instant=DEFAULT_INSTANT + timedelta(minutes=30))]

        result = match_calls(origins, CandidateIndex.build(targets), RULES)

        assert result.assignments[0].origin.external_id == 'RGB1'
        assert result.unmatched[0].origin.external_id == 'RGB2'

    def test_reason_counts_cover_every_reason(self) -> None:
        origins = [
            make_origin('RGB1', phone=None),
            make_origin('RGB2', instant=None),
            make_origin('RGB3', phone='5550000000'),
        ]

        result = match_calls(origins, CandidateIndex.build([]), RULES)
        counts = result.reason_counts()

        assert counts == {
            'no_identity': 1,
            'parse_failure': 1,
            'no_candidate': 1,
            'day_window_exceeded': 0,
            'time_window_exceeded': 0,
        }

    def test_rules_from_settings(self, test_settings) -> None:
        rules = MatchingRules.from_settings(test_settings)

        assert rules.same_day_window_minutes == 120
        assert rules.adjacent_day_window_minutes == 1440
        assert rules.payout_tolerance == Decimal('0.01')
