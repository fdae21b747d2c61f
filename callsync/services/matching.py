"""
Call Matching Service.

Links origin calls to target calls that describe the same physical phone call.
The two feeds share no identifier, so a pair is accepted on:

1. Identity: same category and same canonical caller phone (index bucket).
2. Day window: the Eastern civil dates of the two calls differ by at most one.
3. Time window: whole-minute distance within 120 minutes on the same day, or
   within 1440 minutes on adjacent days.

Among accepted candidates the lowest score wins:
    score = time_diff_minutes
    both payouts non-zero and within 0.01   -> score * 0.1
    both payouts non-zero and further apart -> score + payout_diff * 10
Ties keep the earliest candidate in index order. Payout mismatches are
penalized, never rejected.

Assignment is greedy in origin arrival order: each winning target call is
consumed and never offered again in the same run. This is order-dependent on
purpose; buckets are almost always one to three calls deep.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from callsync.core.config import Settings
from callsync.models.enums import Category, UnmatchedReason
from callsync.models.schemas import CallRecord
from callsync.services.timezone import days_between, minutes_between

logger = logging.getLogger(__name__)


IndexKey = Tuple[Category, str]

ZERO = Decimal('0')


# =============================================================================
# Rules and Result Types
# =============================================================================

@dataclass(frozen=True)
class MatchingRules:
    """
    Windows and payout weighting used to score candidate pairs.

    Attributes:
        same_day_window_minutes: Max minutes apart when both calls share an Eastern date.
        adjacent_day_window_minutes: Max minutes apart when the dates differ by one.
        payout_tolerance: Payout difference still treated as a payout match.
        payout_match_factor: Score multiplier applied on a payout match.
        payout_penalty_factor: Score added per unit of payout difference otherwise.
    """
    same_day_window_minutes: int = 120
    adjacent_day_window_minutes: int = 1440
    payout_tolerance: Decimal = Decimal('0.01')
    payout_match_factor: Decimal = Decimal('0.1')
    payout_penalty_factor: Decimal = Decimal('10')

    @classmethod
    def from_settings(cls, settings: Settings) -> 'MatchingRules':
        return cls(
            same_day_window_minutes=settings.same_day_window_minutes,
            adjacent_day_window_minutes=settings.adjacent_day_window_minutes,
            payout_tolerance=settings.payout_tolerance,
            payout_match_factor=settings.payout_match_factor,
            payout_penalty_factor=settings.payout_penalty_factor,
        )


@dataclass(frozen=True)
class CandidateScore:
    """Evaluation of one origin/target pair; `rejection` is None when accepted."""
    target: CallRecord
    score: Optional[Decimal] = None
    time_diff_minutes: Optional[int] = None
    days_diff: Optional[int] = None
    payout_diff: Optional[Decimal] = None
    rejection: Optional[UnmatchedReason] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class MatchAssignment:
    """An origin call linked to the target call it describes."""
    origin: CallRecord
    target: CallRecord
    score: Decimal
    time_diff_minutes: int
    days_diff: int
    payout_diff: Optional[Decimal] = None


@dataclass(frozen=True)
class Matched:
    assignment: MatchAssignment


@dataclass(frozen=True)
class Unmatched:
    origin: CallRecord
    reason: UnmatchedReason


MatchOutcome = Union[Matched, Unmatched]


@dataclass
class MatchResult:
    """All outcomes of one matching pass, in origin order."""
    assignments: List[MatchAssignment] = field(default_factory=list)
    unmatched: List[Unmatched] = field(default_factory=list)

    def reason_counts(self) -> Dict[str, int]:
        counts = {reason.value: 0 for reason in UnmatchedReason}
        for item in self.unmatched:
            counts[item.reason.value] += 1
        return counts


# =============================================================================
# Candidate Index
# =============================================================================

class CandidateIndex:
    """
    Target calls bucketed by (category, canonical phone).

    Buckets keep insertion order, which is the tie-break order for equal
    scores. Consumed calls are removed from their bucket; the index lives
    for exactly one run.
    """

    def __init__(self) -> None:
        self._buckets: Dict[IndexKey, List[CallRecord]] = OrderedDict()
        self._consumed: Set[str] = set()
        self.without_identity: List[CallRecord] = []

    @classmethod
    def build(cls, targets: Iterable[CallRecord]) -> 'CandidateIndex':
        index = cls()
        for record in targets:
            index.add(record)
        if index.without_identity:
            logger.info(
                f"{len(index.without_identity)} target calls lack phone or category "
                f"and were not indexed"
            )
        return index

    def add(self, record: CallRecord) -> bool:
        """Index a target call; returns False when it has no identity."""
        if not record.has_identity:
            self.without_identity.append(record)
            return False
        key = (record.category, record.caller_phone_normalized)
        self._buckets.setdefault(key, []).append(record)
        return True

    def candidates(self, category: Category, phone: str) -> List[CallRecord]:
        """Unconsumed target calls for a key, in index order."""
        return list(self._buckets.get((category, phone), []))

    def consume(self, record: CallRecord) -> None:
        key = (record.category, record.caller_phone_normalized)
        bucket = self._buckets.get(key)
        if bucket is None:
            raise KeyError(f"No bucket for target call {record.external_id}")
        for position, candidate in enumerate(bucket):
            if candidate.external_id == record.external_id:
                del bucket[position]
                break
        else:
            raise KeyError(f"Target call {record.external_id} is not available")
        if not bucket:
            del self._buckets[key]
        self._consumed.add(record.external_id)

    def is_consumed(self, external_id: str) -> bool:
        return external_id in self._consumed

    @property
    def consumed_count(self) -> int:
        return len(self._consumed)

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())


# =============================================================================
# Scoring
# =============================================================================

def _non_zero(amount: Optional[Decimal]) -> bool:
    return amount is not None and amount != ZERO


def evaluate_candidate(
    origin: CallRecord,
    target: CallRecord,
    rules: MatchingRules,
) -> CandidateScore:
    """
    Score one origin/target pair.

    Both calls must already share category and phone; this only applies the
    day window, the time window and the payout weighting.
    """
    if origin.timestamp_instant is None or target.timestamp_instant is None:
        return CandidateScore(target=target, rejection=UnmatchedReason.PARSE_FAILURE)

    days_diff = days_between(origin.timestamp_instant, target.timestamp_instant)
    if days_diff > 1:
        return CandidateScore(
            target=target,
            days_diff=days_diff,
            rejection=UnmatchedReason.DAY_WINDOW_EXCEEDED,
        )

    time_diff = minutes_between(origin.timestamp_instant, target.timestamp_instant)
    window = rules.same_day_window_minutes if days_diff == 0 else rules.adjacent_day_window_minutes
    if time_diff > window:
        return CandidateScore(
            target=target,
            time_diff_minutes=time_diff,
            days_diff=days_diff,
            rejection=UnmatchedReason.TIME_WINDOW_EXCEEDED,
        )

    score = Decimal(time_diff)
    payout_diff = None
    if _non_zero(origin.payout) and _non_zero(target.payout):
        payout_diff = abs(origin.payout - target.payout)
        if payout_diff <= rules.payout_tolerance:
            score = score * rules.payout_match_factor
        else:
            score = score + payout_diff * rules.payout_penalty_factor

    return CandidateScore(
        target=target,
        score=score,
        time_diff_minutes=time_diff,
        days_diff=days_diff,
        payout_diff=payout_diff,
    )


def _rejection_reason(scores: List[CandidateScore]) -> UnmatchedReason:
    reasons = {s.rejection for s in scores}
    if UnmatchedReason.TIME_WINDOW_EXCEEDED in reasons:
        return UnmatchedReason.TIME_WINDOW_EXCEEDED
    if UnmatchedReason.DAY_WINDOW_EXCEEDED in reasons:
        return UnmatchedReason.DAY_WINDOW_EXCEEDED
    return UnmatchedReason.PARSE_FAILURE


# =============================================================================
# Matching
# =============================================================================

def match_one(
    origin: CallRecord,
    index: CandidateIndex,
    rules: MatchingRules,
) -> MatchOutcome:
    """
    Find the best target call for one origin call and consume it.

    Returns:
        Matched with the assignment, or Unmatched with the reason.
    """
    if not origin.has_identity:
        return Unmatched(origin=origin, reason=UnmatchedReason.NO_IDENTITY)
    if origin.timestamp_instant is None:
        return Unmatched(origin=origin, reason=UnmatchedReason.PARSE_FAILURE)

    candidates = index.candidates(origin.category, origin.caller_phone_normalized)
    if not candidates:
        return Unmatched(origin=origin, reason=UnmatchedReason.NO_CANDIDATE)

    scores = [evaluate_candidate(origin, target, rules) for target in candidates]

    best: Optional[CandidateScore] = None
    for candidate in scores:
        if not candidate.accepted:
            continue
        # strict comparison keeps the earliest candidate on ties
        if best is None or candidate.score < best.score:
            best = candidate

    if best is None:
        return Unmatched(origin=origin, reason=_rejection_reason(scores))

    index.consume(best.target)
    return Matched(
        assignment=MatchAssignment(
            origin=origin,
            target=best.target,
            score=best.score,
            time_diff_minutes=best.time_diff_minutes,
            days_diff=best.days_diff,
            payout_diff=best.payout_diff,
        )
    )


def match_calls(
    origin_records: Iterable[CallRecord],
    index: CandidateIndex,
    rules: Optional[MatchingRules] = None,
) -> MatchResult:
    """
    Greedily match origin calls, in the order given, against the index.

    Args:
        origin_records: Origin calls in arrival order.
        index: Candidate index built from the target calls of the window.
        rules: Windows and payout weighting (defaults when omitted).

    Returns:
        MatchResult with one assignment per matched origin call and one
        Unmatched entry per other origin call. No target call appears in
        more than one assignment.
    """
    rules = rules or MatchingRules()
    result = MatchResult()

    for origin in origin_records:
        outcome = match_one(origin, index, rules)
        if isinstance(outcome, Matched):
            result.assignments.append(outcome.assignment)
        else:
            result.unmatched.append(outcome)

    logger.info(
        f"Matched {len(result.assignments)} origin calls, "
        f"{len(result.unmatched)} unmatched"
    )
    return result
