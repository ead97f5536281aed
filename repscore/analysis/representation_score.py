"""
Representation score calculation.

The representation score is the percentage of a legislator's votes that went
the same way as the majority of constituent sentiment on the bill. Only bills
with at least MIN_CONSTITUENT_VOTES sentiments count, so a single vocal user
cannot swing a score on a quiet bill.

The stored score is a cache of compute_score() over the current votes and
sentiments. It is always overwritten, never merged, so concurrent refreshes
for the same legislator are safe.
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from repscore.models import BillVote, RepresentationScore, utcnow
from repscore.utils.database import get_db_session
from repscore.utils.upsert import upsert
from repscore.analysis.sentiment import SentimentTally, sentiment_tally_for_bills, tally_by_bill

logger = logging.getLogger(__name__)

MIN_CONSTITUENT_VOTES = 5

# Which sentiment a legislator's vote expresses; absent/present express neither
VOTE_ALIGNMENT = {
    'yea': 'support',
    'nay': 'oppose',
}


@dataclass(frozen=True)
class ScoreResult:
    score: float
    bills_analyzed: int


def list_votes_by_legislator(session: Session, legislator_id: str) -> List[Tuple[str, str]]:
    """All (bill_id, vote) pairs recorded for a legislator."""
    rows = session.query(BillVote.bill_id, BillVote.vote).filter(
        BillVote.legislator_id == legislator_id
    ).all()
    return [(bill_id, vote) for bill_id, vote in rows]


def round_percentage(matching: int, total: int) -> float:
    """matching/total as a percentage, rounded half-up to two decimals."""
    if total <= 0:
        return 0.0
    pct = Decimal(matching * 100) / Decimal(total)
    return float(pct.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def calculate_alignment(votes: Sequence[Tuple[str, str]],
                        tallies: Dict[str, SentimentTally],
                        min_votes: int = MIN_CONSTITUENT_VOTES) -> ScoreResult:
    """
    Score a legislator's votes against constituent sentiment.

    Args:
        votes: (bill_id, vote) pairs cast by the legislator
        tallies: Sentiment tally per bill; bills without sentiment are missing
        min_votes: Minimum support + oppose count for a bill to qualify

    Returns:
        ScoreResult with the aligned percentage and qualifying bill count
    """
    qualifying_bills = 0
    matching_bills = 0

    for bill_id, vote in votes:
        tally = tallies.get(bill_id)
        if tally is None:
            continue
        if tally.total < min_votes:
            continue

        qualifying_bills += 1

        if VOTE_ALIGNMENT.get(vote) == tally.majority:
            matching_bills += 1

    return ScoreResult(
        score=round_percentage(matching_bills, qualifying_bills),
        bills_analyzed=qualifying_bills
    )


def compute_score(session: Session, legislator_id: str) -> ScoreResult:
    """
    Compute the representation score for a legislator from current data.

    A legislator with no recorded votes scores 0 over 0 bills. Database
    errors are not caught here.
    """
    votes = list_votes_by_legislator(session, legislator_id)
    if not votes:
        return ScoreResult(score=0.0, bills_analyzed=0)

    bill_ids = list({bill_id for bill_id, _ in votes})
    tallies = tally_by_bill(sentiment_tally_for_bills(session, bill_ids))

    result = calculate_alignment(votes, tallies)
    logger.debug(f"Legislator {legislator_id}: {len(votes)} votes, "
                 f"{result.bills_analyzed} qualifying, score {result.score}")
    return result


def publish_score(session: Session, legislator_id: str, score: float, bills_analyzed: int,
                  computed_at: Optional[datetime] = None):
    """
    Store the score for a legislator, replacing any previous one.

    Raises:
        ValueError: If score is outside [0, 100] or bills_analyzed is negative
    """
    if not 0 <= score <= 100:
        raise ValueError(f"score must be between 0 and 100, got {score}")
    if bills_analyzed < 0:
        raise ValueError(f"bills_analyzed must be non-negative, got {bills_analyzed}")

    computed_at = computed_at or utcnow()
    upsert(
        session,
        RepresentationScore,
        values={
            'id': str(uuid.uuid4()),
            'legislator_id': legislator_id,
            'score': score,
            'bills_analyzed': bills_analyzed,
            'last_calculated': computed_at,
        },
        conflict_columns=('legislator_id',),
        update_columns=('score', 'bills_analyzed', 'last_calculated'),
    )


def get_representation_score(session: Session, legislator_id: str) -> Optional[RepresentationScore]:
    """The stored score row for a legislator, or None if never computed."""
    return session.query(RepresentationScore).filter(
        RepresentationScore.legislator_id == legislator_id
    ).first()


def update_representation_score(legislator_id: str) -> ScoreResult:
    """Recompute and store one legislator's score in its own session."""
    with get_db_session() as session:
        result = compute_score(session, legislator_id)
        publish_score(session, legislator_id, result.score, result.bills_analyzed)

    logger.info(f"Updated representation score for {legislator_id}: "
                f"{result.score} over {result.bills_analyzed} bills")
    return result
