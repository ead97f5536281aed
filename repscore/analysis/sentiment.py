"""
Constituent sentiment storage and tallies.

A user holds at most one sentiment per bill. Submitting again overwrites the
previous disposition; no history is kept.
"""

import uuid
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from repscore.models import UserBillSentiment, SENTIMENTS, utcnow
from repscore.utils.upsert import upsert

logger = logging.getLogger(__name__)


@dataclass
class SentimentTally:
    """Support/oppose counts for one bill."""
    support: int = 0
    oppose: int = 0

    @property
    def total(self) -> int:
        return self.support + self.oppose

    @property
    def majority(self) -> str:
        # Ties resolve to support
        return 'support' if self.support >= self.oppose else 'oppose'


def validate_sentiment(bill_id: str, sentiment: str):
    """Raise ValueError unless bill_id is non-empty and sentiment is a known disposition."""
    if not bill_id or not isinstance(bill_id, str):
        raise ValueError("bill_id must be a non-empty string")
    if sentiment not in SENTIMENTS:
        raise ValueError(f"sentiment must be one of {', '.join(SENTIMENTS)}, got {sentiment!r}")


def upsert_sentiment(session: Session, user_id: str, bill_id: str, sentiment: str):
    """Record a user's sentiment on a bill, replacing any earlier one."""
    if not user_id:
        raise ValueError("user_id is required")
    validate_sentiment(bill_id, sentiment)

    now = utcnow()
    upsert(
        session,
        UserBillSentiment,
        values={
            'id': str(uuid.uuid4()),
            'user_id': user_id,
            'bill_id': bill_id,
            'sentiment': sentiment,
            'created_at': now,
            'updated_at': now,
        },
        conflict_columns=('user_id', 'bill_id'),
        update_columns=('sentiment', 'updated_at'),
    )
    logger.debug(f"Recorded {sentiment} from user {user_id} on bill {bill_id}")


def delete_sentiment(session: Session, user_id: str, bill_id: str) -> bool:
    """Remove a user's sentiment on a bill. Returns True if one existed."""
    deleted = session.query(UserBillSentiment).filter(
        UserBillSentiment.user_id == user_id,
        UserBillSentiment.bill_id == bill_id
    ).delete(synchronize_session=False)
    return deleted > 0


def sentiment_tally_for_bills(session: Session, bill_ids: Sequence[str]) -> List[Tuple[str, str, int]]:
    """
    Count sentiments per (bill, disposition) for the given bills.

    Bills nobody has weighed in on do not appear in the result.

    Returns:
        List of (bill_id, sentiment, count) rows
    """
    bill_ids = list(bill_ids)
    if not bill_ids:
        return []

    rows = session.query(
        UserBillSentiment.bill_id,
        UserBillSentiment.sentiment,
        func.count().label('total')
    ).filter(
        UserBillSentiment.bill_id.in_(bill_ids)
    ).group_by(
        UserBillSentiment.bill_id,
        UserBillSentiment.sentiment
    ).all()

    return [(bill_id, sentiment, int(total)) for bill_id, sentiment, total in rows]


def tally_by_bill(rows: Sequence[Tuple[str, str, int]]) -> Dict[str, SentimentTally]:
    """Fold grouped (bill_id, sentiment, count) rows into one tally per bill."""
    tallies: Dict[str, SentimentTally] = {}
    for bill_id, sentiment, total in rows:
        tally = tallies.setdefault(bill_id, SentimentTally())
        if sentiment == 'support':
            tally.support = int(total)
        elif sentiment == 'oppose':
            tally.oppose = int(total)
    return tallies


def get_bill_sentiment_counts(session: Session, bill_id: str) -> SentimentTally:
    """Support/oppose counts for a single bill."""
    return tally_by_bill(sentiment_tally_for_bills(session, [bill_id])).get(bill_id, SentimentTally())


def get_user_sentiment(session: Session, user_id: str, bill_id: str) -> Optional[str]:
    """The user's current sentiment on a bill, or None."""
    row = session.query(UserBillSentiment.sentiment).filter(
        UserBillSentiment.user_id == user_id,
        UserBillSentiment.bill_id == bill_id
    ).first()
    return row[0] if row else None
