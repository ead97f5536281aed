"""
Read queries for the web layer.

Scores are read from the representation_scores table only; nothing here
recomputes them. Only premium subscribers get to see them.
"""

import logging
from datetime import timezone
from typing import Dict, List, Optional

from sqlalchemy import or_, desc
from sqlalchemy.orm import Session

from repscore.models import (Bill, BillVote, Legislator, RepresentationScore, UserBillSentiment,
                             UserSubscription, utcnow)
from repscore.analysis.sentiment import get_bill_sentiment_counts, get_user_sentiment

logger = logging.getLogger(__name__)

SCORE_FIELDS = ('score', 'bills_analyzed', 'last_calculated')


def get_user_subscription(session: Session, user_id: str) -> Optional[UserSubscription]:
    return session.query(UserSubscription).filter(UserSubscription.user_id == user_id).first()


def is_premium_user(session: Session, user_id: Optional[str]) -> bool:
    """True for a premium subscription whose paid period has not ended."""
    if not user_id:
        return False
    subscription = get_user_subscription(session, user_id)
    if not subscription or subscription.tier != 'premium':
        return False
    period_end = subscription.current_period_end
    if period_end is None:
        return True
    if period_end.tzinfo is None:
        period_end = period_end.replace(tzinfo=timezone.utc)
    return period_end >= utcnow()


def gate_score(legislator: Dict, is_premium: bool) -> Dict:
    """
    Hide score fields from non-premium callers.

    score_locked tells the caller a score exists behind the paywall.
    """
    legislator = dict(legislator)
    legislator['score_locked'] = not is_premium and legislator.get('score') is not None
    if not is_premium:
        for key in SCORE_FIELDS:
            if key in legislator:
                legislator[key] = None
    return legislator


def get_states(session: Session) -> List[str]:
    """Distinct states that have legislators or bills, alphabetically."""
    legislator_states = {row[0] for row in session.query(Legislator.state).distinct()}
    bill_states = {row[0] for row in session.query(Bill.state).distinct()}
    return sorted(legislator_states | bill_states)


def _legislator_summary(legislator: Legislator, score: Optional[RepresentationScore]) -> Dict:
    return {
        'id': legislator.id,
        'first_name': legislator.first_name,
        'last_name': legislator.last_name,
        'party': legislator.party,
        'chamber': legislator.chamber,
        'state': legislator.state,
        'role': legislator.role,
        'photo_url': legislator.photo_url,
        'score': score.score if score else None,
        'bills_analyzed': score.bills_analyzed if score else None,
    }


def _bill_summary(bill: Bill) -> Dict:
    return {
        'id': bill.id,
        'bill_type': bill.bill_type,
        'bill_number': bill.bill_number,
        'title': bill.title,
        'status': bill.status,
        'state': bill.state,
        'session_year': bill.session_year,
        'last_action_date': bill.last_action_date.isoformat() if bill.last_action_date else None,
        'last_action_description': bill.last_action_description,
    }


def get_legislators(session: Session, state: Optional[str] = None, chamber: Optional[str] = None,
                    search: Optional[str] = None, page: int = 0, limit: int = 20) -> List[Dict]:
    """Active legislators with their stored score, ordered by name."""
    query = session.query(Legislator, RepresentationScore).outerjoin(
        RepresentationScore, RepresentationScore.legislator_id == Legislator.id
    ).filter(Legislator.is_active.is_(True))

    if state:
        query = query.filter(Legislator.state == state)
    if chamber:
        query = query.filter(Legislator.chamber == chamber)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Legislator.first_name.ilike(pattern),
            Legislator.last_name.ilike(pattern)
        ))

    rows = query.order_by(Legislator.last_name, Legislator.first_name) \
        .offset(page * limit).limit(limit).all()
    return [_legislator_summary(legislator, score) for legislator, score in rows]


def get_legislator_by_id(session: Session, legislator_id: str) -> Optional[Dict]:
    """Legislator detail with score, 20 most recent votes and 10 sponsored bills."""
    row = session.query(Legislator, RepresentationScore).outerjoin(
        RepresentationScore, RepresentationScore.legislator_id == Legislator.id
    ).filter(Legislator.id == legislator_id).first()

    if not row:
        return None

    legislator, score = row
    result = _legislator_summary(legislator, score)
    result.update({
        'district': legislator.district,
        'email': legislator.email,
        'phone': legislator.phone,
        'website': legislator.website,
        'is_active': legislator.is_active,
        'last_calculated': score.last_calculated.isoformat() if score and score.last_calculated else None,
    })

    recent_votes = session.query(BillVote, Bill).join(
        Bill, BillVote.bill_id == Bill.id
    ).filter(
        BillVote.legislator_id == legislator_id
    ).order_by(desc(BillVote.vote_date)).limit(20).all()

    result['recent_votes'] = [
        {
            'bill_id': bill.id,
            'bill_type': bill.bill_type,
            'bill_number': bill.bill_number,
            'title': bill.title,
            'vote': vote.vote,
            'vote_date': vote.vote_date.isoformat() if vote.vote_date else None,
        }
        for vote, bill in recent_votes
    ]

    sponsored = session.query(Bill).filter(
        Bill.primary_sponsor_id == legislator_id
    ).order_by(desc(Bill.updated_at)).limit(10).all()
    result['sponsored_bills'] = [
        {
            'id': bill.id,
            'bill_type': bill.bill_type,
            'bill_number': bill.bill_number,
            'title': bill.title,
            'status': bill.status,
        }
        for bill in sponsored
    ]

    return result


def get_bills(session: Session, state: Optional[str] = None, status: Optional[str] = None,
              search: Optional[str] = None, page: int = 0, limit: int = 20) -> List[Dict]:
    """Bills, most recently updated first."""
    query = session.query(Bill)
    if state:
        query = query.filter(Bill.state == state)
    if status and status != 'all':
        query = query.filter(Bill.status == status)
    if search:
        query = query.filter(Bill.title.ilike(f"%{search}%"))

    bills = query.order_by(desc(Bill.updated_at)).offset(page * limit).limit(limit).all()
    return [_bill_summary(bill) for bill in bills]


def get_bill_by_id(session: Session, bill_id: str, user_id: Optional[str] = None) -> Optional[Dict]:
    """Bill detail with sentiment counts, the user's own sentiment and legislator votes."""
    bill = session.query(Bill).filter(Bill.id == bill_id).first()
    if not bill:
        return None

    counts = get_bill_sentiment_counts(session, bill_id)

    votes = session.query(BillVote, Legislator).join(
        Legislator, BillVote.legislator_id == Legislator.id
    ).filter(BillVote.bill_id == bill_id).all()

    result = _bill_summary(bill)
    result.update({
        'description': bill.description,
        'full_text_url': bill.full_text_url,
        'primary_sponsor_id': bill.primary_sponsor_id,
        'support_count': counts.support,
        'oppose_count': counts.oppose,
        'user_sentiment': get_user_sentiment(session, user_id, bill_id) if user_id else None,
        'votes': [
            {
                'legislator_id': legislator.id,
                'first_name': legislator.first_name,
                'last_name': legislator.last_name,
                'party': legislator.party,
                'chamber': legislator.chamber,
                'vote': vote.vote,
            }
            for vote, legislator in votes
        ],
    })
    return result


def bill_exists(session: Session, bill_id: str) -> bool:
    return session.query(Bill.id).filter(Bill.id == bill_id).first() is not None


def get_user_votes(session: Session, user_id: str) -> List[Dict]:
    """A user's sentiments joined to their bills, most recently changed first."""
    rows = session.query(UserBillSentiment, Bill).join(
        Bill, UserBillSentiment.bill_id == Bill.id
    ).filter(
        UserBillSentiment.user_id == user_id
    ).order_by(desc(UserBillSentiment.updated_at)).all()

    return [
        {
            'bill_id': bill.id,
            'bill_type': bill.bill_type,
            'bill_number': bill.bill_number,
            'title': bill.title,
            'status': bill.status,
            'sentiment': sentiment.sentiment,
            'created_at': sentiment.created_at.isoformat() if sentiment.created_at else None,
        }
        for sentiment, bill in rows
    ]
