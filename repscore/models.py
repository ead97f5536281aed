"""
Database models for the representation score tracker.

Legislators, bills and votes are written by the ingestion jobs; sentiments
are written by users; subscriptions are written by billing; representation
scores are derived from votes and sentiments and can be recomputed at any time.
"""

from datetime import datetime, timezone
from sqlalchemy import (Column, Integer, String, Text, Date, DateTime, Boolean, Enum,
                        Numeric, ForeignKey, Index, UniqueConstraint)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

BILL_STATUSES = ('introduced', 'in_committee', 'passed', 'signed', 'vetoed', 'failed')
CHAMBERS = ('house', 'senate')
VOTE_OUTCOMES = ('yea', 'nay', 'absent', 'present')
SENTIMENTS = ('support', 'oppose')
SUBSCRIPTION_TIERS = ('free', 'premium')


def utcnow():
    return datetime.now(timezone.utc)


class Legislator(Base):
    __tablename__ = 'legislators'

    id = Column(String(64), primary_key=True)
    legiscan_id = Column(Integer)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    party = Column(String(10))  # 'D', 'R', 'I', etc.
    chamber = Column(Enum(*CHAMBERS, name='chamber_enum'), nullable=False)
    state = Column(String(2), nullable=False)
    district = Column(String(20))  # NULL for senators
    role = Column(String(50))
    email = Column(String(200))
    phone = Column(String(20))
    website = Column(String(500))
    photo_url = Column(String(500))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_legislators_state', 'state'),
    )


class Bill(Base):
    __tablename__ = 'bills'

    id = Column(String(64), primary_key=True)
    legiscan_id = Column(Integer)
    bill_type = Column(String(10), nullable=False)  # 'HB', 'SB', 'HR', etc.
    bill_number = Column(String(20), nullable=False)
    title = Column(String(1000), nullable=False)
    description = Column(Text)
    status = Column(Enum(*BILL_STATUSES, name='bill_status_enum'), nullable=False)
    state = Column(String(2), nullable=False)
    session_year = Column(Integer, nullable=False)
    primary_sponsor_id = Column(String(64), ForeignKey('legislators.id'))
    full_text_url = Column(String(500))
    last_action_date = Column(Date)
    last_action_description = Column(String(1000))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_bills_state', 'state'),
        Index('idx_bills_status', 'status'),
        Index('idx_bills_updated', 'updated_at'),
    )


class BillVote(Base):
    __tablename__ = 'bill_votes'

    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_id = Column(String(64), ForeignKey('bills.id', ondelete='CASCADE'), nullable=False)
    legislator_id = Column(String(64), ForeignKey('legislators.id', ondelete='CASCADE'), nullable=False)
    vote = Column(Enum(*VOTE_OUTCOMES, name='vote_outcome_enum'), nullable=False)
    vote_date = Column(Date)

    __table_args__ = (
        UniqueConstraint('bill_id', 'legislator_id', name='uq_bill_legislator_vote'),
        Index('idx_bill_votes_legislator', 'legislator_id'),
    )


class UserBillSentiment(Base):
    __tablename__ = 'user_bill_sentiments'

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False)
    bill_id = Column(String(64), ForeignKey('bills.id', ondelete='CASCADE'), nullable=False)
    sentiment = Column(Enum(*SENTIMENTS, name='sentiment_enum'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'bill_id', name='uq_user_bill_sentiment'),
        Index('idx_sentiments_bill', 'bill_id'),
    )


class RepresentationScore(Base):
    __tablename__ = 'representation_scores'

    id = Column(String(36), primary_key=True)
    legislator_id = Column(String(64), ForeignKey('legislators.id', ondelete='CASCADE'),
                           nullable=False, unique=True)
    score = Column(Numeric(5, 2, asdecimal=False), nullable=False)
    bills_analyzed = Column(Integer, nullable=False, default=0)
    last_calculated = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class UserSubscription(Base):
    """Subscription state, written by the billing integration and only read here."""
    __tablename__ = 'user_subscriptions'

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, unique=True)
    tier = Column(Enum(*SUBSCRIPTION_TIERS, name='subscription_tier_enum'), nullable=False, default='free')
    stripe_customer_id = Column(String(100))
    stripe_subscription_id = Column(String(100))
    current_period_end = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
