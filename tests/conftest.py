"""Shared fixtures: an in-memory SQLite database with a few legislators and bills."""

from datetime import date

import pytest

from repscore.models import Bill, BillVote, Legislator, UserBillSentiment
from repscore.utils.database import init_db_manager


@pytest.fixture
def db_manager():
    manager = init_db_manager('sqlite://')
    manager.create_tables()
    yield manager
    manager.engine.dispose()


@pytest.fixture
def session(db_manager):
    with db_manager.get_session() as session:
        yield session


def make_legislator(legislator_id, last_name='Smith', is_active=True, **kwargs):
    defaults = dict(first_name='Pat', last_name=last_name, party='D', chamber='house', state='UT')
    defaults.update(kwargs)
    return Legislator(id=legislator_id, is_active=is_active, **defaults)


def make_bill(bill_id, **kwargs):
    defaults = dict(bill_type='HB', bill_number=bill_id.upper(), title=f'Bill {bill_id}',
                    status='introduced', state='UT', session_year=2025)
    defaults.update(kwargs)
    return Bill(id=bill_id, **defaults)


def add_sentiments(session, bill_id, support, oppose, prefix=None):
    """Add `support` supporting and `oppose` opposing users on a bill."""
    prefix = prefix or bill_id
    for i in range(support):
        session.add(UserBillSentiment(id=f'{prefix}-s{i}', user_id=f'{prefix}-user-s{i}',
                                      bill_id=bill_id, sentiment='support'))
    for i in range(oppose):
        session.add(UserBillSentiment(id=f'{prefix}-o{i}', user_id=f'{prefix}-user-o{i}',
                                      bill_id=bill_id, sentiment='oppose'))


@pytest.fixture
def seeded(db_manager):
    """Two active legislators, one retired, two bills with sentiment."""
    with db_manager.get_session() as session:
        session.add_all([
            make_legislator('leg-1', last_name='Adams'),
            make_legislator('leg-2', last_name='Baker', chamber='senate'),
            make_legislator('leg-3', last_name='Clark', is_active=False),
            make_bill('bill-a', primary_sponsor_id='leg-1'),
            make_bill('bill-b', status='passed'),
        ])
        session.flush()
        session.add_all([
            BillVote(bill_id='bill-a', legislator_id='leg-1', vote='yea', vote_date=date(2025, 2, 1)),
            BillVote(bill_id='bill-b', legislator_id='leg-1', vote='yea', vote_date=date(2025, 3, 1)),
            BillVote(bill_id='bill-a', legislator_id='leg-2', vote='nay', vote_date=date(2025, 2, 1)),
        ])
        add_sentiments(session, 'bill-a', support=10, oppose=2)
        add_sentiments(session, 'bill-b', support=3, oppose=8)
    return db_manager
