#!/usr/bin/env python3
"""
Flask web application for the Representation Score tracker.
"""

import os
import hmac
import logging
from datetime import datetime
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_caching import Cache

from repscore.utils.database import get_db_session
from repscore.analysis import queries
from repscore.analysis.sentiment import upsert_sentiment, delete_sentiment, get_bill_sentiment_counts
from repscore.etl.score_scheduler import refresh_all_scores

# Development mode check
DEV_MODE = os.environ.get('DEV_MODE', 'false').lower() == 'true'

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Configure caching
cache_config = {
    'CACHE_TYPE': os.environ.get('CACHE_TYPE', 'SimpleCache'),
    'CACHE_DIR': os.environ.get('CACHE_DIR', '/tmp/repscore_cache'),
    'CACHE_DEFAULT_TIMEOUT': int(os.environ.get('CACHE_DEFAULT_TIMEOUT', '300'))
}
app.config.update(cache_config)
cache = Cache(app)


def _int_arg(name, default, minimum=0, maximum=None):
    value = request.args.get(name, default, type=int)
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def _current_user_id():
    """User id forwarded by the authenticating proxy."""
    return request.headers.get('X-User-Id') or None


def _is_authorized_cron():
    secret = os.environ.get('CRON_SECRET')
    if not secret:
        return False
    auth = request.headers.get('Authorization', '')
    return hmac.compare_digest(auth.encode('utf-8'), f"Bearer {secret}".encode('utf-8'))


@app.route('/api/health')
def health():
    return jsonify({'status': 'ok', 'time': datetime.now().isoformat()})


@app.route('/api/legislators')
def get_legislators():
    """Active legislators with their last published representation score (premium only)."""
    try:
        with get_db_session() as session:
            # Cached rows are ungated; the score is hidden per caller below
            cache_key = f"legislators_{request.query_string.decode('utf-8')}"
            legislators = cache.get(cache_key)
            if legislators is None:
                legislators = queries.get_legislators(
                    session,
                    state=request.args.get('state'),
                    chamber=request.args.get('chamber'),
                    search=request.args.get('search'),
                    page=_int_arg('page', 0),
                    limit=_int_arg('limit', 20, minimum=1, maximum=100)
                )
                cache.set(cache_key, legislators)

            is_premium = queries.is_premium_user(session, _current_user_id())
            return jsonify([queries.gate_score(row, is_premium) for row in legislators])
    except Exception as e:
        logger.error(f"Failed to list legislators: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/legislators/<legislator_id>')
def get_legislator(legislator_id):
    """Legislator detail including score (premium only), recent votes and sponsored bills."""
    try:
        with get_db_session() as session:
            cache_key = f"legislator_{legislator_id}"
            legislator = cache.get(cache_key)
            if legislator is None:
                legislator = queries.get_legislator_by_id(session, legislator_id)
                if not legislator:
                    return jsonify({'error': 'Legislator not found'}), 404
                cache.set(cache_key, legislator)

            is_premium = queries.is_premium_user(session, _current_user_id())
            return jsonify(queries.gate_score(legislator, is_premium))
    except Exception as e:
        logger.error(f"Failed to load legislator {legislator_id}: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/states')
def get_states():
    """States with tracked legislators or bills, for the state filters."""
    try:
        with get_db_session() as session:
            return jsonify(queries.get_states(session))
    except Exception as e:
        logger.error(f"Failed to list states: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/bills')
def get_bills():
    """Bills filtered by state, status and title search."""
    try:
        with get_db_session() as session:
            bills = queries.get_bills(
                session,
                state=request.args.get('state'),
                status=request.args.get('status'),
                search=request.args.get('search'),
                page=_int_arg('page', 0),
                limit=_int_arg('limit', 20, minimum=1, maximum=100)
            )
            return jsonify(bills)
    except Exception as e:
        logger.error(f"Failed to list bills: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/bills/<bill_id>')
def get_bill(bill_id):
    """Bill detail with constituent sentiment counts and legislator votes."""
    try:
        with get_db_session() as session:
            bill = queries.get_bill_by_id(session, bill_id, user_id=_current_user_id())
            if not bill:
                return jsonify({'error': 'Bill not found'}), 404
            return jsonify(bill)
    except Exception as e:
        logger.error(f"Failed to load bill {bill_id}: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/bills/<bill_id>/sentiment', methods=['POST'])
def submit_sentiment(bill_id):
    """Record (or replace) the current user's sentiment on a bill."""
    user_id = _current_user_id()
    if not user_id:
        return jsonify({'error': 'You must be signed in to vote.'}), 401

    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid input: request body must be a JSON object'}), 400
    sentiment = data.get('sentiment')

    try:
        with get_db_session() as session:
            if not queries.bill_exists(session, bill_id):
                return jsonify({'error': 'Bill not found'}), 404
            upsert_sentiment(session, user_id, bill_id, sentiment)
            session.flush()
            counts = get_bill_sentiment_counts(session, bill_id)
            return jsonify({
                'success': True,
                'sentiment': sentiment,
                'support_count': counts.support,
                'oppose_count': counts.oppose
            })
    except ValueError as e:
        return jsonify({'error': f'Invalid input: {e}'}), 400
    except Exception as e:
        logger.error(f"Failed to record sentiment on {bill_id}: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/bills/<bill_id>/sentiment', methods=['DELETE'])
def remove_sentiment(bill_id):
    """Remove the current user's sentiment on a bill."""
    user_id = _current_user_id()
    if not user_id:
        return jsonify({'error': 'You must be signed in.'}), 401

    try:
        with get_db_session() as session:
            removed = delete_sentiment(session, user_id, bill_id)
            return jsonify({'success': True, 'removed': removed})
    except Exception as e:
        logger.error(f"Failed to remove sentiment on {bill_id}: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/users/<user_id>/votes')
def get_user_votes(user_id):
    """Every sentiment a user has expressed, with bill details."""
    if _current_user_id() != user_id:
        return jsonify({'error': 'Unauthorized'}), 401

    try:
        with get_db_session() as session:
            return jsonify(queries.get_user_votes(session, user_id))
    except Exception as e:
        logger.error(f"Failed to load votes for user {user_id}: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/cron/update-scores')
def update_scores():
    """Recompute every active legislator's score. Called by the scheduler with the cron secret."""
    if not _is_authorized_cron():
        return jsonify({'error': 'Unauthorized'}), 401

    try:
        workers = int(os.environ.get('SCORE_REFRESH_WORKERS', '1'))
        report = refresh_all_scores(max_workers=workers)
    except Exception as e:
        logger.error(f"Score refresh failed: {e}")
        return jsonify({'error': str(e)}), 500

    # Published scores changed, drop cached read responses
    cache.clear()
    return jsonify(report.to_dict())


@app.route('/api/cache/clear')
def clear_cache():
    """Clear all cached data - useful after data updates."""
    if not _is_authorized_cron():
        return jsonify({'error': 'Unauthorized'}), 401
    cache.clear()
    return jsonify({'message': 'Cache cleared successfully'})


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    port = int(os.environ.get('PORT', '5000'))
    app.run(debug=DEV_MODE, host='0.0.0.0', port=port)
