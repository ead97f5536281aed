#!/usr/bin/env python3
"""
Cron script to refresh representation scores.
Calls the Flask app's refresh endpoint with the shared cron secret.

Usage:
    python3 scripts/cron_update_scores.py [--host HOST] [--port PORT]

Example:
    CRON_SECRET=... python3 scripts/cron_update_scores.py --host localhost --port 5000
"""

import os
import sys
import logging
import argparse
import requests
from datetime import datetime

logger = logging.getLogger(__name__)


def update_scores(host='localhost', port=5000, secret=None, timeout=600):
    """
    Trigger a score refresh through the Flask app.

    Returns:
        The response body as a dict ({'updated': n, 'errors': [...]}), or None on failure
    """
    secret = secret or os.environ.get('CRON_SECRET')
    if not secret:
        logger.error("CRON_SECRET is not set")
        return None

    url = f"http://{host}:{port}/api/cron/update-scores"
    logger.info(f"Requesting score refresh from: {url}")
    start_time = datetime.now()

    try:
        response = requests.get(url, headers={'Authorization': f'Bearer {secret}'}, timeout=timeout)
    except requests.exceptions.Timeout:
        logger.error(f"Score refresh request timed out after {timeout} seconds")
        return None
    except requests.exceptions.ConnectionError:
        logger.error(f"Could not connect to Flask app at {host}:{port}. Is the server running?")
        return None

    if response.status_code != 200:
        logger.error(f"Score refresh failed with status code: {response.status_code}")
        logger.error(f"Response: {response.text}")
        return None

    results = response.json()
    duration = (datetime.now() - start_time).total_seconds()
    logger.info(f"Score refresh completed in {duration:.1f} seconds: "
                f"{results.get('updated', 0)} updated, {len(results.get('errors', []))} errors")
    for error in results.get('errors', []):
        logger.warning(f"  {error}")

    return results


def main():
    """Main function for command line execution."""
    parser = argparse.ArgumentParser(description='Refresh representation scores via cron job')
    parser.add_argument('--port', type=int, default=5000,
                        help='Flask app port (default: 5000)')
    parser.add_argument('--host', type=str, default='localhost',
                        help='Flask app host (default: localhost)')
    parser.add_argument('--timeout', type=int, default=600,
                        help='Request timeout in seconds (default: 600)')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    logger.info("=" * 60)
    logger.info("REPRESENTATION SCORE CRON JOB")
    logger.info("=" * 60)
    logger.info(f"Flask app: {args.host}:{args.port}")
    logger.info(f"Started at: {datetime.now()}")

    results = update_scores(host=args.host, port=args.port, timeout=args.timeout)

    if results is None:
        logger.error("Score refresh failed")
        sys.exit(1)
    if results.get('errors'):
        sys.exit(2)
    logger.info("Score refresh completed successfully")


if __name__ == '__main__':
    main()
