#!/usr/bin/env python3
"""
Database setup script for the Representation Score tracker.
Creates all tables, unique keys and indexes used by the scoring pipeline.
"""

import click
import logging

from repscore.utils.database import init_db_manager

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TABLES = ('legislators', 'bills', 'bill_votes', 'user_bill_sentiments', 'representation_scores',
          'user_subscriptions')


@click.command()
@click.option('--database-url', envvar='DATABASE_URL',
              default='postgresql://localhost/repscore',
              help='Database connection URL')
@click.option('--drop-existing', is_flag=True,
              help='Drop existing tables before creating new ones')
def setup_database(database_url, drop_existing):
    """Set up the database schema for representation score tracking"""

    manager = init_db_manager(database_url)
    logger.info(f"Connecting to database: {manager.safe_url}")

    logger.info("Creating tables...")
    manager.create_tables(drop_existing=drop_existing)

    for table in TABLES:
        logger.info(f"  {table}: {manager.get_table_count(table)} rows")

    logger.info("Database setup completed successfully!")


if __name__ == '__main__':
    setup_database()
