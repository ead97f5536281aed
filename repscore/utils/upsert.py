"""
Dialect-aware single-statement upserts.

PostgreSQL and SQLite use INSERT ... ON CONFLICT DO UPDATE, MySQL uses
INSERT ... ON DUPLICATE KEY UPDATE. Either way the database enforces the
unique key, so concurrent writers for the same key never create duplicates
and the last writer wins.
"""

import logging
from typing import Dict, Iterable, Any
from sqlalchemy.orm import Session
from sqlalchemy.dialects import postgresql, sqlite, mysql

logger = logging.getLogger(__name__)


def upsert(session: Session, model, values: Dict[str, Any],
           conflict_columns: Iterable[str], update_columns: Iterable[str]):
    """
    Insert a row or overwrite the given columns of the row with the same key.

    Args:
        session: Database session
        model: Declarative model class
        values: Full column values for the insert
        conflict_columns: Columns of the unique key that identifies the row
        update_columns: Columns overwritten when the row already exists

    Returns:
        The statement result
    """
    dialect = session.get_bind().dialect.name
    update_columns = list(update_columns)

    if dialect == 'postgresql':
        stmt = postgresql.insert(model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={col: stmt.excluded[col] for col in update_columns}
        )
    elif dialect == 'sqlite':
        stmt = sqlite.insert(model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={col: stmt.excluded[col] for col in update_columns}
        )
    elif dialect in ('mysql', 'mariadb'):
        stmt = mysql.insert(model).values(**values)
        stmt = stmt.on_duplicate_key_update(
            **{col: stmt.inserted[col] for col in update_columns}
        )
    else:
        raise NotImplementedError(f"Upsert not supported for dialect: {dialect}")

    return session.execute(stmt)
