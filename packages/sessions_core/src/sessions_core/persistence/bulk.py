"""
Bulk SQL helpers used by commit hooks.

Each helper sends one statement for all rows of a hook:
- bulk_insert: Core ``insert()`` with a list of rows, rendered as a single
  multi-row INSERT on PostgreSQL (insertmanyvalues)
- bulk_update: one UPDATE whose per-row columns are ``CASE`` expressions
  keyed by primary key
"""

import dataclasses
import logging
import time
from typing import Any, Sequence

from sqlalchemy import Table, case, insert, update
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _as_params(row: Any) -> dict[str, Any]:
    if dataclasses.is_dataclass(row):
        return dataclasses.asdict(row)
    return dict(row)


def _execute(db: Session, label: str, statement, rows: int, params=None) -> None:
    start = time.perf_counter()
    if params is None:
        db.execute(statement)
    else:
        db.execute(statement, params)
    elapsed_ms = (time.perf_counter() - start) * 1000

    logger.debug(
        f"Bulk SQL: {label}",
        extra={"rows": rows, "elapsed_ms": round(elapsed_ms, 2)},
    )


def bulk_insert(db: Session, label: str, table: Table, rows: Sequence[Any]) -> int:
    """
    Insert all ``rows`` into ``table`` on the batch transaction.

    Args:
        db: The batch transaction
        label: Short description for logging (e.g. "inserting msgs")
        table: Target table
        rows: Dataclasses or mappings keyed by column name, all with the same keys

    Returns:
        Number of rows inserted
    """
    if not rows:
        return 0

    params = [_as_params(row) for row in rows]
    _execute(db, label, insert(table), len(params), params)
    return len(params)


def bulk_update(
    db: Session,
    label: str,
    table: Table,
    rows: Sequence[Any],
    key: str = "id",
    **values: Any,
) -> int:
    """
    Update many rows of ``table`` with a single UPDATE statement.

    Every non-key field of a row becomes ``CASE <key> WHEN ... THEN ... END``.
    Fields in ``values`` are set to the same value on every row. If two rows
    share a key the later one wins.

    Args:
        db: The batch transaction
        label: Short description for logging (e.g. "updating contact name")
        table: Target table
        rows: Dataclasses or mappings holding ``key`` and the columns to set
        key: Column identifying the row to update
        values: Columns set to one value for all rows

    Returns:
        Number of distinct rows targeted
    """
    if not rows:
        return 0

    params = [_as_params(row) for row in rows]
    key_col = table.c[key]
    ids = list(dict.fromkeys(p[key] for p in params))

    per_row: dict[str, Any] = {
        column: case({p[key]: p[column] for p in params}, value=key_col)
        for column in params[0]
        if column != key
    }

    statement = update(table).where(key_col.in_(ids)).values(**per_row, **values)
    _execute(db, label, statement, len(ids))
    return len(ids)
