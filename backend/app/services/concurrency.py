# Overview: Unit-of-work helpers for stock and sale writes: row locks, commit, bounded retry.

from __future__ import annotations

import time
import uuid

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import PosError, StoreFailure, TransientStoreConflict


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, see begin_write_transaction.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    On SQLite, take the database write lock before the first read.

    BEGIN IMMEDIATE makes the stock read and the stock write part of one
    serialized transaction. Skipped when the connection is already inside a
    transaction, and on every other dialect (row locks do the job there).
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute func as one atomic unit of work and commit it.

    - PosError: rollback, re-raise immediately (never retried)
    - OperationalError / StaleDataError: rollback, retry with exponential
      backoff; TransientStoreConflict once attempts are exhausted
    - any other SQLAlchemyError: rollback, log with a correlation id,
      raise StoreFailure
    """
    if attempts is None:
        attempts = current_app.config.get("POS_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("POS_RETRY_BACKOFF_SECONDS", 0.05)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            begin_write_transaction()
            result = func()
            db.session.commit()
            return result
        except PosError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Store conflict persisted after %d attempts: %s", attempts, exc
                )
                raise TransientStoreConflict(attempts) from exc
            current_app.logger.warning(
                "Store conflict on attempt %d/%d, retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            correlation_id = new_correlation_id()
            current_app.logger.exception("Unexpected store failure (correlation_id=%s)", correlation_id)
            raise StoreFailure(correlation_id) from exc
        except Exception:
            db.session.rollback()
            raise
