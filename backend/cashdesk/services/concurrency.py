# Overview: Transaction helpers shared by the cash services (row locks, retries, rollback).

from __future__ import annotations

import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


T = TypeVar("T")

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows the query returns.

    PostgreSQL holds the row lock until commit. SQLite ignores the clause and
    serializes writers on the whole database file instead.
    """
    return query.with_for_update()


def run_with_retry(unit: Callable[[], T], *, attempts: int = 3, backoff_base: float = 0.1) -> T:
    """
    Run one unit of work (which commits itself) with bounded retries.

    Lock timeouts, deadlocks and version_id conflicts are retried with
    exponential backoff. Any other exception rolls the session back and
    propagates, so a failed request leaves nothing pending.
    """
    for attempt in range(1, attempts + 1):
        try:
            return unit()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            current_app.logger.warning(
                "Retrying cash transaction after %s (attempt %s of %s)",
                type(exc).__name__, attempt, attempts,
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise
    raise RuntimeError("run_with_retry called with attempts < 1")
