"""
Storage collaborator for the cycle engine.

Every read returns a :class:`FetchResult` instead of raising, so a failing
table only degrades the fields it feeds. Rows come back as plain dicts keyed
by column name, which is the shape the engine services consume.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import BaselineEntry, Checkin, Client, DismissedReminder, HabitLog
from utils.datetime_utils import CalendarDate
from utils.rows import row_value


logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_CODE = "23505"
SCHEMA_MISMATCH_CODES = {"PGRST204", "42703"}
SCHEMA_MISMATCH_MESSAGE = "Database schema mismatch. Please refresh and re-run migrations."
_MISSING_COLUMN_RE = re.compile(r"(no such column|column .* does not exist|has no column named)", re.IGNORECASE)


@dataclass(frozen=True)
class StorageError:
    code: str | None
    message: str


@dataclass
class FetchResult:
    data: Any = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _storage_error(exc: Exception) -> StorageError:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    message = str(orig or exc).strip() or exc.__class__.__name__
    if _MISSING_COLUMN_RE.search(message) and not code:
        code = "42703"
    return StorageError(code=str(code) if code else None, message=message)


def _row_to_dict(row: Any) -> dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def _run(db: Session, label: str, query: Callable[[], Any]) -> FetchResult:
    try:
        return FetchResult(data=query())
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Storage read failed ({label}): {e}")
        return FetchResult(error=_storage_error(e))


def storage_error_message(error: Any, fallback: str = "Something went wrong.") -> str:
    if not error:
        return fallback
    code = row_value(error, "code")
    if code in SCHEMA_MISMATCH_CODES:
        return SCHEMA_MISMATCH_MESSAGE
    message = row_value(error, "message")
    if isinstance(message, str) and message.strip():
        return message
    if isinstance(error, Exception) and str(error):
        return str(error)
    return fallback


def get_client(db: Session, client_id: int) -> FetchResult:
    def _query():
        row = db.query(Client).filter(Client.id == client_id).first()
        return _row_to_dict(row) if row else None

    return _run(db, "clients", _query)


def fetch_habit_logs(
    db: Session,
    client_id: int,
    start_date: CalendarDate | None = None,
    end_date: CalendarDate | None = None,
) -> FetchResult:
    def _query():
        q = db.query(HabitLog).filter(HabitLog.client_id == client_id)
        if start_date:
            q = q.filter(HabitLog.log_date >= start_date)
        if end_date:
            q = q.filter(HabitLog.log_date <= end_date)
        return [_row_to_dict(row) for row in q.order_by(HabitLog.log_date.asc(), HabitLog.id.asc()).all()]

    return _run(db, "habit_logs", _query)


def fetch_checkins(db: Session, client_id: int, week_ending: CalendarDate | None = None) -> FetchResult:
    """All check-ins for the client, or only those filed under ``week_ending``."""
    def _query():
        q = db.query(Checkin).filter(Checkin.client_id == client_id)
        if week_ending:
            q = q.filter(Checkin.week_ending_saturday == week_ending)
        return [_row_to_dict(row) for row in q.order_by(Checkin.week_ending_saturday.desc(), Checkin.id.asc()).all()]

    return _run(db, "checkins", _query)


def fetch_baseline_exists(db: Session, client_id: int) -> FetchResult:
    def _query():
        row = (
            db.query(BaselineEntry.id)
            .filter(BaselineEntry.client_id == client_id, BaselineEntry.status == "submitted")
            .first()
        )
        return row is not None

    return _run(db, "baseline_entries", _query)


def fetch_dismissed_reminders(db: Session, client_id: int, day: CalendarDate) -> FetchResult:
    def _query():
        rows = (
            db.query(DismissedReminder)
            .filter(DismissedReminder.client_id == client_id, DismissedReminder.dismissed_for_date == day)
            .all()
        )
        return [_row_to_dict(row) for row in rows]

    return _run(db, "dismissed_reminders", _query)


def insert_dismissal(db: Session, client_id: int, key: str, day: CalendarDate) -> FetchResult:
    """
    Record ``key`` as dismissed for ``day``.

    A duplicate (same client, key and day) already has the intended effect and
    is reported as success with ``data["created"]`` false.
    """
    db.add(DismissedReminder(client_id=client_id, key=key, dismissed_for_date=day))
    try:
        db.commit()
        return FetchResult(data={"created": True, "dismissed_for_date": day})
    except IntegrityError as e:
        db.rollback()
        err = _storage_error(e)
        if err.code == UNIQUE_VIOLATION_CODE or "unique" in err.message.lower():
            return FetchResult(data={"created": False, "dismissed_for_date": day})
        logger.warning("DISMISS_REMINDER_ERROR %s", e)
        return FetchResult(error=err)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("DISMISS_REMINDER_ERROR %s", e)
        return FetchResult(error=_storage_error(e))
