from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from db.database import get_db
from services.client_overview_service import (
    ClientNotFoundError,
    build_client_overview,
    dismiss_reminder,
    get_checkin_overview,
    get_habit_summary,
    next_checkin_date,
)
from services.diagnostics import EngineDiagnostics
from services.storage_service import storage_error_message
from utils.datetime_utils import parse_calendar_date


router = APIRouter(prefix="/clients", tags=["clients"])


# --- Pydantic Schemas ---

class DismissRequest(BaseModel):
    date: Optional[str] = None


class DismissResponse(BaseModel):
    key: str
    dismissed_for_date: str
    created: bool


# --- Helpers ---

def get_diagnostics(request: Request) -> EngineDiagnostics:
    diagnostics = getattr(request.app.state, "diagnostics", None)
    if diagnostics is None:
        diagnostics = EngineDiagnostics()
        request.app.state.diagnostics = diagnostics
    return diagnostics


def _validated_date(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return None
    parsed = parse_calendar_date(value) if isinstance(value, str) else None
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"`{field}` must be a valid YYYY-MM-DD date")
    return parsed.isoformat()


@router.get("/{client_id}/overview")
def client_overview(
    client_id: int,
    date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    diagnostics: EngineDiagnostics = Depends(get_diagnostics),
):
    try:
        return build_client_overview(db, client_id, diagnostics, today=_validated_date(date, "date"))
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{client_id}/checkin-status")
def client_checkin_status(
    client_id: int,
    date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    diagnostics: EngineDiagnostics = Depends(get_diagnostics),
):
    try:
        return get_checkin_overview(db, client_id, diagnostics, today=_validated_date(date, "date"))
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{client_id}/reminders")
def client_reminders(
    client_id: int,
    date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    diagnostics: EngineDiagnostics = Depends(get_diagnostics),
):
    try:
        overview = build_client_overview(db, client_id, diagnostics, today=_validated_date(date, "date"))
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "today": overview["today"],
        "alerts": overview["alerts"],
        "reminders": overview["reminders"],
        "errors": overview["errors"],
    }


@router.post("/{client_id}/reminders/{key}/dismiss", response_model=DismissResponse)
def client_dismiss_reminder(
    client_id: int,
    key: str,
    req: Optional[DismissRequest] = None,
    db: Session = Depends(get_db),
):
    day = _validated_date(req.date if req else None, "date")
    try:
        result = dismiss_reminder(db, client_id, key, today=day)
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result.error:
        raise HTTPException(
            status_code=503,
            detail=storage_error_message(result.error, "Failed to dismiss reminder."),
        )
    return DismissResponse(
        key=key,
        dismissed_for_date=result.data["dismissed_for_date"],
        created=bool(result.data["created"]),
    )


@router.get("/{client_id}/habits/summary")
def client_habit_summary(
    client_id: int,
    date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        return get_habit_summary(db, client_id, today=_validated_date(date, "date"))
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{client_id}/checkins/next")
def client_next_checkin(
    client_id: int,
    frequency: Optional[str] = Query(default=None),
    reference: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        return next_checkin_date(db, client_id, reference=_validated_date(reference, "reference"), frequency=frequency)
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
