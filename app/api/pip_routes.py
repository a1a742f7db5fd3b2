"""PERFORMA — PIP API Routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session

from app.connectors.hr.client import HRClient, get_hr_client
from app.core.errors import PIPError, PIPNotFoundError
from app.core.logging import get_logger
from app.database import get_session
from app.engine.pip_manager import (
    add_weekly_review,
    check_and_trigger_pips,
    close_pip,
    extend_pip,
    find_overdue_pips,
    set_goals,
)
from app.models.pip_models import PIPCheckResult, PIPGoal, PIPResult, PIPView, WeeklyReview

logger = get_logger("api.pip")

router = APIRouter(prefix="/pips", tags=["PIP"])


# ── Request Models ──


class CloseRequest(BaseModel):
    result: PIPResult
    closed_by: str
    final_notes: str = ""
    final_score: Optional[float] = Field(default=None, ge=0, le=100)
    hr_notes: str = ""


class ExtendRequest(BaseModel):
    additional_days: int = Field(gt=0)
    extended_by: str
    notes: str = ""


def _raise_http(e: PIPError):
    if isinstance(e, PIPNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


# ── Endpoints ──


@router.post("/check", response_model=PIPCheckResult)
async def run_pip_check(
    session: Session = Depends(get_session),
    hr: HRClient = Depends(get_hr_client),
):
    """Evaluate trigger rules for every active eligible employee."""
    return await check_and_trigger_pips(session, hr)


@router.get("/overdue", response_model=List[PIPView])
async def get_overdue(session: Session = Depends(get_session)):
    """Open PIPs past their end date, awaiting a close or extend decision."""
    return [PIPView.from_pip(p) for p in find_overdue_pips(session)]


@router.post("/{pip_id}/reviews", response_model=PIPView)
async def post_review(
    pip_id: int, review: WeeklyReview, session: Session = Depends(get_session)
):
    try:
        return PIPView.from_pip(add_weekly_review(session, pip_id, review))
    except PIPError as e:
        _raise_http(e)


@router.put("/{pip_id}/goals", response_model=PIPView)
async def put_goals(
    pip_id: int, goals: List[PIPGoal], session: Session = Depends(get_session)
):
    try:
        return PIPView.from_pip(set_goals(session, pip_id, goals))
    except PIPError as e:
        _raise_http(e)


@router.post("/{pip_id}/close", response_model=PIPView)
async def post_close(
    pip_id: int, request: CloseRequest, session: Session = Depends(get_session)
):
    try:
        pip = close_pip(
            session,
            pip_id,
            request.result,
            request.closed_by,
            final_notes=request.final_notes,
            final_score=request.final_score,
            hr_notes=request.hr_notes,
        )
    except PIPError as e:
        _raise_http(e)
    return PIPView.from_pip(pip)


@router.post("/{pip_id}/extend", response_model=PIPView)
async def post_extend(
    pip_id: int, request: ExtendRequest, session: Session = Depends(get_session)
):
    try:
        pip = extend_pip(
            session,
            pip_id,
            request.additional_days,
            request.extended_by,
            notes=request.notes,
        )
    except PIPError as e:
        _raise_http(e)
    return PIPView.from_pip(pip)
