from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..schemas import (
    CommitRoundOut,
    DeleteRoundOut,
    PairingPlanOut,
    RoundRequest,
    RoundStatusOut,
)
from ..services import rounds as round_service
from .matches import match_out

router = APIRouter(tags=["rounds"])


@router.post("/plan-round", response_model=PairingPlanOut)
async def plan_round(body: RoundRequest, session: AsyncSession = Depends(get_session)):
    plan = await round_service.plan_round(session, body.league, body.season, body.round)
    return plan.as_dict()


@router.post("/commit-round", response_model=CommitRoundOut)
async def commit_round(body: RoundRequest, session: AsyncSession = Depends(get_session)):
    matches = await round_service.commit_round(session, body.league, body.season, body.round)
    return CommitRoundOut(round=body.round, matches=[match_out(m) for m in matches])


@router.get("/round-status", response_model=RoundStatusOut)
async def round_status(
    league: str = Query(..., min_length=1),
    season: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
):
    return await round_service.round_status(session, league, season)


@router.delete("/rounds", response_model=DeleteRoundOut)
async def delete_round(
    league: str = Query(..., min_length=1),
    season: str = Query(..., min_length=1),
    round: int = Query(..., ge=1),
    session: AsyncSession = Depends(get_session),
):
    deleted = await round_service.delete_round(session, league, season, round)
    return DeleteRoundOut(league=league, season=season, round=round, deleted=deleted)
