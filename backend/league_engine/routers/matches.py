from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Match
from ..schemas import MatchOut, MatchResultIn
from ..services.result_store import record_result
from ..time_utils import coerce_utc

router = APIRouter(tags=["matches"])


def match_out(m: Match) -> MatchOut:
    return MatchOut(
        id=m.id,
        league=m.league_id,
        season=m.season,
        round=m.round,
        player1=m.player1_id,
        player2=m.player2_id,
        isBye=bool(m.is_bye),
        status=m.status,
        winner=m.winner_id,
        score=m.score,
        playedAt=coerce_utc(m.played_at),
        eloChanges=m.elo_changes,
    )


@router.post("/matches/{match_id}/result", response_model=MatchOut)
async def submit_result(
    match_id: str,
    body: MatchResultIn,
    session: AsyncSession = Depends(get_session),
):
    match = await record_result(
        session,
        match_id,
        winner_id=body.winner,
        sets=[s.model_dump() for s in body.sets],
        walkover=body.walkover,
        played_at=body.playedAt,
    )
    return match_out(match)
