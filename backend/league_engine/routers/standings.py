import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import DataIntegrityError, ValidationError
from ..schemas import StandingsOut
from ..services.result_store import load_completed_matches, load_participants
from ..services.standings import league_standings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["standings"])


@router.get("/standings", response_model=StandingsOut)
async def standings(
    league: str = Query(..., min_length=1),
    season: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
):
    participants = await load_participants(session, league, season)
    matches = await load_completed_matches(session, league_id=league, season=season)
    try:
        rows = league_standings([(p.id, p.name) for _reg, p in participants], matches)
    except ValidationError as exc:
        logger.warning(
            "Stored results for league %s season %s are malformed: %s",
            league,
            season,
            exc.detail,
        )
        raise DataIntegrityError(
            f"stored results for league {league} season {season} are malformed: {exc.detail}"
        ) from exc
    return StandingsOut(league=league, season=season, standings=rows)
