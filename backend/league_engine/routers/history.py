from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..schemas import (
    RatingReportOut,
    RebuildReportOut,
    RebuildRequest,
    RecomputeRatingsRequest,
)
from ..services.history import rebuild_history
from ..services.rating import recompute_ratings

router = APIRouter(tags=["history"])


@router.post("/rebuild-history", response_model=RebuildReportOut)
async def rebuild(
    body: RebuildRequest | None = None,
    session: AsyncSession = Depends(get_session),
):
    body = body or RebuildRequest()
    report = await rebuild_history(session, body.playerId, dry_run=body.dryRun)
    return report.as_dict()


@router.post("/recompute-ratings", response_model=RatingReportOut)
async def recompute(
    body: RecomputeRatingsRequest | None = None,
    session: AsyncSession = Depends(get_session),
):
    body = body or RecomputeRatingsRequest()
    report = await recompute_ratings(session, dry_run=body.dryRun)
    return report.as_dict()
