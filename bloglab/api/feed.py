from fastapi import APIRouter, Depends, Query, Request
from datetime import datetime, time, timedelta
from typing import List, Optional
import logging

from bloglab.api.deps import get_services
from bloglab.db.base import utcnow
from bloglab.schemas import RankedPost
from bloglab.services import Services

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/trending", response_model=List[RankedPost])
async def get_trending(
    limit: Optional[int] = Query(None, ge=1, le=100),
    services: Services = Depends(get_services)
):
    """Published posts ranked by engagement"""
    return await services.ranking.trending(limit)

@router.get("/trending/recent", response_model=List[RankedPost])
async def get_recent_trending(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=365),
    limit: Optional[int] = Query(None, ge=1, le=100),
    services: Services = Depends(get_services)
):
    """Posts ranked by likes and comments received in the last ``days`` days"""
    days = days or request.app.state.settings.TRENDING_WINDOW_DAYS
    # Window starts at midnight so repeated calls within a day share a cache entry
    since = datetime.combine(utcnow().date(), time.min) - timedelta(days=days)
    return await services.ranking.trending_since(since, limit)

@router.get("/leaderboard", response_model=List[RankedPost])
async def get_leaderboard(
    n: Optional[int] = Query(None, ge=1, le=100),
    services: Services = Depends(get_services)
):
    """Top posts from the cached leaderboard"""
    return await services.ranking.leaderboard(n)
