"""Incidents JSON API: GET /api/incidents, GET /api/incidents/{incident_id}."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.deps import AppContext, get_ctx
from app.models.incident import Incident
from app.services.filters import apply_filters, parse_category_filter, parse_status_filter

router = APIRouter(prefix="/api", tags=["incidents"])
logger = logging.getLogger(__name__)


@router.get("/incidents", response_model=list[Incident])
async def list_incidents(
    category: str = Query("all"),
    status: str = Query("all"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    ctx: AppContext = Depends(get_ctx),
):
    """Newest first, filtered by category and status ('all' disables a filter)."""
    try:
        category_filter = parse_category_filter(category)
        status_filter = parse_status_filter(status)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    # PersistenceFailed propagates to the app-level handler (502)
    incidents = await ctx.data_source.list_recent(limit)
    return apply_filters(incidents, category_filter, status_filter)


@router.get("/incidents/{incident_id}", response_model=Incident)
async def get_incident(incident_id: str, ctx: AppContext = Depends(get_ctx)):
    incident = await ctx.data_source.get(incident_id)
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")
    return incident
