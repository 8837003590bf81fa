"""HTML views: home, map, incident detail, dashboard, sign-out."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from app.config import settings
from app.deps import AppContext, current_session, get_ctx, push_toasts, render, require_session
from app.errors import PersistenceFailed
from app.models.incident import Incident, Status
from app.models.profile import Profile
from app.services.auth import TOKEN_COOKIE, UserSession
from app.services.filters import (
    apply_filters,
    located,
    map_markers,
    parse_category_filter,
    parse_status_filter,
    status_counts,
)
from app.services.notifications import Notifier
from app.utils.audit import get_audit_log, log_action

router = APIRouter(tags=["pages"])
logger = logging.getLogger(__name__)


def _see_other(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


@router.get("/")
async def home(
    request: Request,
    ctx: AppContext = Depends(get_ctx),
    session: Optional[UserSession] = Depends(current_session),
):
    """Most recent incidents as cards."""
    notifier = Notifier()
    incidents: list[Incident] = []
    load_error = False
    try:
        incidents = await ctx.data_source.list_recent(settings.recent_limit)
    except PersistenceFailed as e:
        logger.error("Error fetching incidents: %s", e)
        notifier.error("Error loading incidents", "Please try again later.")
        load_error = True
    push_toasts(request, notifier.drain())
    return render(
        request,
        "home.html",
        session,
        incidents=incidents,
        counts=status_counts(incidents),
        load_error=load_error,
    )


@router.get("/map")
async def map_view(
    request: Request,
    category: str = Query("all"),
    status: str = Query("all"),
    ctx: AppContext = Depends(get_ctx),
    session: Optional[UserSession] = Depends(current_session),
):
    """Filterable incident list with placeholder map markers, read from the realtime feed."""
    try:
        category_filter = parse_category_filter(category)
        status_filter = parse_status_filter(status)
    except ValueError:
        raise HTTPException(status_code=422, detail="Unknown category or status filter")

    load_error = False
    if ctx.feed.version == 0:
        try:
            await ctx.feed.refresh(ctx.data_source)
        except PersistenceFailed as e:
            logger.error("Error fetching incidents for map: %s", e)
            push_toasts(request, [Notifier().error("Error loading incidents", "Please try again later.")])
            load_error = True

    visible = apply_filters(ctx.feed.snapshot(), category_filter, status_filter)
    return render(
        request,
        "map.html",
        session,
        incidents=visible,
        markers=map_markers(visible),
        located_count=len(located(visible)),
        selected_category=getattr(category_filter, "value", category_filter),
        selected_status=getattr(status_filter, "value", status_filter),
        load_error=load_error,
    )


@router.post("/map/refresh")
async def refresh_map(request: Request, ctx: AppContext = Depends(get_ctx)):
    """User-triggered refetch; a result overtaken by realtime events is discarded."""
    notifier = Notifier()
    try:
        if not await ctx.feed.refresh(ctx.data_source):
            logger.info("Map refresh superseded by realtime events")
    except PersistenceFailed as e:
        logger.error("Error refreshing incidents: %s", e)
        notifier.error("Error loading incidents", "Please try again later.")
    push_toasts(request, notifier.drain())
    return _see_other("/map")


async def _load_incident(ctx: AppContext, incident_id: str) -> Incident:
    try:
        incident = await ctx.data_source.get(incident_id)
    except PersistenceFailed as e:
        logger.error("Error fetching incident %s: %s", incident_id, e)
        raise HTTPException(status_code=502, detail="Could not load incident")
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")
    return incident


@router.get("/incidents/{incident_id}")
async def incident_detail(
    request: Request,
    incident_id: str,
    ctx: AppContext = Depends(get_ctx),
    session: Optional[UserSession] = Depends(current_session),
):
    incident = await _load_incident(ctx, incident_id)
    is_owner = session is not None and session.user_id == incident.user_id
    return render(request, "incident_detail.html", session, incident=incident, is_owner=is_owner)


async def _owned_incident(ctx: AppContext, incident_id: str, session: UserSession) -> Incident:
    incident = await _load_incident(ctx, incident_id)
    if incident.user_id != session.user_id:
        raise HTTPException(status_code=403, detail="Only the reporter can change this incident")
    return incident


@router.post("/incidents/{incident_id}/delete")
async def delete_incident(
    request: Request,
    incident_id: str,
    ctx: AppContext = Depends(get_ctx),
    session: UserSession = Depends(require_session),
):
    await _owned_incident(ctx, incident_id, session)
    notifier = Notifier()
    try:
        await ctx.data_source.delete(incident_id, token=session.access_token)
    except PersistenceFailed as e:
        logger.error("Error deleting incident %s: %s", incident_id, e)
        notifier.error("Error deleting incident", "Please try again later.")
        push_toasts(request, notifier.drain())
        return _see_other(f"/incidents/{incident_id}")
    log_action(session.user_id, "incident_deleted", incident_id)
    notifier.success("Incident deleted")
    push_toasts(request, notifier.drain())
    return _see_other("/")


@router.post("/incidents/{incident_id}/status")
async def update_status(
    request: Request,
    incident_id: str,
    status: Status = Form(...),
    ctx: AppContext = Depends(get_ctx),
    session: UserSession = Depends(require_session),
):
    await _owned_incident(ctx, incident_id, session)
    notifier = Notifier()
    try:
        await ctx.data_source.update_status(incident_id, status, token=session.access_token)
        log_action(session.user_id, "status_changed", incident_id, status.value)
        notifier.success("Status updated", f"Incident marked as {status.value}.")
    except PersistenceFailed as e:
        logger.error("Error updating status of %s: %s", incident_id, e)
        notifier.error("Error updating status", "Please try again later.")
    push_toasts(request, notifier.drain())
    return _see_other(f"/incidents/{incident_id}")


@router.get("/dashboard")
async def dashboard(
    request: Request,
    ctx: AppContext = Depends(get_ctx),
    session: UserSession = Depends(require_session),
):
    """The signed-in user's profile, own reports and their status breakdown."""
    profile: Optional[Profile] = None
    try:
        profile = await ctx.data_source.get_profile(session.user_id)
    except PersistenceFailed as e:
        logger.warning("Error fetching profile for %s: %s", session.user_id, e)
    incidents: list[Incident] = []
    load_error = False
    try:
        incidents = await ctx.data_source.list_by_owner(session.user_id)
    except PersistenceFailed as e:
        logger.error("Error fetching incidents for %s: %s", session.user_id, e)
        push_toasts(request, [Notifier().error("Error loading your reports", "Please try again later.")])
        load_error = True
    return render(
        request,
        "dashboard.html",
        session,
        incidents=incidents,
        counts=status_counts(incidents),
        profile=profile,
        activity=get_audit_log(limit=10, actor=session.user_id),
        load_error=load_error,
    )


@router.post("/signout")
async def sign_out(
    request: Request,
    ctx: AppContext = Depends(get_ctx),
    session: Optional[UserSession] = Depends(current_session),
):
    if session is not None:
        await ctx.auth.sign_out(session)
        log_action(session.user_id, "signed_out")
        ctx.workflows.discard_user(session.user_id)
    ctx.workflows.discard(request.session.pop("workflow_id", None))
    response = _see_other("/")
    response.delete_cookie(TOKEN_COOKIE)
    return response
