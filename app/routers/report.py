"""Report wizard router: GET /report, POST /report/step, /report/submit, /report/cancel."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import RedirectResponse

from app.deps import AppContext, get_ctx, push_toasts, render, require_session
from app.models.draft import ImageAttachment, parse_coordinate
from app.services.auth import UserSession
from app.services.report_workflow import STEP_TITLES, ReportWorkflow

router = APIRouter(prefix="/report", tags=["report"])
logger = logging.getLogger(__name__)

SESSION_KEY = "workflow_id"


def _workflow(request: Request, ctx: AppContext, session: UserSession) -> ReportWorkflow:
    """The browser session's active workflow, started on first use."""
    wf = ctx.workflows.get(request.session.get(SESSION_KEY), session)
    if wf is None:
        wf = ctx.workflows.start(session, ctx.data_source, ctx.storage)
        request.session[SESSION_KEY] = wf.id
        logger.debug("Started report workflow %s for %s", wf.id, session.user_id)
    return wf


@router.get("")
async def report_form(
    request: Request,
    ctx: AppContext = Depends(get_ctx),
    session: UserSession = Depends(require_session),
):
    wf = _workflow(request, ctx, session)
    return render(
        request,
        "report.html",
        session,
        wf=wf,
        draft=wf.draft,
        step=wf.step,
        step_titles=STEP_TITLES,
        step_valid=wf.current_step_valid(),
    )


@router.post("/step")
async def report_step(
    request: Request,
    action: str = Form("save"),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    ctx: AppContext = Depends(get_ctx),
    session: UserSession = Depends(require_session),
):
    """Apply the fields posted by the current step, then move next/back."""
    wf = _workflow(request, ctx, session)
    for field, value in (
        ("title", title),
        ("description", description),
        ("category", category),
        ("location", location),
    ):
        if value is not None:
            wf.set_field(field, value)
    if latitude is not None:
        wf.set_field("latitude", parse_coordinate(latitude))
    if longitude is not None:
        wf.set_field("longitude", parse_coordinate(longitude))
    if image is not None and image.filename:
        wf.set_field(
            "image",
            ImageAttachment(
                filename=image.filename,
                content_type=image.content_type or "application/octet-stream",
                content=await image.read(),
            ),
        )

    if action == "next":
        wf.advance()
    elif action == "back":
        wf.retreat()
    return RedirectResponse("/report", status_code=303)


@router.post("/submit")
async def report_submit(
    request: Request,
    ctx: AppContext = Depends(get_ctx),
    session: UserSession = Depends(require_session),
):
    wf = _workflow(request, ctx, session)
    result = await wf.submit()
    push_toasts(request, wf.notifier.drain())
    if not result.ok:
        return RedirectResponse("/report", status_code=303)
    ctx.workflows.discard(request.session.pop(SESSION_KEY, None))
    return RedirectResponse("/", status_code=303)


@router.post("/cancel")
async def report_cancel(request: Request, ctx: AppContext = Depends(get_ctx)):
    """Abandon the wizard; the draft is discarded."""
    ctx.workflows.discard(request.session.pop(SESSION_KEY, None))
    return RedirectResponse("/", status_code=303)
