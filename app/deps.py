"""Request-scoped dependencies: app context, explicit user session, toasts, templates."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from fastapi import Depends, Request
from fastapi.templating import Jinja2Templates

from app.config import settings
from app.data_sources.base import DataSource
from app.errors import AuthRequired
from app.models.incident import CATEGORY_DISPLAY, STATUS_DISPLAY, STATUS_FILTER_LABELS, Category, Status
from app.services.auth import TOKEN_COOKIE, AuthClient, UserSession, token_from_headers
from app.services.notifications import Toast
from app.services.realtime import IncidentChannel, IncidentFeed
from app.services.report_workflow import WorkflowRegistry
from app.services.storage import BlobStorage

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals.update(
    categories=list(Category),
    statuses=list(Status),
    category_display=CATEGORY_DISPLAY,
    status_display=STATUS_DISPLAY,
    status_filter_labels=STATUS_FILTER_LABELS,
    sign_in_url=settings.sign_in_url,
)


@dataclass
class AppContext:
    data_source: DataSource
    auth: AuthClient
    storage: BlobStorage
    channel: IncidentChannel
    feed: IncidentFeed
    workflows: WorkflowRegistry = field(default_factory=WorkflowRegistry)


def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


async def current_session(request: Request, ctx: AppContext = Depends(get_ctx)) -> Optional[UserSession]:
    """Resolve the caller's session from the bearer header or the auth cookie; None if anonymous."""
    token = token_from_headers(request.headers.get("authorization"), request.cookies.get(TOKEN_COOKIE))
    return await ctx.auth.get_session(token)


async def require_session(
    request: Request,
    session: Optional[UserSession] = Depends(current_session),
) -> UserSession:
    if session is None:
        raise AuthRequired(return_path(request))
    return session


def return_path(request: Request) -> str:
    """Page to come back to after sign-in. Form actions map to the page that posts them."""
    path = request.url.path
    if request.method in ("GET", "HEAD"):
        return path
    # /report/submit -> /report, /incidents/{id}/delete -> /incidents/{id}
    parent = path.rstrip("/").rsplit("/", 1)[0]
    return parent or "/"


def push_toasts(request: Request, toasts: list[Toast]) -> None:
    if toasts:
        pending = request.session.get("toasts", [])
        pending.extend(t.to_dict() for t in toasts)
        request.session["toasts"] = pending


def pop_toasts(request: Request) -> list[dict]:
    return request.session.pop("toasts", [])


def render(request: Request, template: str, session: Optional[UserSession], **context):
    """Render a page with the shared layout context (user + pending toasts)."""
    return templates.TemplateResponse(
        request,
        template,
        {"user": session, "toasts": pop_toasts(request), **context},
    )
