"""SafeWatch: community incident reporting FastAPI app."""
import logging
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from app.config import Settings, settings
from app.data_sources.factory import create_data_source
from app.deps import AppContext
from app.errors import AuthRequired, PersistenceFailed, WorkflowError
from app.event_bus import bus, start_event_bus, stop_event_bus
from app.routers import files, incidents, pages, report, seed, ws
from app.services.auth import create_auth_client
from app.services.realtime import IncidentChannel, IncidentFeed, connection_manager
from app.services.storage import create_storage

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


def build_context(cfg: Settings) -> AppContext:
    """Wire the external collaborators selected by configuration."""
    channel = IncidentChannel(bus)
    return AppContext(
        data_source=create_data_source(cfg, channel=channel),
        auth=create_auth_client(cfg),
        storage=create_storage(cfg),
        channel=channel,
        feed=IncidentFeed(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start event bus, data source and realtime feed; tear them down on shutdown."""
    await start_event_bus()
    ctx = build_context(settings)
    app.state.ctx = ctx
    connection_manager.channel = ctx.channel
    ctx.feed.attach(ctx.channel)
    try:
        await ctx.feed.refresh(ctx.data_source)
        logger.info("Incident feed loaded: %d incidents", len(ctx.feed))
    except PersistenceFailed as e:
        logger.warning("Initial incident fetch failed, map view will retry: %s", e)
    logger.info("SafeWatch started (data source: %s)", ctx.data_source.name)
    yield
    # Tear down whatever context is current (tests may swap it)
    ctx = app.state.ctx
    ctx.feed.detach()
    await connection_manager.close_all()
    await ctx.data_source.close()
    await ctx.auth.close()
    await ctx.storage.close()
    await stop_event_bus()
    logger.info("SafeWatch stopped")


app = FastAPI(
    title="SafeWatch",
    description="Community safety incident reporting",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pages.router)
app.include_router(report.router)
app.include_router(incidents.router)
app.include_router(files.router)
app.include_router(seed.router)
app.include_router(ws.router)


@app.exception_handler(AuthRequired)
async def auth_required_handler(request: Request, exc: AuthRequired):
    """No session: send the user to the external sign-in flow."""
    return RedirectResponse(f"{settings.sign_in_url}?redirect={quote(exc.redirect_to)}", status_code=303)


@app.exception_handler(PersistenceFailed)
async def persistence_failed_handler(request: Request, exc: PersistenceFailed):
    logger.error("Data store error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": f"{exc.operation} failed"})


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health")
async def health():
    """Health check."""
    ctx: AppContext | None = getattr(app.state, "ctx", None)
    return {
        "status": "ok",
        "data_source": ctx.data_source.name if ctx else None,
        "feed_size": len(ctx.feed) if ctx else 0,
        "event_bus_running": bus.running,
        "websocket_clients": len(connection_manager.connections),
    }
