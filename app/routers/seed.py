"""Seed router: POST /api/seed to reset the fixture data source to the demonstration dataset."""
from fastapi import APIRouter, Depends, HTTPException

from app.data_sources.fixture import FixtureDataSource
from app.deps import AppContext, get_ctx

router = APIRouter(prefix="/api", tags=["seed"])


@router.post("/seed")
async def seed_mock_data(ctx: AppContext = Depends(get_ctx)):
    """Reset demonstration incidents (fixture data source only). Idempotent."""
    if not isinstance(ctx.data_source, FixtureDataSource):
        raise HTTPException(status_code=409, detail="Seeding is only available with DATA_SOURCE=fixture")
    count = ctx.data_source.reset()
    await ctx.feed.refresh(ctx.data_source)
    return {"status": "seeded", "incidents": count}
