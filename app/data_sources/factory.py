"""Pick the DataSource implementation from configuration."""
import logging
from typing import Optional

from app.config import Settings
from app.data_sources.base import DataSource
from app.data_sources.fixture import FixtureDataSource
from app.data_sources.supabase import SupabaseDataSource
from app.services.realtime import IncidentChannel

logger = logging.getLogger(__name__)


def create_data_source(settings: Settings, channel: Optional[IncidentChannel] = None) -> DataSource:
    if settings.data_source == "live":
        if not settings.supabase_configured:
            raise RuntimeError("DATA_SOURCE=live requires SUPABASE_URL and SUPABASE_ANON_KEY")
        logger.info("Using live Supabase data source at %s", settings.supabase_url)
        return SupabaseDataSource(settings, channel=channel)
    logger.info("Using fixture data source (demonstration dataset)")
    return FixtureDataSource(channel=channel)
