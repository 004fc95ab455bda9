from __future__ import annotations

import logging
from typing import Optional

from supabase import Client, create_client

from cloudstore.core.config import Settings

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Optional[Client]:
    """Return a Supabase client, or None when credentials are not configured."""
    if not settings.supabase_enabled:
        logger.warning("Supabase credentials missing; falling back to in-memory entity stores")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as exc:  # pragma: no cover
        logger.error("Failed to initialise Supabase client: %s", exc)
        raise
