"""
db.py — Supabase client singleton.

Usage:
    from nycdata_shared.db import get_supabase_client

    supabase = get_supabase_client()   # service key (pipeline writes)
"""

from __future__ import annotations

import threading
from typing import Optional

import structlog
from supabase import Client, create_client

from nycdata_shared.config import settings

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Supabase — one client per process (thread-safe via lock)
# ---------------------------------------------------------------------------
_supabase_lock = threading.Lock()
_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Return a singleton Supabase client authenticated with the service role key.

    Raises:
        RuntimeError: SUPABASE_SERVICE_KEY is not configured.
    """
    global _supabase_client

    with _supabase_lock:
        if _supabase_client is None:
            if not settings.supabase_service_key:
                raise RuntimeError(
                    "SUPABASE_SERVICE_KEY is not set. "
                    "Set it in .env before running a pipeline that writes."
                )
            _supabase_client = create_client(
                settings.supabase_url,
                settings.supabase_service_key,
            )
            logger.info("supabase_client_created", url=settings.supabase_url)
        return _supabase_client


def reset_supabase_client() -> None:
    """Reset the singleton client (useful in tests)."""
    global _supabase_client
    with _supabase_lock:
        _supabase_client = None
