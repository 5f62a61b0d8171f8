"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from cropyield.config import get_settings
from cropyield.db import DbClient, InMemoryDbClient, PostgresDbClient
from cropyield.verification import WebhookVerifier

_db_client: DbClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so records persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_webhook_verifier() -> WebhookVerifier:
    settings = get_settings()
    return WebhookVerifier(
        settings.clerk_webhook_secret,
        tolerance_seconds=settings.webhook_tolerance_seconds,
    )
