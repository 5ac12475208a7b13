"""Shared FastAPI dependencies."""

import secrets

from fastapi import Header, HTTPException, Request

from .config import settings
from .integrations.cache import CacheService, NullCacheService


def get_cache(request: Request) -> CacheService:
    """Get the cache service from app state."""
    return getattr(request.app.state, "cache", None) or NullCacheService()


def require_api_token(authorization: str = Header("")) -> None:
    """Bearer token check for the operations API. An empty configured token disables the API."""
    scheme, _, token = authorization.partition(" ")
    if (
        not settings.api_token
        or scheme.lower() != "bearer"
        or not secrets.compare_digest(token.strip().encode(), settings.api_token.encode())
    ):
        raise HTTPException(status_code=401, detail="Invalid or missing API token")
