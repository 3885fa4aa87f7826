# =============================================================================
# API Dependencies — Shared Components via FastAPI Dependency Injection
# =============================================================================
#
# The Orchestrator (catalogs, skill registry, LLM provider) and the rate
# limiter are built once in the app lifespan and stored on app.state.
# Route handlers receive them through Depends(), so tests can swap either
# one with app.dependency_overrides.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from bizplan.agents.orchestrator import Orchestrator
from bizplan.config import Settings
from bizplan.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


async def check_rate_limit(limiter: RateLimiter, identifier: str, category: str) -> None:
    """
    Record one request for `identifier` in `category`.

    Raises:
        HTTPException 429: Limit exceeded; Retry-After says when to retry.
    """
    decision = await limiter.acheck(identifier, category)
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail=(
                f"Rate limit exceeded: {decision.limit} requests allowed. "
                f"Try again in {decision.retry_after_header()} seconds."
            ),
            headers={"Retry-After": decision.retry_after_header()},
        )
