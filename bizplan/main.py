# =============================================================================
# FastAPI Application — Entry Point
# =============================================================================
#
# Usage:
#   uvicorn bizplan.main:app --reload
#
# The lifespan loads the YAML catalogs, builds the skill registry, the LLM
# provider and the Orchestrator once, and stores them on app.state. A
# missing or invalid catalog raises CatalogError and aborts startup.
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from bizplan.agents.orchestrator import Orchestrator
from bizplan.api import navigator, orchestrate
from bizplan.api.deps import get_app_settings, get_orchestrator
from bizplan.config import Settings, get_settings
from bizplan.logging_config import configure_logging
from bizplan.models.responses import HealthResponse
from bizplan.services.llm import LLMProvider
from bizplan.services.rate_limiter import create_rate_limiter

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, llm: LLMProvider | None = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Overrides get_settings(); tests pass their own.
        llm: Overrides the configured provider; tests pass a scripted one.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        orchestrator = Orchestrator.from_settings(settings, llm)
        app.state.settings = settings
        app.state.orchestrator = orchestrator
        app.state.rate_limiter = create_rate_limiter(
            settings.rate_limits, settings.rate_limit_redis_url,
        )
        logger.info(
            "Starting %s v%s: %d phases, %d agents, skills=%s",
            settings.app_name, settings.app_version,
            len(orchestrator.catalog.phases), len(orchestrator.catalog.agents),
            orchestrator.registry.names(),
        )
        yield
        logger.info("Shutting down %s", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Multi-agent orchestration for guided business planning: adaptive "
            "questionnaire navigation, specialist agent selection, parallel or "
            "sequential execution with calculation skills, and reply synthesis."
        ),
        lifespan=lifespan,
    )
    app.include_router(orchestrate.router)
    app.include_router(navigator.router)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health(
        app_settings: Settings = Depends(get_app_settings),
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> HealthResponse:
        return HealthResponse(
            version=app_settings.app_version,
            service=app_settings.app_name,
            phases=len(orchestrator.catalog.phases),
            agents=len(orchestrator.catalog.agents),
            skills=orchestrator.registry.names(),
        )

    return app


app = create_app()
