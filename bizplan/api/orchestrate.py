# =============================================================================
# Orchestrate API — One Conversational Turn
# =============================================================================
#
# POST /orchestrate hands the session snapshot and the user's message to the
# Orchestrator and maps the OrchestrationResult to the public response.
#
# Rate limiting uses the "chat" category keyed by session id. Agent failures
# never surface as HTTP errors: the turn still returns 200 with whatever the
# surviving agents produced (or the localized fallback reply).
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from bizplan.agents.orchestrator import Orchestrator
from bizplan.api.deps import check_rate_limit, get_orchestrator, get_rate_limiter
from bizplan.models.requests import OrchestrateRequest
from bizplan.models.responses import OrchestrateResponse
from bizplan.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orchestration"])

RATE_LIMIT_CATEGORY = "chat"


@router.post(
    "/orchestrate",
    response_model=OrchestrateResponse,
    summary="Run one turn of the business-planning conversation",
    description=(
        "Select specialist agents for the current phase, decide whether they "
        "run in parallel or in sequence, execute them with their allowed "
        "skills and return one synthesized reply plus the next question."
    ),
)
async def orchestrate_endpoint(
    request: OrchestrateRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> OrchestrateResponse:
    await check_rate_limit(limiter, request.context.session_id, RATE_LIMIT_CATEGORY)

    result = await orchestrator.orchestrate(
        request.message,
        request.context,
        phase_id=request.phase_id,
        agent_ids=request.agent_ids,
    )
    agents = orchestrator.catalog.agents
    names = {r.agent_id: agents.display_name(r.agent_id) for r in result.agent_results}
    return OrchestrateResponse.from_result(result, names)
