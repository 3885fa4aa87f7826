# =============================================================================
# Navigator API — Next Applicable Question
# =============================================================================
#
# POST /navigator/next evaluates branch conditions against the snapshot's
# answers and returns the next question (or completion) together with
# progress over applicable questions. No LLM calls, no rate limit.
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends

from bizplan.agents.orchestrator import Orchestrator
from bizplan.api.deps import get_orchestrator
from bizplan.models.requests import NavigatorRequest
from bizplan.models.responses import NavigatorResponse, ProgressResponse

router = APIRouter(tags=["Navigation"])


@router.post(
    "/navigator/next",
    response_model=NavigatorResponse,
    summary="Find the next applicable question",
)
async def next_question_endpoint(
    request: NavigatorRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> NavigatorResponse:
    navigator = orchestrator.navigator
    progress = navigator.progress(request.context)
    return NavigatorResponse(
        next_step=navigator.next_step(request.context),
        progress=ProgressResponse(
            answered=progress.answered,
            total=progress.total,
            percentage=progress.percentage,
            skipped=progress.skipped,
        ),
    )
