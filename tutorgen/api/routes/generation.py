"""
Generation Routes
Signature-addressed content shared across users
"""

from fastapi import APIRouter, Depends

from tutorgen.api.deps import get_orchestrator
from tutorgen.api.middleware.identity import get_current_user_id
from tutorgen.models import GenerationKind
from tutorgen.schemas.generation import GenerateRequest, GenerationResponse
from tutorgen.services.orchestrator import GenerationOrchestrator, GenerationOutcome, GenerationRequest

router = APIRouter()


def outcome_to_response(outcome: GenerationOutcome, day_index=None) -> GenerationResponse:
    return GenerationResponse(
        kind=outcome.kind.value,
        signature=outcome.signature,
        cached=outcome.cached,
        template_id=outcome.template_id,
        day_index=day_index,
        attempts=outcome.attempts,
        cost_usd=float(outcome.cost_usd),
        retrieval_source=outcome.retrieval_source,
        content=outcome.unwrap(),
    )


@router.post("/generate", response_model=GenerationResponse)
async def generate_plan(
    request: GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """
    Generate (or reuse) a plan for the given parameters.
    Identical parameters from any user return the same cached plan.
    """
    outcome = await orchestrator.generate(GenerationRequest(
        kind=GenerationKind.PLAN,
        params=request.model_dump(),
        user_id=user_id,
    ))
    return outcome_to_response(outcome)
