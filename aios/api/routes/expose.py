"""Public embed endpoint: complete-response prompt without chat history."""

from fastapi import APIRouter, Depends

from aios.api.middleware.prompt_limit import prompt_limiter
from aios.api.schemas import PromptRequest, PromptResponse
from aios.orchestrator.conversation import ConversationOrchestrator
from aios.services.gateway_provider import get_orchestrator

router = APIRouter(
    prefix="/expose",
    tags=["expose"],
    dependencies=[Depends(prompt_limiter)],
)


@router.post("/prompt", response_model=PromptResponse)
async def expose_prompt(
    payload: PromptRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> PromptResponse:
    text = await orchestrator.generate_response(payload.prompt)
    return PromptResponse(response=text)
