"""
Content generation router.

Endpoints:
- POST /api/llm/generate - Generate blog content from a prompt
- GET /api/llm/models - List models available to the configured key
"""

from fastapi import APIRouter, Depends

from ..lib.dependencies import get_generation_client
from ..lib.generation import GeminiClient, GenerationRequest, GenerationResult
from ..lib.logging_utils import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/llm", tags=["llm"])


@router.post("/generate", response_model=GenerationResult)
def generate_content(
    request_data: GenerationRequest,
    client: GeminiClient = Depends(get_generation_client)
):
    """
    Generate blog content.

    Runs in the worker thread pool since the API call blocks.

    Returns:
        GenerationResult with generated text and token usage
    """
    result = client.generate(request_data)
    logger.info(
        f"Generated {result.tokens.outputTokens} tokens with {result.model} "
        f"for a {request_data.contentLength} post"
    )
    return result


@router.get("/models")
def list_models(client: GeminiClient = Depends(get_generation_client)):
    """List available generative models."""
    models = client.list_models()
    return {"models": models}
