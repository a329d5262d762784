"""
Blog content generation through the Gemini generative language API.
"""

from typing import Any, Dict, List, Literal, Optional

import requests
from pydantic import BaseModel, Field, field_validator
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .server_utils import ApiError
from .logging_utils import get_logger

logger = get_logger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Rate limiting and transient server errors of the API
RETRY_STATUSES = (429, 500, 502, 503, 504)

Tone = Literal['professional', 'casual', 'formal', 'humorous', 'creative']
ContentLength = Literal['short', 'medium', 'long']

LENGTH_HINTS = {
    'short': 'about 150-300 words',
    'medium': 'about 500-800 words',
    'long': 'about 1200-1800 words',
}


class GenerationRequest(BaseModel):
    """Request model for generating blog content"""
    prompt: str
    tone: Tone = 'professional'
    language: str = 'english'
    contentLength: ContentLength = 'medium'
    temperature: float = Field(default=0.7, ge=0, le=2)
    maxTokens: int = Field(default=2000, gt=0)

    @field_validator('prompt')
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        """Trim the prompt and reject empty ones."""
        v = v.strip()
        if not v:
            raise ValueError("prompt must not be empty")
        return v


class TokenUsage(BaseModel):
    inputTokens: int = 0
    outputTokens: int = 0


class GenerationResult(BaseModel):
    """Generated content together with the parameters that produced it"""
    prompt: str
    generatedContent: str
    model: str
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    tone: Tone = 'professional'
    language: str = 'english'
    contentLength: ContentLength = 'medium'
    temperature: float = 0.7
    maxTokens: int = 2000


def build_prompt(request: GenerationRequest) -> str:
    """Compose the full instruction sent to the model."""
    return (
        f"Write a blog post in {request.language} with a {request.tone} tone, "
        f"{LENGTH_HINTS[request.contentLength]} long.\n\n"
        f"Topic: {request.prompt}"
    )


class GeminiClient:
    """
    Client for the Gemini REST API with retry logic.
    """

    def __init__(self, api_key: str, default_model: str = "gemini-1.5-flash", timeout: float = 120):
        if not api_key:
            raise ValueError("API key is required")
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout

    def _session(self) -> requests.Session:
        return build_session()

    def list_models(self) -> List[Dict[str, Any]]:
        """
        Return the models available to the configured API key.

        Raises:
            ApiError: If the API cannot be reached or rejects the request
        """
        url = f"{API_BASE_URL}/models"
        try:
            response = self._session().get(url, params={'key': self.api_key}, timeout=30)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Error listing models: {e}")
            raise ApiError(f"Could not list models: {e}", status_code=502) from e

        return response.json().get('models', [])

    def generate(self, request: GenerationRequest, model: Optional[str] = None) -> GenerationResult:
        """
        Generate blog content for a request.

        Args:
            request: Generation parameters
            model: Model name, defaults to the client's default model

        Returns:
            GenerationResult with content and token usage

        Raises:
            ApiError: On transport errors or an empty completion
        """
        model = model or self.default_model
        url = f"{API_BASE_URL}/models/{model}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": build_prompt(request)}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.maxTokens,
            },
        }

        logger.info(f"Generating {request.contentLength} {request.tone} content with {model}")
        try:
            response = self._session().post(
                url, params={'key': self.api_key}, json=body, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Content generation failed: {e}")
            raise ApiError(f"Content generation failed: {e}", status_code=502) from e

        result = response.json()
        text = _extract_text(result)
        if not text:
            raise ApiError("Model returned no content", status_code=502)

        usage = result.get('usageMetadata', {})
        return GenerationResult(
            prompt=request.prompt,
            generatedContent=text,
            model=model,
            tokens=TokenUsage(
                inputTokens=usage.get('promptTokenCount', 0),
                outputTokens=usage.get('candidatesTokenCount', 0)
            ),
            tone=request.tone,
            language=request.language,
            contentLength=request.contentLength,
            temperature=request.temperature,
            maxTokens=request.maxTokens
        )


def _extract_text(result: Dict[str, Any]) -> str:
    candidates = result.get('candidates') or []
    if not candidates:
        return ''
    parts = candidates[0].get('content', {}).get('parts', [])
    return ''.join(part.get('text', '') for part in parts)


def build_session(retries: int = 3, backoff_factor: float = 2.0) -> requests.Session:
    """
    Session for Gemini calls that retries rate limited and failed requests.

    POST is retried too: generateContent has no side effects on the API.
    """
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET", "POST"}),
        respect_retry_after_header=True
    ))
    session.mount("https://", adapter)
    return session
