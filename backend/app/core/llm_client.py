# backend/app/core/llm_client.py

import logging
from typing import Optional

import litellm

from backend.app.config import Settings, settings as default_settings
from backend.app.core.errors import GenerationBackendError
from backend.app.models.job_models import GenerationRequest, RawGenerationOutput

logger = logging.getLogger(__name__)


class GenerationClient:
    """Single-shot text completion against the configured backend. No internal retries."""

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.model_id = self.settings.full_model_id()

    def build_request(self, prompt: str) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            temperature=self.settings.LLM_TEMPERATURE,
            top_p=self.settings.LLM_TOP_P,
            max_tokens=self.settings.LLM_MAX_TOKENS,
        )

    def complete(self, request: GenerationRequest) -> RawGenerationOutput:
        logger.info("Calling generation backend model_id=%s prompt_chars=%d", self.model_id, len(request.prompt))
        try:
            # For the ollama provider LiteLLM posts to /api/generate with
            # options {temperature, top_p, num_predict} and stream=false.
            resp = litellm.completion(
                model=self.model_id,
                api_base=self.settings.LLM_BASE_URL,
                api_key=self.settings.LLM_API_KEY,
                timeout=self.settings.LLM_REQUEST_TIMEOUT,
                messages=[{"role": "user", "content": request.prompt}],
                temperature=request.temperature,
                top_p=request.top_p,
                max_tokens=request.max_tokens,
                stop=request.stop_sequences or None,
                stream=False,
            )
        except Exception as exc:
            raise GenerationBackendError(f"Generation backend call failed: {exc}") from exc

        text = self._content(resp)
        logger.info("Generation backend returned %d chars", len(text))
        return RawGenerationOutput(text=text)

    @staticmethod
    def _content(resp) -> str:
        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            raise GenerationBackendError("Generation backend returned an unexpected payload") from exc
        return content or ""
