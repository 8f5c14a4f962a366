# backend/app/config.py

from pydantic import BaseModel, Field
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseModel):
    # Generation backend (LiteLLM → Ollama)
    LLM_PROVIDER: str = Field(default=os.getenv("LLM_PROVIDER", "ollama"))
    LLM_API_KEY: str = Field(default=os.getenv("LLM_API_KEY", "ollama"))
    LLM_BASE_URL: str = Field(default=os.getenv("LLM_BASE_URL", "http://localhost:11434"))
    #LLM_BASE_URL: str = Field(default=os.getenv("LLM_BASE_URL", "http://host.docker.internal:11434"))
    LLM_MODEL_NAME: str = Field(default=os.getenv("LLM_MODEL_NAME", "llama3.2"))
    LLM_TEMPERATURE: float = Field(default=float(os.getenv("LLM_TEMPERATURE", "0.7")))
    LLM_TOP_P: float = Field(default=float(os.getenv("LLM_TOP_P", "0.9")))
    # Output token cap (num_predict for ollama)
    LLM_MAX_TOKENS: int = Field(default=int(os.getenv("LLM_MAX_TOKENS", "4096")))
    # Request timeout in seconds for LiteLLM → Ollama
    LLM_REQUEST_TIMEOUT: int = Field(default=int(os.getenv("LLM_REQUEST_TIMEOUT", "300")))  # For slower models

    # Warmup
    WARMUP_ENABLED: bool = Field(default=os.getenv("WARMUP_ENABLED", "true").lower() == "true")
    WARMUP_PROMPT: str = Field(default=os.getenv("WARMUP_PROMPT", "Warm up. Reply with OK."))

    # Celery/Redis
    REDIS_URL: str = Field(default=os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    JOB_KEY_PREFIX: str = Field(default=os.getenv("JOB_KEY_PREFIX", "cover_letter:job:"))
    CELERY_SOFT_TIME_LIMIT: int = Field(default=int(os.getenv("CELERY_SOFT_TIME_LIMIT", "600")))  #10 min
    CELERY_HARD_TIME_LIMIT: int = Field(default=int(os.getenv("CELERY_HARD_TIME_LIMIT", "660")))  # soft + buffer
    JOB_MAX_ATTEMPTS: int = Field(default=int(os.getenv("JOB_MAX_ATTEMPTS", "3")))
    JOB_RETRY_BACKOFF: int = Field(default=int(os.getenv("JOB_RETRY_BACKOFF", "2")))  # seconds, doubled per retry
    JOB_RETRY_BACKOFF_MAX: int = Field(default=int(os.getenv("JOB_RETRY_BACKOFF_MAX", "60")))
    WORKER_CONCURRENCY: int = Field(default=int(os.getenv("WORKER_CONCURRENCY", "2")))

    # Files
    UPLOAD_DIR: str = Field(default=os.getenv("UPLOAD_DIR", "uploads"))
    OUTPUT_DIR: str = Field(default=os.getenv("OUTPUT_DIR", "out"))
    MAX_UPLOAD_BYTES: int = Field(default=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))))

    # Timeouts for the outbound job fetch and the PDF renderer
    FETCH_TIMEOUT: float = Field(default=float(os.getenv("FETCH_TIMEOUT", "25")))
    RENDER_TIMEOUT: float = Field(default=float(os.getenv("RENDER_TIMEOUT", "60")))

    # Prompt section limits (characters kept from the start of each section)
    PROMPT_MAX_CV_CHARS: int = Field(default=int(os.getenv("PROMPT_MAX_CV_CHARS", "12000")))
    PROMPT_MAX_JOB_CHARS: int = Field(default=int(os.getenv("PROMPT_MAX_JOB_CHARS", "8000")))


    def full_model_id(self) -> str:
        """
        Return provider-prefixed model id for LiteLLM, e.g.:
        - 'ollama/llama3.2'
        - 'ollama/qwen3'
        - 'openai/gpt-4o-mini'
        """
        provider = self.LLM_PROVIDER.strip().lower()
        # If already prefixed, keep as is
        if "/" in self.LLM_MODEL_NAME:
            return self.LLM_MODEL_NAME
        return f"{provider}/{self.LLM_MODEL_NAME}"


settings = Settings()
