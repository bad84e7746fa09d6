from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── AI Providers ──────────────────────────────────────────────────────────
    AI_PROVIDER: str = "hybrid"

    @field_validator("AI_PROVIDER")
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        allowed = {"hybrid", "groq", "gemini"}
        if v.lower() not in allowed:
            raise ValueError(f"AI_PROVIDER must be one of {allowed}, got '{v}'")
        return v.lower()

    # Groq (Llama 3 - High Speed)
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    # Google (Gemini - Complex Reasoning)
    GOOGLE_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_VISION_MODEL: str = "gemini-1.5-flash"

    # ── Limits ────────────────────────────────────────────────────────────────
    MAX_FILE_SIZE_MB: int = 20
    CHUNK_SIZE: int = 8000  # chars per chunk of study material
    AI_TIMEOUT_SECONDS: int = 300

    # ── Retry policy (seconds) ────────────────────────────────────────────────
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 10.0
    RETRY_BACKOFF_FACTOR: float = 2.0
    RETRY_QUEUE_CONCURRENCY: int = 3

    # ── Batch generation ──────────────────────────────────────────────────────
    GENERATION_BATCH_SIZE: int = 5
    GENERATION_MAX_RETRIES: int = 3
    GENERATION_RETRY_DELAY: float = 1.0
    GENERATION_POLL_INTERVAL: float = 1.0
    GENERATION_MAX_POLL_ATTEMPTS: int = 300
    GENERATION_DELAY_BETWEEN_BATCHES: float = 1.0

    @field_validator("GENERATION_BATCH_SIZE", "GENERATION_MAX_RETRIES", "GENERATION_MAX_POLL_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be at least 1, got {v}")
        return v

    # ── Core ──────────────────────────────────────────────────────────────────
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
