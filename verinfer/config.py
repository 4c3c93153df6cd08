"""
Verified Inference Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Versioning ---
    VERSION: str = "1.0.0"
    ENGINE_VERSION: str = "1.0.0"

    # --- LLM Provider ---
    LLM_PROVIDER: str = os.getenv("VERINFER_LLM_PROVIDER", "anthropic")
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-latest")
    MAX_TOKENS: int = int(os.getenv("VERINFER_MAX_TOKENS", "4096"))
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    # --- Storage ---
    DB_PATH: str = os.getenv("VERINFER_DB_PATH", "verinfer.db")

    # --- Verification ---
    DEFAULT_CONFIDENCE: float = float(
        os.getenv("VERINFER_DEFAULT_CONFIDENCE", "0.7")
    )

    # --- Server ---
    HOST: str = os.getenv("VERINFER_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("VERINFER_PORT", "8000"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("VERINFER_CORS_ORIGINS", "http://localhost:5173")


settings = Settings()
