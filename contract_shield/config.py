"""
Application configuration loaded from environment variables (.env supported).
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load .env before any os.getenv reads below
load_dotenv()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class Config:
    """Runtime settings. Build with `Config.from_env()`; override fields in tests."""
    data_dir: str = './data'
    openai_model: str = 'gpt-4o-mini'
    default_credential: Optional[str] = None
    llm_timeout: int = 60
    llm_max_tokens: int = 8192
    llm_max_input_chars: int = 50_000
    free_reviews_per_month: int = 3
    max_stored_analyses: int = 50
    secret_key: str = field(default='dev-secret-key', repr=False)
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        return cls(
            data_dir=os.getenv('CONTRACT_SHIELD_DATA_DIR', './data'),
            openai_model=os.getenv('OPENAI_MODEL', 'gpt-4o-mini'),
            default_credential=os.getenv('OPENAI_API_KEY') or None,
            llm_timeout=_int_env('LLM_TIMEOUT', 60),
            llm_max_tokens=_int_env('LLM_MAX_TOKENS', 8192),
            llm_max_input_chars=_int_env('LLM_MAX_INPUT_CHARS', 50_000),
            free_reviews_per_month=_int_env('FREE_REVIEWS_PER_MONTH', 3),
            max_stored_analyses=_int_env('MAX_STORED_ANALYSES', 50),
            secret_key=os.getenv('SECRET_KEY', 'dev-secret-key'),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        )
