"""
Provider and processing settings for the matching pipeline
"""
import os
from enum import Enum
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from talent_match.utils.exceptions import ConfigurationError

load_dotenv()

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_SAMBANOVA_MODEL = "Meta-Llama-3.1-405B-Instruct"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes")


class Provider(str, Enum):
    """Available completion providers"""
    OPENAI = "openai"
    SAMBANOVA = "sambanova"


class CompletionSettings(BaseModel):
    """Text completion provider configuration"""
    use_openai: bool = Field(default=True, description="Use the OpenAI provider; otherwise SambaNova")
    api_key: Optional[str] = Field(default=None, description="Provider API key")
    base_url: Optional[str] = Field(default=None, description="Provider base URL (required for SambaNova)")
    model: Optional[str] = Field(default=None, description="Model name; provider default when empty")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0, description="Generation temperature")
    timeout: float = Field(default=120.0, gt=0, le=600, description="Request timeout in seconds")

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        if v is None:
            return v
        v = v.strip().rstrip("/")
        return v or None

    @property
    def provider(self) -> Provider:
        return Provider.OPENAI if self.use_openai else Provider.SAMBANOVA

    @property
    def model_name(self) -> str:
        if self.model:
            return self.model
        return DEFAULT_OPENAI_MODEL if self.use_openai else DEFAULT_SAMBANOVA_MODEL

    @classmethod
    def from_options(cls, options: Dict[str, Any]) -> "CompletionSettings":
        """Build settings from {apiKey, baseURL, model, temperature, useOpenAI} style options"""
        aliases = {
            "apiKey": "api_key",
            "baseURL": "base_url",
            "useOpenAI": "use_openai",
        }
        data = {aliases.get(k, k): v for k, v in (options or {}).items() if v is not None}
        return cls(**data)

    @classmethod
    def from_env(cls) -> "CompletionSettings":
        # LLM_PROVIDER wins over USE_OPENAI when both are set
        provider = os.getenv("LLM_PROVIDER")
        if provider:
            try:
                use_openai = Provider(provider.strip().lower()) is Provider.OPENAI
            except ValueError as e:
                raise ConfigurationError(
                    f"Unknown completion provider: {provider}", config_key="LLM_PROVIDER", cause=e
                ) from e
        else:
            use_openai = _env_flag("USE_OPENAI", "true")

        if use_openai:
            return cls(
                use_openai=True,
                api_key=os.getenv("OPENAI_API_KEY"),
                base_url=os.getenv("OPENAI_BASE_URL"),
                model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
                temperature=float(os.getenv("LLM_TEMPERATURE", "0")),
                timeout=float(os.getenv("LLM_TIMEOUT", "120")),
            )
        return cls(
            use_openai=False,
            api_key=os.getenv("SAMBANOVA_API_KEY"),
            base_url=os.getenv("SAMBANOVA_BASE_URL"),
            model=os.getenv("SAMBANOVA_MODEL", DEFAULT_SAMBANOVA_MODEL),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0")),
            timeout=float(os.getenv("LLM_TIMEOUT", "120")),
        )


class ProcessingSettings(BaseModel):
    """Concurrency and retry configuration"""
    max_concurrent: int = Field(default=5, ge=1, le=50, description="Maximum in-flight completion requests")
    retry_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per profile / facet comparison")
    retry_delay: float = Field(default=1.0, ge=0.0, le=60.0, description="Base backoff between retries in seconds")

    @classmethod
    def from_env(cls) -> "ProcessingSettings":
        return cls(
            max_concurrent=int(os.getenv("MAX_CONCURRENT", "5")),
            retry_attempts=int(os.getenv("RETRY_ATTEMPTS", "3")),
            retry_delay=float(os.getenv("RETRY_DELAY", "1.0")),
        )


def report_dir_from_env() -> str:
    return os.getenv("REPORT_DIR", "./reports")
