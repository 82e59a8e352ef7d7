"""Configuration management for sightline.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/sightline.yaml")
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class CaptureConfig(BaseModel):
    provider: Literal["simulated", "monitor", "webcam"] = Field(default="simulated")
    capture_interval: float = Field(default=2.0, gt=0, description="Seconds between samples of one session")
    max_webcam_devices: int = Field(default=4, gt=0)
    resolution_width: int | None = Field(default=None)
    resolution_height: int | None = Field(default=None)


class InferenceConfig(BaseModel):
    provider: Literal["simulated", "openai"] = Field(default="simulated")
    model: str = Field(default="gpt-4o")
    base_url: str | None = Field(default=None)
    max_tokens: int = Field(default=512, gt=0)
    analysis_prompt_override: str | None = Field(default=None)
    chat_prompt_override: str | None = Field(default=None)
    simulated_analysis_delay: float = Field(default=0.5, ge=0)
    simulated_reply_delay: float = Field(default=1.0, ge=0)
    chat_context_messages: int = Field(default=20, ge=0)


class EndpointConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the sightline system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "SIGHTLINE_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openrouter_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def inference_credentials(self) -> tuple[str, str | None]:
        """Resolve the API key and base URL for the OpenAI-compatible provider.

        An OpenRouter key takes precedence and implies the OpenRouter base
        URL unless one is configured explicitly.
        """
        api_key = self.openai_api_key.get_secret_value()
        base_url = self.inference.base_url
        or_key = self.openrouter_api_key.get_secret_value()
        if or_key:
            api_key = or_key
            if not base_url:
                base_url = OPENROUTER_BASE_URL
        return api_key, base_url


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    or_key = os.environ.get("OPENROUTER_API_KEY", "")
    or_base_url = os.environ.get("OPENROUTER_BASE_URL", "")
    vision_model = os.environ.get("VISION_MODEL", "")

    if or_key:
        yaml_data["openrouter_api_key"] = or_key

    if "inference" not in yaml_data:
        yaml_data["inference"] = {}

    if or_key and not yaml_data["inference"].get("provider"):
        yaml_data["inference"]["provider"] = "openai"

    if or_base_url and not yaml_data["inference"].get("base_url"):
        yaml_data["inference"]["base_url"] = or_base_url

    if vision_model and not yaml_data["inference"].get("model"):
        yaml_data["inference"]["model"] = vision_model
