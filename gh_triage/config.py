"""Project configuration: JSON config file, environment and .env."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

CONFIG_FILENAME = "gh-triage.json"
DEFAULT_MODEL = "openai:gpt-4o-mini"


def validate_model_string(model: str) -> tuple[str, str]:
    """Validate and parse a model string.

    Args:
        model: Model identifier (e.g., 'openai:gpt-4o-mini')

    Returns:
        Tuple of (provider, model_name)

    Raises:
        ValueError: If model string format is invalid
    """
    provider, sep, name = model.partition(":")
    if not sep:
        raise ValueError(
            f"Invalid model format '{model}'. Expected format: provider:model "
            "(e.g. openai:gpt-4o-mini, anthropic:claude-3-5-sonnet-latest)"
        )
    if not provider or not name:
        raise ValueError(
            f"Invalid model format '{model}'. Both provider and model name must be "
            "non-empty."
        )
    return provider.lower(), name


class GitHubSettings(BaseModel):
    owner: str | None = None
    repo: str | None = None
    token: str | None = None


class LLMSettings(BaseModel):
    model: str = DEFAULT_MODEL
    retries: int = Field(default=2, ge=0)

    @field_validator("model")
    @classmethod
    def _check_model(cls, value: str) -> str:
        validate_model_string(value)
        return value


class StoreSettings(BaseModel):
    path: str = ".issue-store"


class SyncSettings(BaseModel):
    include_closed: bool = False
    digest_batch_size: int = Field(default=20, gt=0)
    labels_batch_size: int = Field(default=20, gt=0)
    priority_batch_size: int = Field(default=20, gt=0)
    quality_batch_size: int = Field(default=20, gt=0)
    missing_info_batch_size: int = Field(default=15, gt=0)
    recurring_batch_size: int = Field(default=15, gt=0)
    stale_batch_size: int = Field(default=20, gt=0)
    needs_response_batch_size: int = Field(default=15, gt=0)
    duplicates_batch_size: int = Field(default=30, gt=0)
    done_batch_size: int = Field(default=10, gt=0)
    security_batch_size: int = Field(default=20, gt=0)
    good_first_issue_batch_size: int = Field(default=20, gt=0)
    min_duplicate_confidence: float = Field(default=0.8, ge=0, le=1)
    min_done_confidence: float = Field(default=0.7, ge=0, le=1)
    min_security_confidence: float = Field(default=0.7, ge=0, le=1)
    stale_days_threshold: int = Field(default=90, ge=0)
    stale_close_days: int = Field(default=14, ge=0)


class Settings(BaseModel):
    """Complete runtime configuration."""

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)


def load_settings(config_file: str | Path | None = None) -> Settings:
    """Build settings from the config file and environment.

    Values in ``.env`` are loaded into the environment first. The JSON
    config file is optional; ``GITHUB_TOKEN`` and ``GH_TRIAGE_MODEL``
    override whatever it contains.

    Args:
        config_file: Path to a JSON config file. Defaults to
            ``gh-triage.json`` in the working directory.

    Returns:
        Validated settings

    Raises:
        ConfigError: If the file cannot be read or does not validate
    """
    load_dotenv()

    path = Path(config_file) if config_file is not None else Path(CONFIG_FILENAME)
    data: dict = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
    elif config_file is not None:
        raise ConfigError(f"Config file not found: {path}")

    token = os.getenv("GITHUB_TOKEN")
    if token:
        data.setdefault("github", {})["token"] = token
    model = os.getenv("GH_TRIAGE_MODEL")
    if model:
        data.setdefault("llm", {})["model"] = model

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
