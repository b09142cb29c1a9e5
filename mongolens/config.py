"""Settings loading from YAML files and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .llm import LLMConfig
from .strategies import DEFAULT_SAMPLE_SIZE


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or malformed."""


@dataclass(slots=True)
class Settings:
    """Everything an analysis run needs to know."""

    mongodb_uri: Optional[str] = None
    database_name: Optional[str] = None
    collections: Optional[list[str]] = None
    sample_size: int = DEFAULT_SAMPLE_SIZE
    artifact_dir: Path = Path("data")
    cache_dir: Optional[Path] = None
    llm: LLMConfig = field(default_factory=LLMConfig)
    models: dict[str, dict[str, Any]] = field(default_factory=dict)

    def require_uri(self) -> str:
        if not self.mongodb_uri:
            raise ConfigurationError("MongoDB connection string is not configured (set MONGODB_URI)")
        return self.mongodb_uri


def load_settings(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from an optional YAML file, then apply environment overrides."""

    environ = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    if path is not None:
        with Path(path).open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError("Settings file must be a mapping")
        data = loaded

    llm_data = data.get("llm") or {}
    if not isinstance(llm_data, dict):
        raise ValueError("'llm' settings must be a mapping")
    llm_config = LLMConfig(**llm_data)

    collections = data.get("collections")
    if collections is not None and not isinstance(collections, list):
        raise ValueError("'collections' must be a list of collection names")

    sample_size = int(data.get("sample_size", DEFAULT_SAMPLE_SIZE))
    if sample_size < 1:
        raise ValueError("'sample_size' must be at least 1")

    settings = Settings(
        mongodb_uri=data.get("mongodb_uri"),
        database_name=data.get("database_name"),
        collections=[str(name) for name in collections] if collections is not None else None,
        sample_size=sample_size,
        artifact_dir=Path(data.get("artifact_dir", "data")),
        cache_dir=Path(data["cache_dir"]) if data.get("cache_dir") else None,
        llm=llm_config,
        models=dict(data.get("models") or {}),
    )

    if environ.get("MONGODB_URI"):
        settings.mongodb_uri = environ["MONGODB_URI"]
    if environ.get("MONGOLENS_DATABASE"):
        settings.database_name = environ["MONGOLENS_DATABASE"]
    if environ.get("OPENAI_API_KEY"):
        settings.llm.api_key = environ["OPENAI_API_KEY"]
    if environ.get("MONGOLENS_LLM_ENDPOINT"):
        settings.llm.endpoint = environ["MONGOLENS_LLM_ENDPOINT"]
    if environ.get("MONGOLENS_LLM_MODEL"):
        settings.llm.model = environ["MONGOLENS_LLM_MODEL"]

    return settings
