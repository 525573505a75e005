"""Configuration management for Primpact."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from primpact.scm.base import SourceControl
    from primpact.store import PrimpactStore

logger = logging.getLogger("primpact.config")

PRIMPACT_DIR = ".primpact"
CONFIG_FILE = "config.json"
STORE_DB_FILE = "primpact.db"
IMPACT_MAP_FILE = "impact-map.config.json"


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "anthropic"
    model: str = ""
    api_key_env: str = ""
    max_tokens: int = 8192
    temperature: float = 0.0
    base_url: str | None = None
    max_retries: int = 2
    overload_retry_delays: list[float] = Field(default_factory=lambda: [10.0, 20.0])

    @property
    def api_key(self) -> str | None:
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        # Try common env vars
        env_map = {
            "openai": "OPENAI_API_KEY",
            "anthropic": "ANTHROPIC_API_KEY",
            "claude": "ANTHROPIC_API_KEY",
        }
        env_var = env_map.get(self.provider, "")
        return os.environ.get(env_var)


class GitHubConfig(BaseModel):
    """GitHub API access configuration."""

    token_env: str = "GITHUB_TOKEN"
    api_url: str = "https://api.github.com"
    timeout: float = 30.0

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env)


class IndexerConfig(BaseModel):
    """Codebase indexer configuration."""

    max_modules: int = 30
    batch_size: int = 10
    max_file_size: int = 1_000_000
    path_alias: str = "@/"


class AnalysisConfig(BaseModel):
    """Limits applied when building AI prompts."""

    max_scenarios: int = 15
    max_review_items: int = 20
    max_diff_chars: int = 50_000
    max_context_lines: int = 3


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    llm: LLMConfig = Field(default_factory=LLMConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)


# ---------------------------------------------------------------------------
# Impact map
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeatureMapping(_CamelModel):
    """Glob patterns that belong to one named feature."""

    description: str = ""
    paths: list[str] = Field(default_factory=list)
    related_features: list[str] = Field(default_factory=list)


class ImpactMapConfig(_CamelModel):
    """User-authored mapping of path globs to features, services and pages."""

    features: dict[str, FeatureMapping] = Field(default_factory=dict)
    services: dict[str, list[str]] = Field(default_factory=dict)
    pages: dict[str, list[str]] = Field(default_factory=dict)
    ignore_patterns: list[str] = Field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), indent=2)


DEFAULT_IGNORE_PATTERNS = [
    "**/*.test.ts",
    "**/*.spec.ts",
    "**/*.md",
    "**/.env*",
    "**/node_modules/**",
    "**/dist/**",
    "**/*.lock",
]


def default_impact_map() -> ImpactMapConfig:
    """Built-in fallback: no mappings, only the common ignore patterns."""
    return ImpactMapConfig(ignore_patterns=list(DEFAULT_IGNORE_PATTERNS))


class ResolvedConfig(BaseModel):
    """An impact map plus the layer it was read from."""

    config: ImpactMapConfig
    source: Literal["repo", "database", "default", "file"]


def parse_impact_map(text: str | bytes) -> ImpactMapConfig:
    """Parse impact-map JSON, raising ConfigError on bad input."""
    from primpact.exceptions import ConfigError

    try:
        return ImpactMapConfig.model_validate_json(text)
    except ValidationError as e:
        raise ConfigError(f"Invalid impact map: {e.error_count()} validation error(s)") from e


def load_impact_map(path: Path) -> ImpactMapConfig:
    """Load an impact map from a JSON file on disk."""
    return parse_impact_map(Path(path).read_text())


async def resolve_impact_map(
    source: SourceControl | None,
    store: PrimpactStore | None = None,
    user_id: str = "local",
) -> ResolvedConfig:
    """Resolve the impact map for a repository.

    Layers, first hit wins:
      1. ``impact-map.config.json`` committed at the repository root
      2. An override stored for (user, repository)
      3. The built-in default
    """
    from primpact.exceptions import PrimpactError

    if source is not None:
        try:
            content = await source.get_file_content(IMPACT_MAP_FILE)
            return ResolvedConfig(config=parse_impact_map(content), source="repo")
        except PrimpactError as e:
            logger.debug("No usable %s in %s: %s", IMPACT_MAP_FILE, source.full_name, e)

    if store is not None and source is not None:
        try:
            override = store.get_impact_map(user_id, source.full_name)
        except (PrimpactError, sqlite3.Error) as e:
            logger.debug("Stored impact map unavailable for %s: %s", source.full_name, e)
            override = None
        if override is not None:
            return ResolvedConfig(config=override, source="database")

    return ResolvedConfig(config=default_impact_map(), source="default")


# ---------------------------------------------------------------------------
# Project config on disk
# ---------------------------------------------------------------------------


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .primpact directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / PRIMPACT_DIR).is_dir():
            return current
        current = current.parent
    if (current / PRIMPACT_DIR).is_dir():
        return current
    return None


def get_primpact_dir(root: Path) -> Path:
    """Get the .primpact directory for a project root."""
    return root / PRIMPACT_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .primpact/config.json."""
    config_path = get_primpact_dir(root) / CONFIG_FILE
    if config_path.exists():
        data = json.loads(config_path.read_text())
        return ProjectConfig(**data)
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .primpact/config.json."""
    pp_dir = get_primpact_dir(root)
    pp_dir.mkdir(parents=True, exist_ok=True)
    config_path = pp_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'llm.provider')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    return ProjectConfig(**data)
