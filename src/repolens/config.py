"""repolens configuration loader.

Layers, highest priority first:
  1. Environment variables  (REPOLENS_SUMMARY_MODEL, REPOLENS_EMBEDDING_MODEL,
     REPOLENS_GITHUB_API_URL, LANGSMITH_TRACING, LANGSMITH_PROJECT)
  2. Per-project repolens.yaml
  3. Global ~/.repolens/config.yaml  (model defaults, never credentials)
  4. Dataclass defaults

Secrets never come from config files: the shared GitHub token is read from
GITHUB_TOKEN, model provider keys are read by LiteLLM from its usual env vars,
and the LangSmith key from LANGSMITH_API_KEY. YAML is parsed with safe_load.
"""

from __future__ import annotations

import os
import re
import warnings
from collections.abc import Iterator
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

_GLOBAL_CONFIG_PATH: Path = Path.home() / ".repolens" / "config.yaml"
_PROJECT_CONFIG_NAME: str = "repolens.yaml"

# Matches github_token, api-key, client_secret, password; not max_tokens.
_CREDENTIAL_RE: re.Pattern[str] = re.compile(
    r"(?:^|_)(?:token|secret)$|api[_\-]?key|passw(?:or)?d|credential",
    re.IGNORECASE,
)

DEFAULT_IGNORE_FILES: tuple[str, ...] = (
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
)


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class GitHubCfg:
    """GitHub API access (repolens.yaml: github:)."""

    api_url: str = "https://api.github.com"
    ignore_files: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_FILES))
    max_concurrency: int = 5


@dataclass
class SummaryCfg:
    """File and commit-diff summarization (repolens.yaml: summary:)."""

    model: str = "openai/gpt-4o-mini"
    max_chars: int = 10_000
    max_tokens: int = 500


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (repolens.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class IngestCfg:
    """Embedding pipeline batching (repolens.yaml: ingest:)."""

    batch_size: int = 5


@dataclass
class SyncCfg:
    """Commit sync (repolens.yaml: sync:)."""

    commits_per_branch: int = 10


@dataclass
class TasksCfg:
    """Background task queue for fire-and-forget refreshes (repolens.yaml: tasks:)."""

    max_pending: int = 16
    workers: int = 2


@dataclass
class TracingCfg:
    """Optional LangSmith tracing of model calls (repolens.yaml: tracing:)."""

    enabled: bool = False
    project: str = "repolens"


@dataclass
class RepolensConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    github: GitHubCfg = field(default_factory=GitHubCfg)
    summary: SummaryCfg = field(default_factory=SummaryCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    sync: SyncCfg = field(default_factory=SyncCfg)
    tasks: TasksCfg = field(default_factory=TasksCfg)
    tracing: TracingCfg = field(default_factory=TracingCfg)


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

_SECTIONS: dict[str, type] = {
    "github": GitHubCfg,
    "summary": SummaryCfg,
    "embedding": EmbeddingCfg,
    "ingest": IngestCfg,
    "sync": SyncCfg,
    "tasks": TasksCfg,
    "tracing": TracingCfg,
}

# (env var, section, key); applied as the last layer.
_ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("REPOLENS_SUMMARY_MODEL", "summary", "model"),
    ("REPOLENS_EMBEDDING_MODEL", "embedding", "model"),
    ("REPOLENS_GITHUB_API_URL", "github", "api_url"),
    ("LANGSMITH_TRACING", "tracing", "enabled"),
    ("LANGSMITH_PROJECT", "tracing", "project"),
)

_POSITIVE: tuple[str, ...] = (
    "github.max_concurrency",
    "summary.max_chars",
    "summary.max_tokens",
    "embedding.dimensions",
    "ingest.batch_size",
    "sync.commits_per_branch",
    "tasks.workers",
    "tasks.max_pending",
)


def _credential_keys(data: dict[str, Any], prefix: str = "") -> Iterator[str]:
    """Yield the dotted path of every credential-like key in *data*."""
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if _CREDENTIAL_RE.search(str(key)):
            yield dotted
        if isinstance(value, dict):
            yield from _credential_keys(value, f"{dotted}.")


def _read_layer(path: Path, *, allow_credentials: bool) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must contain a mapping of sections")

    if not allow_credentials:
        found = list(_credential_keys(data))
        if found:
            raise ConfigError(
                f"'{path}' must not hold credentials (found: {', '.join(found)}).\n"
                "  Set them as environment variables instead, e.g.\n"
                "    export GITHUB_TOKEN=<value>"
            )

    for section, body in data.items():
        if section not in _SECTIONS:
            warnings.warn(f"Unknown config section '{section}' in '{path}', ignored.", stacklevel=3)
        elif body is not None and not isinstance(body, dict):
            raise ConfigError(f"'{section}' in '{path}' must be a mapping")
    return data


def _env_layer() -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for var, section, key in _ENV_OVERRIDES:
        if value := os.environ.get(var):
            layer.setdefault(section, {})[key] = value
    return layer


def _merge(layers: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Merge section mappings; later layers win key by key."""
    merged: dict[str, dict[str, Any]] = {}
    for layer in layers:
        for section, body in layer.items():
            if section in _SECTIONS:
                merged.setdefault(section, {}).update(body or {})
    return merged


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _coerce(default: Any, value: Any, where: str) -> Any:
    try:
        if isinstance(default, bool):
            return _as_bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, list):
            if isinstance(value, str):
                return [value]
            if not isinstance(value, list):
                raise TypeError("expected a list")
            return [str(item) for item in value]
        return str(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{where}: cannot use {value!r} ({exc})") from exc


def _build(merged: dict[str, dict[str, Any]]) -> RepolensConfig:
    cfg = RepolensConfig()
    for section, body in merged.items():
        target = getattr(cfg, section)
        known = {f.name for f in fields(target)}
        for key, value in body.items():
            if key not in known:
                warnings.warn(f"Unknown config key '{section}.{key}', ignored.", stacklevel=3)
                continue
            setattr(target, key, _coerce(getattr(target, key), value, f"{section}.{key}"))
    cfg.github.api_url = cfg.github.api_url.rstrip("/")
    return cfg


def _validate(cfg: RepolensConfig) -> None:
    for dotted in _POSITIVE:
        section, key = dotted.split(".")
        value = getattr(getattr(cfg, section), key)
        if value < 1:
            raise ConfigError(f"{dotted} must be >= 1, got {value}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RepolensConfig:
    """Load and return a merged *RepolensConfig*.

    Layers, lowest first: defaults, the global file, ``repolens.yaml`` in
    *project_dir* (CWD by default), then environment variables.

    Raises:
        ConfigError: The global file holds credential-like keys, a value has
            the wrong type, or a numeric setting is below 1.
    """
    global_path = global_config_path or _GLOBAL_CONFIG_PATH
    project_path = (project_dir or Path.cwd()) / _PROJECT_CONFIG_NAME

    cfg = _build(_merge([
        _read_layer(global_path, allow_credentials=False),
        _read_layer(project_path, allow_credentials=True),
        _env_layer(),
    ]))
    _validate(cfg)
    return cfg


def shared_github_token() -> str | None:
    """Return the shared service-level GitHub token (GITHUB_TOKEN), if set."""
    return os.environ.get("GITHUB_TOKEN") or None


_GLOBAL_HEADER = """\
# repolens global configuration: model defaults shared by every project.
# Tokens and API keys are read from the environment, never from this file:
#   export GITHUB_TOKEN=ghp_...
#   export OPENAI_API_KEY=sk-...

"""


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Write the global config with model defaults unless it already exists.

    The directory is created 0o700 and the file 0o600.
    """
    target = global_config_path or _GLOBAL_CONFIG_PATH
    if target.exists():
        return target

    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    defaults = RepolensConfig()
    body = yaml.safe_dump(
        {"summary": asdict(defaults.summary), "embedding": asdict(defaults.embedding)},
        sort_keys=False,
    )
    target.write_text(_GLOBAL_HEADER + body, encoding="utf-8")
    target.chmod(0o600)
    return target
