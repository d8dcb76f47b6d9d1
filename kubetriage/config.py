"""kubetriage configuration: constants and the YAML settings file."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from kubetriage import __app_name__, __version__
from kubetriage.errors import ConfigurationError
from kubetriage.models import ProviderConfig

logger = logging.getLogger(__name__)

APP_NAME: str = __app_name__
VERSION: str = __version__

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_PATH: Path = Path.home() / f".{APP_NAME}.yaml"
CONFIG_ENV_VAR: str = "KUBETRIAGE_CONFIG"
AI_KEY_ENV_VAR: str = "KUBETRIAGE_AI_KEY"

DEFAULT_MAX_CONCURRENCY: int = 10
DEFAULT_LANGUAGE: str = "english"
DEFAULT_BACKEND: str = "openai"
DEFAULT_CACHE_PATH: Path = Path.home() / f".{APP_NAME}" / "cache.json"
DEFAULT_S3_PREFIX: str = f"{APP_NAME}/"

# Prompt sent to every provider.  ``{language}`` and ``{problem}`` are filled
# in by the explanation stage.
PROMPT_TEMPLATE: str = (
    "Simplify the following Kubernetes error message delimited by triple dashes "
    "written in --- {language} --- language; --- {problem} ---.\n"
    "Provide the most possible solution in a step by step style in no more than "
    "280 characters. Write the output in the following format:\n"
    "Error: {{Explain error here}}\n"
    "Solution: {{Step by step solution here}}"
)

# Interactive follow-up question about a rendered report.
FOLLOW_UP_TEMPLATE: str = "Given the context {context} {query}"


# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


@dataclass
class CacheSettings:
    """Which explanation cache backend to use and where it lives."""

    type: str = "file"
    path: str = str(DEFAULT_CACHE_PATH)
    bucket: str = ""
    region: str = ""
    prefix: str = DEFAULT_S3_PREFIX

    def to_dict(self) -> dict:
        data = {"type": self.type}
        if self.type == "s3":
            data.update(bucket=self.bucket, region=self.region, prefix=self.prefix)
        else:
            data["path"] = self.path
        return data


@dataclass
class Settings:
    """Everything read from the settings file.

    Attributes:
        providers: Configured AI backends, one per name.
        default_provider: Backend used when ``--backend`` is not given.
        cache: Explanation cache backend settings.
        active_filters: Analyzer kinds enabled when ``--filter`` is not given.
            Empty means every core analyzer.
        path: File the settings were loaded from (and are saved to).
    """

    providers: list[ProviderConfig] = field(default_factory=list)
    default_provider: str = DEFAULT_BACKEND
    cache: CacheSettings = field(default_factory=CacheSettings)
    active_filters: list[str] = field(default_factory=list)
    path: Path = DEFAULT_CONFIG_PATH

    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    def upsert_provider(self, provider: ProviderConfig) -> None:
        """Add *provider*, replacing any existing entry with the same name."""
        self.providers = [p for p in self.providers if p.name != provider.name]
        self.providers.append(provider)

    def remove_provider(self, name: str) -> None:
        """Remove the provider called *name*.

        Raises:
            ConfigurationError: If no provider has that name.
        """
        if name not in self.provider_names():
            raise ConfigurationError(f"AI provider {name!r} is not configured")
        self.providers = [p for p in self.providers if p.name != name]

    def to_dict(self) -> dict:
        return {
            "ai": {
                "default": self.default_provider,
                "providers": [provider.to_dict() for provider in self.providers],
            },
            "cache": self.cache.to_dict(),
            "active_filters": list(self.active_filters),
        }


# ---------------------------------------------------------------------------
# Loading & saving
# ---------------------------------------------------------------------------


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Pick the settings file: explicit path, then env var, then default."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def _parse_provider(raw: object) -> ProviderConfig:
    if not isinstance(raw, dict) or not raw.get("name"):
        raise ConfigurationError("every ai.providers entry needs a 'name'")
    return ProviderConfig(
        name=str(raw["name"]),
        credential=str(raw.get("credential") or ""),
        model=str(raw.get("model") or ""),
        target_language=str(raw.get("target_language") or DEFAULT_LANGUAGE),
        base_url=raw.get("base_url") or None,
    )


def _parse_cache(raw: object) -> CacheSettings:
    if raw is None:
        return CacheSettings()
    if not isinstance(raw, dict):
        raise ConfigurationError("'cache' must be a mapping")
    settings = CacheSettings(
        type=str(raw.get("type", "file")),
        path=str(raw.get("path") or DEFAULT_CACHE_PATH),
        bucket=str(raw.get("bucket") or ""),
        region=str(raw.get("region") or ""),
        prefix=str(raw.get("prefix") or DEFAULT_S3_PREFIX),
    )
    if settings.type == "s3" and not settings.bucket:
        raise ConfigurationError("the s3 cache backend needs a 'bucket'")
    return settings


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from *path* (see :func:`resolve_config_path`).

    A missing file yields default settings.

    Raises:
        ConfigurationError: If the file is unreadable, is not valid YAML,
            or has the wrong shape.
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        logger.debug("No settings file at %s, using defaults", config_path)
        return Settings(path=config_path)

    try:
        with open(config_path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read settings file {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Settings file {config_path} must contain a mapping")

    ai = raw.get("ai") or {}
    if not isinstance(ai, dict):
        raise ConfigurationError("'ai' must be a mapping")
    filters = raw.get("active_filters") or []
    if not isinstance(filters, list):
        raise ConfigurationError("'active_filters' must be a list")

    return Settings(
        providers=[_parse_provider(p) for p in ai.get("providers") or []],
        default_provider=str(ai.get("default") or DEFAULT_BACKEND),
        cache=_parse_cache(raw.get("cache")),
        active_filters=[str(f) for f in filters],
        path=config_path,
    )


def save_settings(settings: Settings) -> None:
    """Write *settings* back to ``settings.path`` with owner-only permissions."""
    settings.path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(settings.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        yaml.safe_dump(settings.to_dict(), fh, sort_keys=False)
