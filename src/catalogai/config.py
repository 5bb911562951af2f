"""Configuration loading for catalogai.

Settings live in the [tool.catalogai.ai] table of the nearest pyproject.toml.
Environment variables (optionally from .env files) override file values:

    CATALOGAI_AI_ENABLED      enable/disable AI analysis
    CATALOGAI_AI_PROVIDER     preferred provider name, or "auto"
    CATALOGAI_AI_TIMEOUT      per-invocation timeout in seconds (all providers)
    CATALOGAI_CACHE_ENABLED   enable/disable the result cache
    CATALOGAI_CACHE_TTL       cache TTL in seconds
    CATALOGAI_CACHE_DIR       directory for persisted cache entries

Malformed values are logged and replaced by defaults; loading never fails.

catalogai/src/catalogai/config.py
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .models import AnalysisType

if sys.version_info >= (3, 11):

    import tomllib
else:

    try:

        import tomli as tomllib
    except ImportError as e:

        raise ImportError(
            "catalogai requires Python 3.11+ or the 'tomli' package "
            "to parse pyproject.toml on Python 3.10. "
            "Hint: Try running: pip install tomli"
        ) from e

logger = logging.getLogger(__name__)

__all__ = [
    "ProviderConfig",
    "CacheConfig",
    "FallbackConfig",
    "ChunkingSettings",
    "AIConfig",
    "KNOWN_PROVIDERS",
    "find_project_root",
    "load_env_files",
    "load_toml_config",
    "apply_env_overrides",
    "load_config",
]

KNOWN_PROVIDERS = ("claude", "gemini", "codex")
AUTO_PROVIDER = "auto"

DEFAULT_CACHE_TTL = 3600.0
DEFAULT_CACHE_MAX_ENTRIES = 500
DEFAULT_CHUNK_THRESHOLD = 50
DEFAULT_CHUNK_SIZE = 20


@dataclass
class ProviderConfig:
    """Per-provider settings. ``None`` means use the provider's default."""

    enabled: bool = True
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    timeout: Optional[float] = None
    max_retries: Optional[int] = None
    custom_args: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_retries is not None and self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")


@dataclass
class CacheConfig:
    enabled: bool = True
    ttl: float = DEFAULT_CACHE_TTL  # seconds
    max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    persist: bool = False
    cache_dir: Optional[Path] = None

    def __post_init__(self):
        if self.ttl <= 0:
            raise ValueError("cache ttl must be positive")
        if self.max_entries < 1:
            raise ValueError("cache max_entries must be at least 1")
        if self.cache_dir is not None:
            self.cache_dir = Path(self.cache_dir).expanduser()


@dataclass
class FallbackConfig:
    enabled: bool = True
    use_rule_engine: bool = True


@dataclass
class ChunkingSettings:
    enabled: bool = True
    threshold: int = DEFAULT_CHUNK_THRESHOLD
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_concurrency: int = 1

    def __post_init__(self):
        if self.threshold < 1 or self.chunk_size < 1 or self.max_concurrency < 1:
            raise ValueError("chunking threshold, chunk_size and max_concurrency must be at least 1")


def _default_providers() -> Dict[str, ProviderConfig]:
    return {name: ProviderConfig() for name in KNOWN_PROVIDERS}


@dataclass
class AIConfig:
    """Typed AI analysis configuration."""

    enabled: bool = True
    preferred_provider: str = AUTO_PROVIDER
    providers: Dict[str, ProviderConfig] = field(default_factory=_default_providers)
    analysis_types: List[AnalysisType] = field(default_factory=lambda: list(AnalysisType))
    cache: CacheConfig = field(default_factory=CacheConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    chunking: ChunkingSettings = field(default_factory=ChunkingSettings)

    def provider_config(self, name: str) -> ProviderConfig:
        return self.providers.get(name) or ProviderConfig()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AIConfig":
        """Build from a raw [tool.catalogai.ai] table, tolerating bad input."""
        if not data:
            return cls()
        if not isinstance(data, dict):
            logger.warning("[tool.catalogai.ai] is not a table; using defaults")
            return cls()

        config = cls()
        known = {"enabled", "preferred_provider", "providers", "analysis_types", "cache", "fallback", "chunking"}
        for key in data:
            if _normalize_key(key) not in known:
                logger.warning(f"Ignoring unknown configuration key [tool.catalogai.ai].{key}")

        raw = {_normalize_key(k): v for k, v in data.items()}
        config.enabled = _typed(raw, "enabled", bool, config.enabled, "ai")
        preferred = _typed(raw, "preferred_provider", str, config.preferred_provider, "ai")
        if preferred != AUTO_PROVIDER and preferred not in KNOWN_PROVIDERS:
            logger.warning(f"Unknown preferred_provider '{preferred}'; using automatic selection")
            preferred = AUTO_PROVIDER
        config.preferred_provider = preferred

        config.providers = _parse_providers(raw.get("providers"))
        config.analysis_types = _parse_analysis_types(raw.get("analysis_types"), config.analysis_types)
        config.cache = _build_section(CacheConfig, raw.get("cache"), "cache")
        config.fallback = _build_section(FallbackConfig, raw.get("fallback"), "fallback")
        config.chunking = _build_section(ChunkingSettings, raw.get("chunking"), "chunking")
        return config


# Expected value types per section field
_SECTION_TYPES: Dict[type, Dict[str, tuple]] = {
    ProviderConfig: {
        "enabled": (bool,),
        "model": (str,),
        "max_tokens": (int,),
        "timeout": (int, float),
        "max_retries": (int,),
        "custom_args": (list,),
    },
    CacheConfig: {
        "enabled": (bool,),
        "ttl": (int, float),
        "max_entries": (int,),
        "persist": (bool,),
        "cache_dir": (str,),
    },
    FallbackConfig: {"enabled": (bool,), "use_rule_engine": (bool,)},
    ChunkingSettings: {
        "enabled": (bool,),
        "threshold": (int,),
        "chunk_size": (int,),
        "max_concurrency": (int,),
    },
}


def _normalize_key(key: str) -> str:
    return str(key).replace("-", "_")


def _is_instance(value: Any, expected: tuple) -> bool:
    # bool is a subclass of int; only accept it where bool is expected
    if isinstance(value, bool) and bool not in expected:
        return False
    return isinstance(value, expected)


def _typed(raw: Dict[str, Any], key: str, expected, default: Any, section: str) -> Any:
    if key not in raw:
        return default
    expected = expected if isinstance(expected, tuple) else (expected,)
    value = raw[key]
    if not _is_instance(value, expected):
        logger.warning(f"Invalid value for {section}.{key}: {value!r}; using default {default!r}")
        return default
    return value


def _build_section(cls, raw: Any, section: str):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        logger.warning(f"[tool.catalogai.ai.{section}] is not a table; using defaults")
        return cls()

    types = _SECTION_TYPES[cls]
    kwargs = {}
    for key, value in raw.items():
        name = _normalize_key(key)
        if name not in types:
            logger.warning(f"Ignoring unknown configuration key {section}.{key}")
            continue
        if not _is_instance(value, types[name]):
            logger.warning(f"Invalid value for {section}.{key}: {value!r}; using default")
            continue
        if name == "custom_args":
            value = [str(arg) for arg in value]
        kwargs[name] = value

    try:
        return cls(**kwargs)
    except ValueError as e:
        logger.warning(f"Invalid [{section}] configuration ({e}); using defaults")
        return cls()


def _parse_providers(raw: Any) -> Dict[str, ProviderConfig]:
    providers = _default_providers()
    if raw is None:
        return providers
    if not isinstance(raw, dict):
        logger.warning("[tool.catalogai.ai.providers] is not a table; using defaults")
        return providers

    for name, section in raw.items():
        if name not in KNOWN_PROVIDERS:
            logger.warning(f"Ignoring configuration for unknown provider '{name}'")
            continue
        providers[name] = _build_section(ProviderConfig, section, f"providers.{name}")
    return providers


def _parse_analysis_types(raw: Any, default: List[AnalysisType]) -> List[AnalysisType]:
    if raw is None:
        return default
    if not isinstance(raw, list):
        logger.warning(f"Invalid value for analysis_types: {raw!r}; using defaults")
        return default

    types = []
    for value in raw:
        try:
            types.append(AnalysisType(value))
        except ValueError:
            logger.warning(f"Ignoring unknown analysis type '{value}'")
    return types or default


def _get_env_float(key: str) -> Optional[float]:
    """Get float value from environment variable."""
    value = os.getenv(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {key}={value!r}")
            return None
    return None


def _get_env_bool(key: str) -> Optional[bool]:
    """Get boolean value from environment variable."""
    value = os.getenv(key)
    if value is not None:
        return value.lower() in ("true", "1", "yes", "on")
    return None


def find_project_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Walk up from start_path to the first directory holding a pyproject.toml."""
    current = Path(start_path or Path.cwd()).resolve()
    for candidate in [current] + list(current.parents):
        if (candidate / "pyproject.toml").is_file():
            return candidate
    return None


def load_env_files(project_root: Optional[Path] = None) -> None:
    """Load environment variables from .env files. Existing variables win."""
    env_paths = [Path.cwd() / ".env"]
    if project_root is not None:
        env_paths.append(project_root / ".env")
    env_paths.append(Path.home() / ".catalogai.env")

    for env_path in env_paths:
        if env_path.is_file():
            logger.debug(f"Loading environment from {env_path}")
            load_dotenv(env_path)


def load_toml_config(config_path: Path) -> Dict[str, Any]:
    """Return the [tool.catalogai.ai] table of a pyproject.toml, or {}."""
    if not config_path.is_file():
        return {}

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error parsing {config_path}: {e}. Using default configuration.")
        return {}
    except OSError as e:
        logger.error(f"Error reading {config_path}: {e}. Using default configuration.")
        return {}

    section = data.get("tool", {}).get("catalogai", {}).get("ai", {})
    if not isinstance(section, dict):
        logger.warning(f"[tool.catalogai.ai] in {config_path} is not a table. Ignoring this section.")
        return {}
    if section:
        logger.debug(f"Loaded [tool.catalogai.ai] settings from {config_path}")
    return section


def apply_env_overrides(config: AIConfig) -> AIConfig:
    """Apply CATALOGAI_* environment variables on top of file configuration."""
    enabled = _get_env_bool("CATALOGAI_AI_ENABLED")
    if enabled is not None:
        config.enabled = enabled

    provider = os.getenv("CATALOGAI_AI_PROVIDER")
    if provider:
        if provider == AUTO_PROVIDER or provider in KNOWN_PROVIDERS:
            config.preferred_provider = provider
        else:
            logger.warning(f"Ignoring unknown CATALOGAI_AI_PROVIDER={provider!r}")

    timeout = _get_env_float("CATALOGAI_AI_TIMEOUT")
    if timeout is not None and timeout > 0:
        for provider_config in config.providers.values():
            provider_config.timeout = timeout

    cache_enabled = _get_env_bool("CATALOGAI_CACHE_ENABLED")
    if cache_enabled is not None:
        config.cache.enabled = cache_enabled

    ttl = _get_env_float("CATALOGAI_CACHE_TTL")
    if ttl is not None and ttl > 0:
        config.cache.ttl = ttl

    cache_dir = os.getenv("CATALOGAI_CACHE_DIR")
    if cache_dir:
        config.cache.cache_dir = Path(cache_dir).expanduser()
        config.cache.persist = True

    return config


def load_config(start_path: Optional[Path] = None, load_env: bool = True) -> AIConfig:
    """Load AI configuration for the project containing start_path."""
    project_root = find_project_root(start_path)
    logger.debug(f"Found project root: {project_root}")

    if load_env:
        load_env_files(project_root)

    raw = load_toml_config(project_root / "pyproject.toml") if project_root else {}
    return apply_env_overrides(AIConfig.from_dict(raw))
