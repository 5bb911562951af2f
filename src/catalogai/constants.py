"""
Shared constants for AI providers and the analysis engine.

Timeouts are expressed in seconds.

catalogai/src/catalogai/constants.py
"""

__all__ = [
    "ANALYSIS_TIMEOUT_SECONDS",
    "DETECTION_TIMEOUT_SECONDS",
    "VERSION_CHECK_TIMEOUT_SECONDS",
    "RETRY_BASE_DELAY_SECONDS",
    "RETRY_MAX_DELAY_SECONDS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MAX_TOKENS",
    "CLAUDE_DEFAULT_MODEL",
    "GEMINI_DEFAULT_MODEL",
    "CODEX_DEFAULT_MODEL",
    "CLAUDE_PRIORITY",
    "GEMINI_PRIORITY",
    "CODEX_PRIORITY",
    "DEGRADED_CONFIDENCE",
    "PARSE_FALLBACK_CONFIDENCE",
    "RULE_ENGINE_CONFIDENCE",
    "RULE_ENGINE_NAME",
    "NO_PROVIDER_NAME",
    "CACHED_SUFFIX",
    "calculate_backoff_delay",
]

# Timeouts
ANALYSIS_TIMEOUT_SECONDS = 300.0
DETECTION_TIMEOUT_SECONDS = 3.0
VERSION_CHECK_TIMEOUT_SECONDS = 10.0
RETRY_BASE_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 10.0

# Limits
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_TOKENS = 4096

# Default models per provider
CLAUDE_DEFAULT_MODEL = "claude-sonnet-4-20250514"
GEMINI_DEFAULT_MODEL = "gemini-2.5-pro"
CODEX_DEFAULT_MODEL = "o3"

# Higher priority wins when several providers are available
CLAUDE_PRIORITY = 100
GEMINI_PRIORITY = 80
CODEX_PRIORITY = 60

# Confidence levels for synthesized results
DEGRADED_CONFIDENCE = 0.1
PARSE_FALLBACK_CONFIDENCE = 0.3
RULE_ENGINE_CONFIDENCE = 0.6

RULE_ENGINE_NAME = "rule-engine"
NO_PROVIDER_NAME = "none"
CACHED_SUFFIX = " (cached)"


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = RETRY_BASE_DELAY_SECONDS,
    max_delay: float = RETRY_MAX_DELAY_SECONDS,
) -> float:
    """Exponential backoff delay for a 1-based attempt number, capped at max_delay."""
    return min(base_delay * 2 ** (attempt - 1), max_delay)
