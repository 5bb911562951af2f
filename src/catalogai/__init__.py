"""catalogai: AI-assisted analysis of catalog dependency updates

Turns batches of proposed package-version updates into risk-annotated
recommendations using AI command-line tools, with caching and a rule-based
fallback.
"""

from catalogai.cache import AnalysisCache
from catalogai.config import AIConfig, load_config
from catalogai.detector import ProviderDetector
from catalogai.errors import (
    CatalogAIError,
    ProviderError,
    ProviderExecutionError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from catalogai.models import (
    AnalysisRequestOptions,
    AnalysisResult,
    AnalysisType,
    ChunkingConfig,
    PackageUpdateInfo,
    Recommendation,
    WorkspaceInfo,
)
from catalogai.orchestrator import AnalysisOrchestrator
from catalogai.rule_engine import RuleEngine

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "AnalysisOrchestrator",
    "AnalysisCache",
    "ProviderDetector",
    "RuleEngine",
    # Configuration
    "AIConfig",
    "load_config",
    # Data model
    "AnalysisRequestOptions",
    "AnalysisResult",
    "AnalysisType",
    "ChunkingConfig",
    "PackageUpdateInfo",
    "Recommendation",
    "WorkspaceInfo",
    # Errors
    "CatalogAIError",
    "ProviderError",
    "ProviderExecutionError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
]
