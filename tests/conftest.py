"""Pytest configuration and fixtures for catalogai tests."""

import tempfile
from pathlib import Path
from typing import Callable, Iterator, List, Optional

import pytest

from catalogai.cache import AnalysisCache
from catalogai.config import AIConfig
from catalogai.detector import ProviderDetector
from catalogai.models import (
    AnalysisContext,
    AnalysisResult,
    AnalysisType,
    PackageUpdateInfo,
    ProviderInfo,
    Recommendation,
    RecommendedAction,
    RiskLevel,
    WorkspaceInfo,
)
from catalogai.orchestrator import AnalysisOrchestrator
from catalogai.providers.base import AIProvider

_ENV_VARS = (
    "CATALOGAI_AI_ENABLED",
    "CATALOGAI_AI_PROVIDER",
    "CATALOGAI_AI_TIMEOUT",
    "CATALOGAI_CACHE_ENABLED",
    "CATALOGAI_CACHE_TTL",
    "CATALOGAI_CACHE_DIR",
    "CLAUDE_PATH",
    "GEMINI_PATH",
    "CODEX_PATH",
    "CURSOR_PATH",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def workspace_info() -> WorkspaceInfo:
    return WorkspaceInfo(name="acme-monorepo", path="/work/acme", package_count=12, catalog_count=2)


@pytest.fixture
def patch_update() -> PackageUpdateInfo:
    return PackageUpdateInfo("lodash", "4.17.20", "4.17.21", "patch", catalog_name="default")


@pytest.fixture
def major_update() -> PackageUpdateInfo:
    return PackageUpdateInfo("react", "17.0.2", "18.2.0", "major", catalog_name="react17")


@pytest.fixture
def minor_update() -> PackageUpdateInfo:
    return PackageUpdateInfo("axios", "1.5.0", "1.6.2", "minor")


@pytest.fixture
def sample_packages(patch_update, major_update, minor_update) -> List[PackageUpdateInfo]:
    return [patch_update, major_update, minor_update]


def make_packages(count: int) -> List[PackageUpdateInfo]:
    return [PackageUpdateInfo(f"package-{i}", "1.0.0", "1.0.1", "patch") for i in range(count)]


@pytest.fixture
def make_context(workspace_info) -> Callable[..., AnalysisContext]:
    def factory(packages, analysis_type=AnalysisType.IMPACT, **kwargs) -> AnalysisContext:
        return AnalysisContext(
            packages=list(packages), workspace_info=workspace_info, analysis_type=analysis_type, **kwargs
        )

    return factory


class FakeProvider(AIProvider):
    """In-memory provider that records calls and answers every package with 'update'."""

    def __init__(
        self,
        name: str = "claude",
        priority: int = 100,
        available: bool = True,
        error: Optional[Exception] = None,
        confidence: float = 0.9,
    ):
        self.name = name
        self.priority = priority
        self.available = available
        self.error = error
        self.confidence = confidence
        self.calls: List[AnalysisContext] = []

    def is_available(self) -> bool:
        return self.available

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(
            name=self.name,
            available=self.available,
            priority=self.priority if self.available else 0,
            capabilities=list(self.capabilities),
        )

    def analyze(self, context: AnalysisContext) -> AnalysisResult:
        self.calls.append(context)
        if self.error is not None:
            raise self.error
        return AnalysisResult(
            provider=self.name,
            analysis_type=context.analysis_type,
            recommendations=[
                Recommendation(
                    package=pkg.name,
                    current_version=pkg.current_version,
                    target_version=pkg.target_version,
                    action=RecommendedAction.UPDATE,
                    reason=f"{self.name} says {pkg.name} is safe to update",
                    risk_level=RiskLevel.LOW,
                )
                for pkg in context.packages
            ],
            summary=f"{len(context.packages)} packages analyzed",
            confidence=self.confidence,
        )


@pytest.fixture
def fake_provider_factory() -> Callable[..., FakeProvider]:
    return FakeProvider


@pytest.fixture
def empty_detector() -> ProviderDetector:
    """Detector that knows no tools, so nothing on the host is probed."""
    return ProviderDetector(definitions=[])


@pytest.fixture
def make_orchestrator(empty_detector) -> Callable[..., AnalysisOrchestrator]:
    """Orchestrator wired with fake providers and an in-memory cache."""

    def factory(providers=(), config: Optional[AIConfig] = None, cache: Optional[AnalysisCache] = None):
        return AnalysisOrchestrator(
            config=config or AIConfig(),
            cache=cache if cache is not None else AnalysisCache(),
            detector=empty_detector,
            providers=list(providers),
        )

    return factory
