"""
Analysis orchestration: provider selection, caching, fallback and merging.

Every single-type analysis funnels through ``AnalysisOrchestrator.analyze_updates``:

    disabled        -> disabled result (provider "none")
    no packages     -> rule-engine empty result
    cache hit       -> cached copy, provider annotated " (cached)"
    provider found  -> provider.analyze(); errors fall back to the rule engine
    no provider     -> rule engine, or a no-provider result when fallback is off

Provider failures never escape the public methods.

catalogai/src/catalogai/orchestrator.py
"""

import dataclasses
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .cache import AnalysisCache
from .config import AIConfig
from .constants import CACHED_SUFFIX, DEGRADED_CONFIDENCE, NO_PROVIDER_NAME, RULE_ENGINE_NAME
from .detector import ProviderDetector
from .models import (
    AnalysisContext,
    AnalysisOptions,
    AnalysisRequestOptions,
    AnalysisResult,
    AnalysisType,
    CacheStats,
    ChunkingConfig,
    ChunkProgress,
    MultiAnalysisResult,
    PackageUpdateInfo,
    ProviderInfo,
    Recommendation,
    RecommendedAction,
    RiskLevel,
    ServiceStatus,
    WorkspaceInfo,
)
from .providers import PROVIDER_CLASSES, AIProvider
from .rule_engine import RuleEngine

logger = logging.getLogger(__name__)

__all__ = ["AnalysisOrchestrator", "merge_results", "higher_risk", "more_conservative_action"]


def higher_risk(a: RiskLevel, b: RiskLevel) -> RiskLevel:
    return a if a.rank >= b.rank else b


def more_conservative_action(a: RecommendedAction, b: RecommendedAction) -> RecommendedAction:
    """update < defer < review < skip"""
    return a if a.caution >= b.caution else b


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def _join_providers(results: Sequence[AnalysisResult]) -> str:
    return ", ".join(_dedupe(r.provider for r in results))


def merge_results(results: Sequence[AnalysisResult], packages: Sequence[PackageUpdateInfo] = ()) -> AnalysisResult:
    """Reconcile results of several analysis types into one recommendation per package.

    Each package keeps the highest risk and the most conservative action seen
    across results; reasons are joined and breaking changes/security fixes
    unioned. Output follows ``packages`` order, then first appearance.

    A package name listed more than once (one entry per catalog) is matched
    by occurrence: the n-th recommendation for a name in each result merges
    with the n-th in every other result.
    """
    if not results:
        raise ValueError("No results to merge")
    if len(results) == 1:
        return results[0]

    merged: Dict[Tuple[str, int], Recommendation] = {}
    for result in results:
        seen: Dict[str, int] = {}
        for rec in result.recommendations:
            key = (rec.package, seen.get(rec.package, 0))
            seen[rec.package] = key[1] + 1
            existing = merged.get(key)
            if existing is None:
                merged[key] = dataclasses.replace(
                    rec,
                    breaking_changes=list(rec.breaking_changes),
                    security_fixes=list(rec.security_fixes),
                )
                continue
            reasons = _dedupe(r for r in existing.reason.split("; ") + [rec.reason] if r)
            merged[key] = dataclasses.replace(
                existing,
                risk_level=higher_risk(existing.risk_level, rec.risk_level),
                action=more_conservative_action(existing.action, rec.action),
                reason="; ".join(reasons),
                breaking_changes=_dedupe(existing.breaking_changes + rec.breaking_changes),
                security_fixes=_dedupe(existing.security_fixes + rec.security_fixes),
            )

    order: List[Tuple[str, int]] = []
    occurrences: Dict[str, int] = {}
    for pkg in packages:
        key = (pkg.name, occurrences.get(pkg.name, 0))
        occurrences[pkg.name] = key[1] + 1
        if key in merged:
            order.append(key)
    order += [key for key in merged if key not in order]

    return AnalysisResult(
        provider=_join_providers(results),
        analysis_type=AnalysisType.RECOMMEND,
        recommendations=[merged[key] for key in order],
        summary=f"Comprehensive analysis from {len(results)} analysis types",
        confidence=sum(r.confidence for r in results) / len(results),
        warnings=_dedupe(w for r in results for w in r.warnings),
        processing_time_ms=sum(r.processing_time_ms or 0 for r in results),
    )


class AnalysisOrchestrator:
    """High-level entry point for AI-assisted update analysis."""

    def __init__(
        self,
        config: Optional[AIConfig] = None,
        cache: Optional[AnalysisCache] = None,
        detector: Optional[ProviderDetector] = None,
        providers: Optional[Sequence[AIProvider]] = None,
        rule_engine: Optional[RuleEngine] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: AI configuration; defaults to built-in defaults
            cache: Result cache; built from ``config.cache`` when omitted
            detector: Tool detector used for status reporting
            providers: Analysis providers; built from ``config.providers`` when omitted
            rule_engine: Fallback engine
        """
        self.config = config or AIConfig()
        self.cache = cache if cache is not None else AnalysisCache.from_config(self.config.cache)
        self.detector = detector or ProviderDetector()
        self.rule_engine = rule_engine or RuleEngine()
        if providers is None:
            providers = self._build_providers()
        self.providers: Dict[str, AIProvider] = {p.name: p for p in providers}

    def _build_providers(self) -> List[AIProvider]:
        providers = []
        for name, provider_class in PROVIDER_CLASSES.items():
            settings = self.config.provider_config(name)
            if not settings.enabled:
                logger.debug(f"Provider {name} disabled in configuration")
                continue
            providers.append(
                provider_class(
                    model=settings.model,
                    max_tokens=settings.max_tokens,
                    timeout=settings.timeout,
                    max_retries=settings.max_retries,
                    custom_args=settings.custom_args,
                )
            )
        return providers

    # ------------------------------------------------------------------
    # Provider selection
    # ------------------------------------------------------------------

    def _usable(self, provider: Optional[AIProvider], analysis_type: AnalysisType) -> bool:
        return provider is not None and provider.supports(analysis_type) and provider.is_available()

    def select_provider(
        self, analysis_type: AnalysisType = AnalysisType.IMPACT, requested: Optional[str] = None
    ) -> Optional[AIProvider]:
        """Requested provider, else preferred provider, else highest-priority available one."""
        if requested == RULE_ENGINE_NAME:
            return self.rule_engine

        if requested:
            provider = self.providers.get(requested)
            if self._usable(provider, analysis_type):
                return provider
            logger.info(f"Requested provider '{requested}' is not available")

        preferred = self.config.preferred_provider
        if preferred and preferred != "auto" and preferred != requested:
            provider = self.providers.get(preferred)
            if self._usable(provider, analysis_type):
                return provider
            logger.debug(f"Preferred provider '{preferred}' is not available")

        candidates = sorted(self.providers.values(), key=lambda p: p.priority, reverse=True)
        for provider in candidates:
            if self._usable(provider, analysis_type):
                return provider
        return None

    def _cache_lookup_order(self, requested: Optional[str]) -> List[str]:
        if requested:
            return [requested]
        names = list(self.providers)
        preferred = self.config.preferred_provider
        if preferred in names:
            names.remove(preferred)
            names.insert(0, preferred)
        return names + [RULE_ENGINE_NAME]

    # ------------------------------------------------------------------
    # Single-type analysis
    # ------------------------------------------------------------------

    def analyze_updates(
        self,
        packages: Sequence[PackageUpdateInfo],
        workspace_info: WorkspaceInfo,
        options: Optional[AnalysisRequestOptions] = None,
    ) -> AnalysisResult:
        """Analyze package updates with the best available provider."""
        options = options or AnalysisRequestOptions()
        analysis_type = AnalysisType(options.analysis_type)
        packages = list(packages)

        if not self.config.enabled:
            return self._disabled_result(packages, analysis_type)

        context = AnalysisContext(
            packages=packages,
            workspace_info=workspace_info,
            analysis_type=analysis_type,
            security_data=dict(options.security_data or {}),
            options=AnalysisOptions(timeout=options.timeout),
            additional_context=options.additional_context,
        )

        if not packages:
            return self.rule_engine.analyze(context)

        if self.config.cache.enabled and not options.skip_cache:
            for name in self._cache_lookup_order(options.provider):
                cached = self.cache.get(context, name)
                if cached is not None:
                    logger.debug(f"Cache hit for {len(packages)} packages ({name}, {analysis_type.value})")
                    cached.provider = f"{cached.provider}{CACHED_SUFFIX}"
                    return cached

        provider = self.select_provider(analysis_type, options.provider)
        result, provider_used = self._run(provider, context)

        if self.config.cache.enabled and provider_used != NO_PROVIDER_NAME and result.confidence > DEGRADED_CONFIDENCE:
            self.cache.set(context, provider_used, result)

        return result

    def _run(self, provider: Optional[AIProvider], context: AnalysisContext) -> Tuple[AnalysisResult, str]:
        if provider is None:
            logger.info("No AI provider available")
            return self._fallback(context)

        logger.info(
            f"Analyzing {len(context.packages)} packages with {provider.name} ({context.analysis_type.value})"
        )
        try:
            return provider.analyze(context), provider.name
        except Exception as e:
            logger.warning(f"Provider {provider.name} failed: {e}")
            return self._fallback(context, e)

    def _fallback(self, context: AnalysisContext, error: Optional[Exception] = None) -> Tuple[AnalysisResult, str]:
        fallback = self.config.fallback
        if fallback.enabled and fallback.use_rule_engine:
            result = self.rule_engine.analyze(context)
            if error is not None:
                result.warnings.append(f"AI provider error, using rule-based fallback: {error}")
            return result, self.rule_engine.name

        result = self._no_provider_result(context.packages, context.analysis_type)
        if error is not None:
            result.warnings.append(f"AI provider error: {error}")
        return result, NO_PROVIDER_NAME

    def analyze_impact(self, packages, workspace_info, options: Optional[AnalysisRequestOptions] = None):
        return self.analyze_updates(packages, workspace_info, self._with_type(options, AnalysisType.IMPACT))

    def analyze_security(self, packages, workspace_info, options: Optional[AnalysisRequestOptions] = None):
        return self.analyze_updates(packages, workspace_info, self._with_type(options, AnalysisType.SECURITY))

    def analyze_compatibility(self, packages, workspace_info, options: Optional[AnalysisRequestOptions] = None):
        return self.analyze_updates(packages, workspace_info, self._with_type(options, AnalysisType.COMPATIBILITY))

    def get_recommendations(self, packages, workspace_info, options: Optional[AnalysisRequestOptions] = None):
        return self.analyze_updates(packages, workspace_info, self._with_type(options, AnalysisType.RECOMMEND))

    @staticmethod
    def _with_type(options: Optional[AnalysisRequestOptions], analysis_type: AnalysisType) -> AnalysisRequestOptions:
        return dataclasses.replace(options or AnalysisRequestOptions(), analysis_type=analysis_type)

    # ------------------------------------------------------------------
    # Chunked and comprehensive analysis
    # ------------------------------------------------------------------

    def analyze_with_chunking(
        self,
        packages: Sequence[PackageUpdateInfo],
        workspace_info: WorkspaceInfo,
        options: Optional[AnalysisRequestOptions] = None,
        chunking: Optional[ChunkingConfig] = None,
    ) -> AnalysisResult:
        """Analyze large package sets in fixed-size chunks and merge the results."""
        chunking = chunking or ChunkingConfig()
        settings = self.config.chunking
        packages = list(packages)

        threshold = chunking.threshold if chunking.threshold is not None else settings.threshold
        chunk_size = max(1, chunking.chunk_size if chunking.chunk_size is not None else settings.chunk_size)
        max_concurrency = max(
            1, chunking.max_concurrency if chunking.max_concurrency is not None else settings.max_concurrency
        )

        if not self.config.enabled or not (chunking.enabled and settings.enabled) or len(packages) <= threshold:
            return self.analyze_updates(packages, workspace_info, options)

        chunks = [packages[i : i + chunk_size] for i in range(0, len(packages), chunk_size)]
        total_chunks = len(chunks)
        logger.info(f"Analyzing {len(packages)} packages in {total_chunks} chunks of up to {chunk_size}")

        def report(done: int, processed: int) -> None:
            if chunking.on_progress is not None:
                chunking.on_progress(
                    ChunkProgress(
                        current_chunk=done,
                        total_chunks=total_chunks,
                        percent_complete=math.floor(done * 100 / total_chunks),
                        packages_processed=processed,
                        total_packages=len(packages),
                    )
                )

        results: List[AnalysisResult] = []
        processed = 0
        if max_concurrency == 1:
            for index, chunk in enumerate(chunks, 1):
                results.append(self.analyze_updates(chunk, workspace_info, options))
                processed += len(chunk)
                report(index, processed)
        else:
            with ThreadPoolExecutor(max_workers=min(max_concurrency, total_chunks)) as pool:
                futures = [pool.submit(self.analyze_updates, chunk, workspace_info, options) for chunk in chunks]
                for index, (chunk, future) in enumerate(zip(chunks, futures), 1):
                    results.append(future.result())
                    processed += len(chunk)
                    report(index, processed)

        report(total_chunks, len(packages))
        return self._merge_chunks(results, len(packages))

    @staticmethod
    def _merge_chunks(results: List[AnalysisResult], total_packages: int) -> AnalysisResult:
        recommendations = [rec for result in results for rec in result.recommendations]
        return AnalysisResult(
            provider=_join_providers(results),
            analysis_type=results[0].analysis_type,
            recommendations=recommendations,
            summary=(
                f"Chunked analysis completed: {total_packages} packages analyzed in {len(results)} chunks. "
                f"{sum(1 for r in recommendations if r.action == RecommendedAction.UPDATE)} ready to update, "
                f"{sum(1 for r in recommendations if r.action == RecommendedAction.REVIEW)} need review."
            ),
            confidence=sum(r.confidence for r in results) / len(results),
            details="\n".join(f"Chunk {i}: {r.summary}" for i, r in enumerate(results, 1)),
            warnings=_dedupe(w for r in results for w in r.warnings),
            processing_time_ms=sum(r.processing_time_ms or 0 for r in results),
        )

    def analyze_comprehensive(
        self,
        packages: Sequence[PackageUpdateInfo],
        workspace_info: WorkspaceInfo,
        options: Optional[AnalysisRequestOptions] = None,
    ) -> MultiAnalysisResult:
        """Run every configured analysis type and merge the results."""
        packages = list(packages)
        results: Dict[AnalysisType, AnalysisResult] = {}
        for analysis_type in self.config.analysis_types or list(AnalysisType):
            results[analysis_type] = self.analyze_updates(
                packages, workspace_info, self._with_type(options, analysis_type)
            )

        ordered = list(results.values())
        return MultiAnalysisResult(
            primary=ordered[0],
            secondary=ordered[1] if len(ordered) > 1 else None,
            merged=merge_results(ordered, packages),
            providers=_dedupe(r.provider for r in ordered),
            results=results,
        )

    # ------------------------------------------------------------------
    # Synthesized results
    # ------------------------------------------------------------------

    @staticmethod
    def _review_all(
        packages: Sequence[PackageUpdateInfo],
        analysis_type: AnalysisType,
        reason: str,
        summary: str,
        warning: str,
    ) -> AnalysisResult:
        return AnalysisResult(
            provider=NO_PROVIDER_NAME,
            analysis_type=analysis_type,
            recommendations=[
                Recommendation(
                    package=pkg.name,
                    current_version=pkg.current_version,
                    target_version=pkg.target_version,
                    action=RecommendedAction.REVIEW,
                    reason=reason,
                    risk_level=RiskLevel.MEDIUM,
                )
                for pkg in packages
            ],
            summary=summary,
            confidence=0.0,
            warnings=[warning],
        )

    def _disabled_result(self, packages, analysis_type: AnalysisType) -> AnalysisResult:
        return self._review_all(
            packages,
            analysis_type,
            reason="AI analysis is disabled",
            summary="AI analysis is disabled. All updates require manual review.",
            warning="AI analysis is disabled in configuration",
        )

    def _no_provider_result(self, packages, analysis_type: AnalysisType) -> AnalysisResult:
        return self._review_all(
            packages,
            analysis_type,
            reason="No AI provider available",
            summary="No AI provider available. Manual review recommended.",
            warning="No AI CLI tools detected. Install Claude, Gemini, or Codex for AI-powered analysis.",
        )

    # ------------------------------------------------------------------
    # Status and cache management
    # ------------------------------------------------------------------

    def get_best_provider(self) -> Optional[AIProvider]:
        return self.select_provider()

    def get_available_providers(self) -> List[ProviderInfo]:
        return self.detector.get_available_providers()

    def is_available(self) -> bool:
        """Whether analyze_updates can produce a provider or rule-engine result."""
        if not self.config.enabled:
            return False
        fallback = self.config.fallback
        return self.get_best_provider() is not None or (fallback.enabled and fallback.use_rule_engine)

    def _ranked_tools(self, active: Optional[str]) -> List[ProviderInfo]:
        """Detected tools in selection order: active provider first, then by provider priority.

        Detection ranks tools by its own table; tools with a registered provider
        report that provider's priority instead so the listing agrees with
        ``select_provider``.
        """
        infos = []
        for info in self.detector.detect_available_providers():
            provider = self.providers.get(info.name)
            if info.available and provider is not None:
                info = dataclasses.replace(info, priority=provider.priority)
            infos.append(info)
        return sorted(infos, key=lambda info: (info.name != active, not info.available, -info.priority))

    def get_status(self) -> ServiceStatus:
        best = self.get_best_provider()
        active = best.name if best else None
        return ServiceStatus(
            enabled=self.config.enabled,
            providers=self._ranked_tools(active),
            active_provider=active,
            cache_enabled=self.config.cache.enabled,
            cache_stats=self.cache.get_stats(),
            fallback_enabled=self.config.fallback.enabled,
        )

    def clear_cache(self) -> None:
        self.cache.clear()

    def invalidate_cache(self, package_names: Iterable[str]) -> int:
        return self.cache.invalidate_for_packages(package_names)

    def get_cache_stats(self) -> CacheStats:
        return self.cache.get_stats()
