"""
Rule-based analysis used when no AI provider can be reached.

Classification depends only on the update type, the numeric distance
between versions and, when supplied, vulnerability data for the target
version. It never spawns processes or touches the network, so it is always
available.

catalogai/src/catalogai/rule_engine.py
"""

import logging
import re
import time
from typing import List, Optional, Tuple

from .constants import RULE_ENGINE_CONFIDENCE, RULE_ENGINE_NAME
from .models import (
    AnalysisContext,
    AnalysisResult,
    EffortLevel,
    PackageUpdateInfo,
    ProviderInfo,
    Recommendation,
    RecommendedAction,
    RiskLevel,
    SecurityVulnerabilityData,
    UpdateType,
)
from .providers.base import AIProvider

logger = logging.getLogger(__name__)

__all__ = [
    "RuleEngine",
    "BREAKING_PATTERNS",
    "SECURITY_SENSITIVE_PACKAGES",
    "LARGE_MINOR_JUMP",
    "parse_version",
]

# Minor-version distance above which a minor update counts as medium risk
LARGE_MINOR_JUMP = 5

# Known breaking changes for popular packages, reported on major updates
BREAKING_PATTERNS = {
    "react": ["React 17 to 18: Concurrent features", "React 18+: Strict mode changes"],
    "typescript": ["TypeScript 5.0: New decorators", "TypeScript 4.7+: ESM changes"],
    "eslint": ["ESLint 9.0: Flat config required", "ESLint 8.0+: New rule formats"],
    "webpack": ["Webpack 5: Node.js polyfills removed"],
    "vite": ["Vite 5: Node.js 18+ required"],
    "next": ["Next.js 13+: App router changes", "Next.js 14+: Server components default"],
    "vue": ["Vue 3: Composition API", "Vue 3: Breaking template changes"],
}

SECURITY_SENSITIVE_PACKAGES = frozenset(
    {
        "jsonwebtoken",
        "bcrypt",
        "crypto-js",
        "helmet",
        "cors",
        "express-session",
        "passport",
        "oauth",
        "jose",
        "node-forge",
    }
)

_SECURITY_NAME_HINTS = ("auth", "security", "crypto")
_VERSION_RE = re.compile(r"^[\s^~>=<v]*(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def parse_version(version: str) -> Optional[Tuple[int, int, int]]:
    """(major, minor, patch) of a version or range string, ignoring ^ ~ >= v prefixes."""
    match = _VERSION_RE.match(version or "")
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor or 0), int(patch or 0)


def _is_prerelease(pkg: PackageUpdateInfo) -> bool:
    return pkg.update_type == UpdateType.PRERELEASE or "-" in pkg.target_version


def _crosses_major(pkg: PackageUpdateInfo) -> bool:
    if pkg.update_type == UpdateType.MAJOR:
        return True
    current = parse_version(pkg.current_version)
    target = parse_version(pkg.target_version)
    return bool(current and target and target[0] > current[0])


class RuleEngine(AIProvider):
    """Deterministic analysis from update type and version distance."""

    name = RULE_ENGINE_NAME
    priority = 0

    def is_available(self) -> bool:
        return True

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(
            name=self.name,
            available=True,
            priority=self.priority,
            capabilities=list(self.capabilities),
            detection_method="builtin",
        )

    def analyze(self, context: AnalysisContext) -> AnalysisResult:
        start = time.monotonic()
        recommendations = [self.analyze_package(pkg, context.security_for(pkg)) for pkg in context.packages]

        high_risk = sum(1 for rec in recommendations if rec.risk_level.rank >= RiskLevel.HIGH.rank)
        warnings = [f"{high_risk} high-risk updates detected"] if high_risk else []

        logger.debug(f"Rule engine analyzed {len(recommendations)} packages ({high_risk} high risk)")
        return AnalysisResult(
            provider=self.name,
            analysis_type=context.analysis_type,
            recommendations=recommendations,
            summary=self.summarize(recommendations, high_risk),
            confidence=RULE_ENGINE_CONFIDENCE,
            warnings=warnings,
            processing_time_ms=(time.monotonic() - start) * 1000,
        )

    def analyze_package(
        self, pkg: PackageUpdateInfo, security: Optional[SecurityVulnerabilityData] = None
    ) -> Recommendation:
        risk = self.assess_risk(pkg)
        breaking_changes = self.detect_breaking_changes(pkg)
        security_fixes = self.detect_security_relevance(pkg)

        if pkg.update_type == UpdateType.MAJOR:
            action = RecommendedAction.REVIEW
            if breaking_changes and pkg.name.split("/")[-1].lower() in BREAKING_PATTERNS:
                reason = f"Major update with {len(breaking_changes)} known breaking changes"
            else:
                reason = "Major version update with high risk - review breaking changes"
        elif _is_prerelease(pkg):
            if _crosses_major(pkg):
                action = RecommendedAction.REVIEW
                reason = "Pre-release of a new major version - review before adopting"
            else:
                action = RecommendedAction.UPDATE
                reason = "Pre-release version - expect instability"
        elif pkg.update_type == UpdateType.PATCH:
            action = RecommendedAction.UPDATE
            reason = "Patch update - typically safe to apply"
        else:
            action = RecommendedAction.UPDATE
            reason = "Minor update - new features, backward compatible"
            if risk == RiskLevel.MEDIUM:
                reason = "Large minor version jump - check release notes"

        if pkg.name in SECURITY_SENSITIVE_PACKAGES and pkg.update_type == UpdateType.MAJOR:
            reason = "Security-sensitive package - major update requires careful review"

        if security is not None and (security.has_critical or security.has_high):
            risk, action, reason = self._escalate(risk, security)
            for vuln in security.vulnerabilities:
                if vuln.fixed_versions:
                    security_fixes.append(f"{vuln.id} fixed in {', '.join(vuln.fixed_versions)}")

        return Recommendation(
            package=pkg.name,
            current_version=pkg.current_version,
            target_version=pkg.target_version,
            action=action,
            reason=reason,
            risk_level=risk,
            breaking_changes=breaking_changes,
            security_fixes=security_fixes,
            estimated_effort=self.estimate_effort(pkg, len(breaking_changes)),
        )

    def assess_risk(self, pkg: PackageUpdateInfo) -> RiskLevel:
        if pkg.update_type == UpdateType.MAJOR or _is_prerelease(pkg):
            return RiskLevel.HIGH
        if pkg.update_type == UpdateType.PATCH:
            return RiskLevel.LOW

        current = parse_version(pkg.current_version)
        target = parse_version(pkg.target_version)
        if not current or not target:
            return RiskLevel.MEDIUM
        if target[0] == current[0] and target[1] - current[1] > LARGE_MINOR_JUMP:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @staticmethod
    def detect_breaking_changes(pkg: PackageUpdateInfo) -> List[str]:
        if pkg.update_type != UpdateType.MAJOR:
            return []
        base_name = pkg.name.split("/")[-1].lower()
        known = BREAKING_PATTERNS.get(base_name)
        if known:
            return list(known)
        return [f"Major version update from {pkg.current_version} to {pkg.target_version}"]

    @staticmethod
    def detect_security_relevance(pkg: PackageUpdateInfo) -> List[str]:
        notes = []
        if pkg.name in SECURITY_SENSITIVE_PACKAGES:
            notes.append("Security-sensitive package - review changelog for security fixes")
        if any(hint in pkg.name for hint in _SECURITY_NAME_HINTS):
            notes.append("Package may contain security-related changes")
        return notes

    @staticmethod
    def estimate_effort(pkg: PackageUpdateInfo, breaking_count: int) -> EffortLevel:
        if pkg.update_type == UpdateType.PATCH:
            return EffortLevel.LOW
        if pkg.update_type == UpdateType.MAJOR:
            return EffortLevel.HIGH if breaking_count > 2 else EffortLevel.MEDIUM
        return EffortLevel.LOW

    @staticmethod
    def _escalate(
        risk: RiskLevel, security: SecurityVulnerabilityData
    ) -> Tuple[RiskLevel, RecommendedAction, str]:
        severity = "critical" if security.has_critical else "high"
        if security.has_critical:
            risk = RiskLevel.CRITICAL
        elif risk.rank < RiskLevel.HIGH.rank:
            risk = RiskLevel.HIGH

        reason = f"Target version {security.version} has {security.total} known vulnerabilities ({severity} severity)"
        if security.safe_version:
            reason += f"; verified safe version: {security.safe_version.version}"
        return risk, RecommendedAction.REVIEW, reason

    @staticmethod
    def summarize(recommendations: List[Recommendation], high_risk: int) -> str:
        counts = {action: 0 for action in RecommendedAction}
        for rec in recommendations:
            counts[rec.action] += 1

        parts = []
        if counts[RecommendedAction.UPDATE]:
            parts.append(f"{counts[RecommendedAction.UPDATE]} package(s) ready to update")
        if counts[RecommendedAction.REVIEW]:
            parts.append(f"{counts[RecommendedAction.REVIEW]} package(s) need review")
        if counts[RecommendedAction.SKIP]:
            parts.append(f"{counts[RecommendedAction.SKIP]} package(s) recommended to skip")
        if high_risk:
            parts.append(f"{high_risk} high-risk update(s) detected")
        return ". ".join(parts) or "No updates to analyze"
