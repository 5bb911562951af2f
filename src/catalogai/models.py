"""
Data model for catalog update analysis.

Python attributes are snake_case. The JSON wire form (what external AI tools
are asked to return, and what the disk cache stores) uses camelCase keys;
``to_dict``/``from_dict`` convert between the two.

catalogai/src/catalogai/models.py
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

__all__ = [
    "UpdateType",
    "AnalysisType",
    "RecommendedAction",
    "RiskLevel",
    "EffortLevel",
    "PackageUpdateInfo",
    "WorkspaceInfo",
    "Vulnerability",
    "SkippedVersionInfo",
    "SafeVersionInfo",
    "SecurityVulnerabilityData",
    "AnalysisOptions",
    "AnalysisContext",
    "Recommendation",
    "AnalysisResult",
    "ProviderInfo",
    "CacheEntry",
    "CacheStats",
    "AnalysisRequestOptions",
    "ChunkProgress",
    "ChunkingConfig",
    "MultiAnalysisResult",
    "ServiceStatus",
    "security_key",
]


class UpdateType(str, Enum):
    """Semantic-version classification of a proposed update."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PRERELEASE = "prerelease"


class AnalysisType(str, Enum):
    """Kinds of analysis a provider can perform."""

    IMPACT = "impact"  # Effect of the updates on the workspace
    SECURITY = "security"  # Security implications
    COMPATIBILITY = "compatibility"  # Peer/API compatibility
    RECOMMEND = "recommend"  # Prioritized recommendations


class RecommendedAction(str, Enum):
    """What the maintainer should do with an update."""

    UPDATE = "update"
    SKIP = "skip"
    REVIEW = "review"
    DEFER = "defer"

    @property
    def caution(self) -> int:
        """Ordering from least to most conservative."""
        return _ACTION_CAUTION[self]


class RiskLevel(str, Enum):
    """Risk attached to an update."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


class EffortLevel(str, Enum):
    """Estimated migration effort."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2, RiskLevel.CRITICAL: 3}
_ACTION_CAUTION = {
    RecommendedAction.UPDATE: 0,
    RecommendedAction.DEFER: 1,
    RecommendedAction.REVIEW: 2,
    RecommendedAction.SKIP: 3,
}


def security_key(name: str, version: str) -> str:
    """Key used by the security collaborator: ``name@version``."""
    return f"{name}@{version}"


@dataclass(frozen=True)
class PackageUpdateInfo:
    """A single proposed package update."""

    name: str
    current_version: str
    target_version: str
    update_type: UpdateType
    catalog_name: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.update_type, UpdateType):
            object.__setattr__(self, "update_type", UpdateType(self.update_type))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "currentVersion": self.current_version,
            "targetVersion": self.target_version,
            "updateType": self.update_type.value,
        }
        if self.catalog_name:
            data["catalogName"] = self.catalog_name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageUpdateInfo":
        return cls(
            name=data["name"],
            current_version=data["currentVersion"],
            target_version=data["targetVersion"],
            update_type=UpdateType(data["updateType"]),
            catalog_name=data.get("catalogName"),
        )


@dataclass(frozen=True)
class WorkspaceInfo:
    """Summary of the workspace being analyzed."""

    name: str
    path: str
    package_count: int = 0
    catalog_count: int = 0
    catalog_names: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "packageCount": self.package_count,
            "catalogCount": self.catalog_count,
            "catalogNames": list(self.catalog_names),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspaceInfo":
        return cls(
            name=data["name"],
            path=data.get("path", ""),
            package_count=int(data.get("packageCount", 0)),
            catalog_count=int(data.get("catalogCount", 0)),
            catalog_names=tuple(data.get("catalogNames", ())),
        )


@dataclass
class Vulnerability:
    """A known vulnerability affecting a package version."""

    id: str
    summary: str = ""
    severity: str = "UNKNOWN"  # CRITICAL | HIGH | MODERATE | LOW | UNKNOWN
    aliases: List[str] = field(default_factory=list)  # CVE ids
    cvss_score: Optional[float] = None
    fixed_versions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vulnerability":
        return cls(
            id=data["id"],
            summary=data.get("summary", ""),
            severity=str(data.get("severity", "UNKNOWN")).upper(),
            aliases=list(data.get("aliases", [])),
            cvss_score=data.get("cvssScore"),
            fixed_versions=list(data.get("fixedVersions", [])),
        )


@dataclass
class SkippedVersionInfo:
    """A candidate version rejected because it is itself vulnerable."""

    version: str
    vulnerabilities: List[Dict[str, str]] = field(default_factory=list)  # {id, severity, summary}


@dataclass
class SafeVersionInfo:
    """A version verified to carry no critical/high vulnerabilities."""

    version: str
    same_major: bool = False
    same_minor: bool = False
    versions_checked: int = 0
    skipped_versions: List[SkippedVersionInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SafeVersionInfo":
        return cls(
            version=data["version"],
            same_major=bool(data.get("sameMajor", False)),
            same_minor=bool(data.get("sameMinor", False)),
            versions_checked=int(data.get("versionsChecked", 0)),
            skipped_versions=[
                SkippedVersionInfo(
                    version=skipped["version"],
                    vulnerabilities=list(skipped.get("vulnerabilities", [])),
                )
                for skipped in data.get("skippedVersions", [])
            ],
        )


@dataclass
class SecurityVulnerabilityData:
    """Vulnerability summary for one ``name@version`` supplied by the security collaborator."""

    package_name: str
    version: str
    vulnerabilities: List[Vulnerability] = field(default_factory=list)
    safe_version: Optional[SafeVersionInfo] = None

    @property
    def has_critical(self) -> bool:
        return any(v.severity == "CRITICAL" for v in self.vulnerabilities)

    @property
    def has_high(self) -> bool:
        return any(v.severity == "HIGH" for v in self.vulnerabilities)

    @property
    def total(self) -> int:
        return len(self.vulnerabilities)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SecurityVulnerabilityData":
        safe = data.get("safeVersion")
        return cls(
            package_name=data["packageName"],
            version=data["version"],
            vulnerabilities=[Vulnerability.from_dict(v) for v in data.get("vulnerabilities", [])],
            safe_version=SafeVersionInfo.from_dict(safe) if safe else None,
        )


@dataclass
class AnalysisOptions:
    """Provider tuning knobs carried on a context."""

    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    timeout: Optional[float] = None
    include_breaking_changes: bool = True
    include_changelog: bool = False


@dataclass
class AnalysisContext:
    """Everything a provider needs for one analysis call."""

    packages: List[PackageUpdateInfo]
    workspace_info: WorkspaceInfo
    analysis_type: AnalysisType = AnalysisType.IMPACT
    security_data: Dict[str, SecurityVulnerabilityData] = field(default_factory=dict)
    options: AnalysisOptions = field(default_factory=AnalysisOptions)
    additional_context: Optional[str] = None

    def security_for(self, package: PackageUpdateInfo) -> Optional[SecurityVulnerabilityData]:
        """Vulnerability data for the package's target version, if supplied."""
        return self.security_data.get(security_key(package.name, package.target_version))


@dataclass
class Recommendation:
    """Recommendation for a single package update."""

    package: str
    current_version: str
    target_version: str
    action: RecommendedAction
    reason: str
    risk_level: RiskLevel
    breaking_changes: List[str] = field(default_factory=list)
    security_fixes: List[str] = field(default_factory=list)
    estimated_effort: EffortLevel = EffortLevel.MEDIUM

    def __post_init__(self):
        self.action = RecommendedAction(self.action)
        self.risk_level = RiskLevel(self.risk_level)
        self.estimated_effort = EffortLevel(self.estimated_effort)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package": self.package,
            "currentVersion": self.current_version,
            "targetVersion": self.target_version,
            "action": self.action.value,
            "reason": self.reason,
            "riskLevel": self.risk_level.value,
            "breakingChanges": list(self.breaking_changes),
            "securityFixes": list(self.security_fixes),
            "estimatedEffort": self.estimated_effort.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        return cls(
            package=data["package"],
            current_version=data.get("currentVersion", ""),
            target_version=data.get("targetVersion", ""),
            action=data["action"],
            reason=data.get("reason", ""),
            risk_level=data["riskLevel"],
            breaking_changes=list(data.get("breakingChanges", [])),
            security_fixes=list(data.get("securityFixes", [])),
            estimated_effort=data.get("estimatedEffort", EffortLevel.MEDIUM.value),
        )


@dataclass
class AnalysisResult:
    """Outcome of one analysis call."""

    provider: str
    analysis_type: AnalysisType
    recommendations: List[Recommendation]
    summary: str
    confidence: float
    details: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    processing_time_ms: Optional[float] = None
    tokens_used: Optional[int] = None

    def __post_init__(self):
        self.analysis_type = AnalysisType(self.analysis_type)
        self.confidence = min(max(float(self.confidence), 0.0), 1.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "analysisType": self.analysis_type.value,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "summary": self.summary,
            "confidence": self.confidence,
            "details": self.details,
            "warnings": list(self.warnings),
            "timestamp": self.timestamp.isoformat(),
            "processingTimeMs": self.processing_time_ms,
            "tokensUsed": self.tokens_used,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            provider=data["provider"],
            analysis_type=data["analysisType"],
            recommendations=[Recommendation.from_dict(r) for r in data.get("recommendations", [])],
            summary=data.get("summary", ""),
            confidence=data.get("confidence", 0.0),
            details=data.get("details"),
            warnings=list(data.get("warnings", [])),
            timestamp=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else datetime.now(),
            processing_time_ms=data.get("processingTimeMs"),
            tokens_used=data.get("tokensUsed"),
        )


@dataclass
class ProviderInfo:
    """Availability and metadata for an analysis provider."""

    name: str
    available: bool
    priority: int
    capabilities: List[AnalysisType] = field(default_factory=list)
    version: Optional[str] = None
    path: Optional[str] = None
    detection_method: Optional[str] = None  # envvar | which | alias | known-path | application


@dataclass
class CacheEntry:
    """A cached analysis result. Owned by the cache, never handed out directly."""

    key: str
    value: AnalysisResult
    created_at: float
    ttl: float  # seconds
    packages: List[str] = field(default_factory=list)

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass
class CacheStats:
    """Cache counters."""

    total_entries: int
    hits: int
    misses: int
    hit_rate: float
    miss_rate: float
    oldest_entry: Optional[float] = None
    newest_entry: Optional[float] = None


@dataclass
class AnalysisRequestOptions:
    """Per-call options for the orchestrator."""

    analysis_type: AnalysisType = AnalysisType.IMPACT
    provider: Optional[str] = None  # Force a specific provider
    skip_cache: bool = False
    timeout: Optional[float] = None
    security_data: Optional[Dict[str, SecurityVulnerabilityData]] = None
    additional_context: Optional[str] = None


@dataclass
class ChunkProgress:
    """Progress report emitted after each chunk of a chunked analysis."""

    current_chunk: int
    total_chunks: int
    percent_complete: int
    packages_processed: int
    total_packages: int


@dataclass
class ChunkingConfig:
    """Per-call chunking overrides; ``None`` fields fall back to configuration."""

    enabled: bool = True
    threshold: Optional[int] = None
    chunk_size: Optional[int] = None
    max_concurrency: Optional[int] = None
    on_progress: Optional[Callable[[ChunkProgress], None]] = None


@dataclass
class MultiAnalysisResult:
    """Results of running every analysis type over the same packages."""

    primary: AnalysisResult
    providers: List[str]
    results: Dict[AnalysisType, AnalysisResult] = field(default_factory=dict)
    secondary: Optional[AnalysisResult] = None
    merged: Optional[AnalysisResult] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ServiceStatus:
    """Snapshot of orchestrator state."""

    enabled: bool
    providers: List[ProviderInfo]
    active_provider: Optional[str]
    cache_enabled: bool
    cache_stats: CacheStats
    fallback_enabled: bool
