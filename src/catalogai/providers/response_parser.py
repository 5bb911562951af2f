"""
Resilient parsing of free-form AI tool output into structured results.

Model output is untrusted text. JSON is extracted with several strategies in
order of strictness, validated structurally, then normalized against the
input packages so every recommendation names a known package.

catalogai/src/catalogai/providers/response_parser.py
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from ..constants import PARSE_FALLBACK_CONFIDENCE
from ..errors import ResponseParseError
from ..models import (
    AnalysisContext,
    AnalysisResult,
    EffortLevel,
    PackageUpdateInfo,
    Recommendation,
    RecommendedAction,
    RiskLevel,
)

logger = logging.getLogger(__name__)

__all__ = [
    "extract_json",
    "is_valid_response",
    "normalize_action",
    "normalize_risk_level",
    "normalize_effort",
    "calculate_confidence",
    "parse_response",
    "create_fallback_result",
]

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_GREEDY_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_STRING_FIELDS = ("action", "riskLevel", "reason", "estimatedEffort", "currentVersion", "targetVersion")
_LIST_FIELDS = ("breakingChanges", "securityFixes")


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index of the brace closing the object opened at ``start``, ignoring braces inside strings."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _balanced_objects(text: str):
    """Top-level balanced ``{...}`` spans in order of appearance."""
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end is None:
            start = text.find("{", start + 1)
            continue
        yield text[start : end + 1]
        start = text.find("{", end + 1)


def _candidates(text: str):
    stripped = text.strip()
    yield "whole", stripped
    for match in _FENCED_BLOCK.finditer(text):
        yield "fenced", match.group(1).strip()
    for balanced in _balanced_objects(text):
        yield "balanced", balanced
    greedy = _GREEDY_OBJECT.search(text)
    if greedy:
        yield "greedy", greedy.group(0)


def is_valid_response(data: Any) -> bool:
    """Structural check of a decoded response object."""
    if not isinstance(data, dict):
        return False

    recommendations = data.get("recommendations")
    if not isinstance(recommendations, list):
        return False

    if "summary" in data and data["summary"] is not None and not isinstance(data["summary"], str):
        return False
    if "warnings" in data and data["warnings"] is not None and not isinstance(data["warnings"], list):
        return False

    for rec in recommendations:
        if not isinstance(rec, dict):
            return False
        name = rec.get("package", rec.get("name"))
        if not isinstance(name, str) or not name:
            return False
        for key in _STRING_FIELDS:
            if rec.get(key) is not None and not isinstance(rec[key], str):
                return False
        for key in _LIST_FIELDS:
            if rec.get(key) is not None and not isinstance(rec[key], list):
                return False
    return True


def extract_json(text: str) -> Dict[str, Any]:
    """Return the first candidate object that decodes and validates.

    Raises:
        ResponseParseError: no strategy produced a valid response object
    """
    if not text or not text.strip():
        raise ResponseParseError("empty response")

    for strategy, candidate in _candidates(text):
        data = _loads_object(candidate)
        if data is not None and is_valid_response(data):
            logger.debug(f"Parsed AI response using '{strategy}' strategy")
            return data

    raise ResponseParseError("no valid JSON object found in response")


def normalize_action(value: Any) -> RecommendedAction:
    try:
        return RecommendedAction(str(value).strip().lower())
    except ValueError:
        return RecommendedAction.REVIEW


def normalize_risk_level(value: Any) -> RiskLevel:
    try:
        return RiskLevel(str(value).strip().lower())
    except ValueError:
        return RiskLevel.MEDIUM


def normalize_effort(value: Any) -> EffortLevel:
    try:
        return EffortLevel(str(value).strip().lower())
    except ValueError:
        return EffortLevel.MEDIUM


def _completeness(rec: Dict[str, Any]) -> float:
    score = 0.0
    if rec.get("package") or rec.get("name"):
        score += 0.2
    if rec.get("action"):
        score += 0.2
    reason = rec.get("reason")
    if isinstance(reason, str) and len(reason) > 10:
        score += 0.3
    if rec.get("riskLevel"):
        score += 0.15
    if rec.get("breakingChanges"):
        score += 0.15
    return score


def calculate_confidence(raw_recommendations: List[Dict[str, Any]], expected_count: int) -> float:
    """Score response quality from coverage and per-recommendation completeness."""
    if not raw_recommendations or expected_count <= 0:
        return 0.0

    coverage = min(1.0, len(raw_recommendations) / expected_count)
    completeness = sum(_completeness(rec) for rec in raw_recommendations) / len(raw_recommendations)
    return min(max(coverage * 0.3 + completeness * 0.7, 0.0), 1.0)


def _str_list(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [str(v) for v in values if v is not None]


def _review_recommendation(pkg: PackageUpdateInfo, reason: str) -> Recommendation:
    return Recommendation(
        package=pkg.name,
        current_version=pkg.current_version,
        target_version=pkg.target_version,
        action=RecommendedAction.REVIEW,
        reason=reason,
        risk_level=RiskLevel.MEDIUM,
    )


def _match_position(
    rec: Dict[str, Any],
    candidates: List[int],
    answered: Dict[int, Recommendation],
    packages: List[PackageUpdateInfo],
) -> Optional[int]:
    """Input index a recommendation answers, or None when every entry with its name is taken.

    A name listed once per catalog is told apart by ``currentVersion``.
    """
    open_positions = [index for index in candidates if index not in answered]
    if not open_positions:
        return None
    current = rec.get("currentVersion")
    for index in open_positions:
        if current and packages[index].current_version == current:
            return index
    return open_positions[0]


def parse_response(
    text: str,
    context: AnalysisContext,
    provider: str,
    processing_time_ms: Optional[float] = None,
) -> AnalysisResult:
    """Parse raw tool output into an AnalysisResult.

    Falls back to a low-confidence review-everything result when no valid JSON
    can be recovered from the text.
    """
    try:
        data = extract_json(text)
    except ResponseParseError as e:
        logger.warning(f"{provider}: could not parse response ({e}); using fallback result")
        return create_fallback_result(context, provider, text)

    raw_recommendations = data["recommendations"]
    positions: Dict[str, List[int]] = {}
    for index, pkg in enumerate(context.packages):
        positions.setdefault(pkg.name, []).append(index)
    warnings = _str_list(data.get("warnings"))

    answered: Dict[int, Recommendation] = {}
    for rec in raw_recommendations:
        name = rec.get("package") or rec.get("name")
        if name not in positions:
            warnings.append(f"Ignored recommendation for unknown package '{name}'")
            continue
        index = _match_position(rec, positions[name], answered, context.packages)
        if index is None:
            continue
        pkg = context.packages[index]
        answered[index] = Recommendation(
            package=name,
            current_version=rec.get("currentVersion") or pkg.current_version,
            target_version=rec.get("targetVersion") or pkg.target_version,
            action=normalize_action(rec.get("action")),
            reason=rec.get("reason") or "",
            risk_level=normalize_risk_level(rec.get("riskLevel")),
            breaking_changes=_str_list(rec.get("breakingChanges")),
            security_fixes=_str_list(rec.get("securityFixes")),
            estimated_effort=normalize_effort(rec.get("estimatedEffort")),
        )

    recommendations = []
    for index, pkg in enumerate(context.packages):
        if index in answered:
            recommendations.append(answered[index])
        else:
            warnings.append(f"No recommendation returned for {pkg.name}; manual review recommended")
            recommendations.append(_review_recommendation(pkg, "No recommendation returned by AI provider"))

    return AnalysisResult(
        provider=provider,
        analysis_type=context.analysis_type,
        recommendations=recommendations,
        summary=data.get("summary") or "Analysis completed",
        confidence=calculate_confidence(raw_recommendations, len(context.packages)),
        details=data.get("details") if isinstance(data.get("details"), str) else None,
        warnings=warnings,
        processing_time_ms=processing_time_ms,
    )


def create_fallback_result(context: AnalysisContext, provider: str, raw_response: str) -> AnalysisResult:
    """Low-confidence result used when a response cannot be parsed."""
    return AnalysisResult(
        provider=provider,
        analysis_type=context.analysis_type,
        recommendations=[
            _review_recommendation(pkg, "Unable to parse response from AI provider, manual review recommended")
            for pkg in context.packages
        ],
        summary="Analysis completed with parsing issues",
        confidence=PARSE_FALLBACK_CONFIDENCE,
        details=raw_response,
        warnings=["AI response could not be fully parsed"],
    )
