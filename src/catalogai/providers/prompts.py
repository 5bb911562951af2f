"""
Prompt construction for CLI-backed analysis providers.

The prompt embeds the package list, a workspace summary, an instruction block
for the requested analysis type, the JSON response schema and, when security
data is present, a vulnerability briefing. Provider variants append their own
guidance to the result of ``build_prompt``.

catalogai/src/catalogai/providers/prompts.py
"""

from typing import Dict, List

from ..models import AnalysisContext, AnalysisType, SecurityVulnerabilityData

__all__ = ["RESPONSE_SCHEMA", "ANALYSIS_INSTRUCTIONS", "build_prompt", "format_package_list", "format_security_briefing"]

RESPONSE_SCHEMA = """Respond in JSON format with this structure:
{
  "summary": "Brief overall summary",
  "recommendations": [
    {
      "package": "package-name",
      "currentVersion": "x.y.z",
      "targetVersion": "a.b.c",
      "action": "update|skip|review|defer",
      "reason": "explanation",
      "riskLevel": "low|medium|high|critical",
      "breakingChanges": ["change1", "change2"],
      "securityFixes": ["fix1"],
      "estimatedEffort": "low|medium|high"
    }
  ],
  "warnings": ["warning1", "warning2"]
}"""

ANALYSIS_INSTRUCTIONS: Dict[AnalysisType, str] = {
    AnalysisType.IMPACT: """Analyze the impact of updating these packages in a pnpm workspace.

For each package, provide:
1. Risk level (low/medium/high/critical)
2. Potential breaking changes
3. Recommended action (update/skip/review/defer)
4. Reason for recommendation
5. Estimated migration effort""",
    AnalysisType.SECURITY: """Analyze the security implications of these package updates.

For each package:
1. Check if the update fixes known vulnerabilities
2. Assess if the new version introduces security risks
3. Evaluate the package maintainer reputation
4. Check for suspicious changes""",
    AnalysisType.COMPATIBILITY: """Analyze the compatibility of these package updates.

For each package:
1. Check peer dependency compatibility
2. Identify potential conflicts with other packages
3. Assess API compatibility
4. Check for deprecated features""",
    AnalysisType.RECOMMEND: """Provide prioritized recommendations for updating these packages.
Context: pnpm workspace with catalog-based dependency management.

Consider:
1. Update priority based on security, features, and stability
2. Grouping related packages for atomic updates
3. Best practices for the specific package ecosystem
4. Risk vs. benefit analysis""",
}


def format_package_list(context: AnalysisContext) -> str:
    lines = []
    for pkg in context.packages:
        catalog = f", catalog: {pkg.catalog_name}" if pkg.catalog_name else ""
        lines.append(
            f"- {pkg.name}: {pkg.current_version} -> {pkg.target_version} ({pkg.update_type.value}{catalog})"
        )
    return "\n".join(lines)


def _format_vulnerable_package(data: SecurityVulnerabilityData) -> List[str]:
    lines = [f"- {data.package_name}@{data.version}: {data.total} known vulnerabilit{'y' if data.total == 1 else 'ies'}"]
    for vuln in data.vulnerabilities:
        ids = ", ".join([vuln.id] + [alias for alias in vuln.aliases if alias != vuln.id])
        line = f"  * [{vuln.severity}] {ids}"
        if vuln.summary:
            line += f": {vuln.summary}"
        if vuln.fixed_versions:
            line += f" (fixed in {', '.join(vuln.fixed_versions)})"
        lines.append(line)

    safe = data.safe_version
    if safe:
        scope = "same major" if safe.same_major else "different major"
        if safe.same_minor:
            scope = "same minor"
        lines.append(f"  Verified safe version: {safe.version} ({scope}, {safe.versions_checked} versions checked)")
        for skipped in safe.skipped_versions:
            ids = ", ".join(v.get("id", "?") for v in skipped.vulnerabilities)
            lines.append(f"  Skipped {skipped.version}: vulnerable ({ids})")
    return lines


def format_security_briefing(context: AnalysisContext) -> str:
    """Vulnerability briefing for the target versions, or an empty string."""
    affected = []
    for pkg in context.packages:
        data = context.security_for(pkg)
        if data and data.total:
            affected.extend(_format_vulnerable_package(data))

    if not affected:
        return ""

    header = (
        "Security data (verified against a vulnerability database):\n"
        "The following target versions have known vulnerabilities. Prefer the verified safe "
        "version when one is listed, and recommend \"review\" or \"skip\" for critical issues."
    )
    return header + "\n" + "\n".join(affected)


def build_prompt(context: AnalysisContext) -> str:
    """Build the provider-independent part of an analysis prompt."""
    workspace = context.workspace_info
    sections = [
        ANALYSIS_INSTRUCTIONS[context.analysis_type],
        f"Workspace: {workspace.name}\nPackages: {workspace.package_count}\nCatalogs: {workspace.catalog_count}",
        f"Updates to analyze:\n{format_package_list(context)}",
    ]

    briefing = format_security_briefing(context)
    if briefing:
        sections.append(briefing)

    if context.additional_context:
        sections.append(f"Additional context:\n{context.additional_context}")

    if not context.options.include_breaking_changes:
        sections.append("Breaking change details are not required; leave breakingChanges empty.")

    sections.append(RESPONSE_SCHEMA)
    return "\n\n".join(sections)
