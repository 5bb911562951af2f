"""Tests for the CLI-backed providers and their shared template."""

import json
import subprocess
from typing import List

import pytest

from catalogai.constants import calculate_backoff_delay
from catalogai.errors import ProviderUnavailableError
from catalogai.models import (
    AnalysisType,
    RecommendedAction,
    SafeVersionInfo,
    SecurityVulnerabilityData,
    Vulnerability,
)
from catalogai.providers import ClaudeProvider, CodexProvider, GeminiProvider
from catalogai.providers.prompts import build_prompt

GOOD_OUTPUT = json.dumps(
    {
        "summary": "Safe patch",
        "recommendations": [
            {
                "package": "lodash",
                "action": "update",
                "reason": "Patch release with security fix",
                "riskLevel": "low",
            }
        ],
        "warnings": [],
    }
)


class FakeProcess:
    """Stand-in for subprocess.Popen driven by a scripted outcome."""

    def __init__(self, args, outcome, **kwargs):
        self.args = args
        self.kwargs = kwargs
        self.outcome = outcome
        self.returncode = None
        self.killed = False

    def communicate(self, timeout=None):
        if self.killed:
            return "", ""
        if self.outcome == "timeout":
            raise subprocess.TimeoutExpired(self.args, timeout)
        stdout, stderr, code = self.outcome
        self.returncode = code
        return stdout, stderr

    def kill(self):
        self.killed = True


@pytest.fixture
def popen_script(monkeypatch):
    """Queue outcomes for successive Popen calls; returns the list of spawned processes."""
    outcomes: List = []
    spawned: List[FakeProcess] = []

    def fake_popen(args, **kwargs):
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        process = FakeProcess(args, outcome, **kwargs)
        spawned.append(process)
        return process

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    fake_popen.outcomes = outcomes
    fake_popen.spawned = spawned
    return fake_popen


@pytest.fixture
def sleeps(monkeypatch):
    recorded: List[float] = []
    monkeypatch.setattr("catalogai.providers.base.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def installed(monkeypatch):
    """Pretend the given commands are on PATH."""

    def install(*commands):
        monkeypatch.setattr(
            "catalogai.providers.base.shutil.which",
            lambda cmd: f"/usr/local/bin/{cmd}" if cmd in commands else None,
        )

    return install


class TestArguments:
    def test_claude_args(self):
        args = ClaudeProvider(model="claude-opus-4").build_args("PROMPT")
        assert args == [
            "--dangerously-skip-permissions",
            "--model",
            "claude-opus-4",
            "--output-format",
            "text",
            "-p",
            "PROMPT",
        ]

    def test_gemini_args(self):
        args = GeminiProvider(max_tokens=2048).build_args("PROMPT")
        assert args == ["--sandbox", "--model", "gemini-2.5-pro", "--max-output-tokens", "2048", "-p", "PROMPT"]

    def test_codex_args(self):
        args = CodexProvider().build_args("PROMPT")
        assert args == ["PROMPT", "--approval-mode", "full-auto", "--quiet", "--model", "o3", "--max-tokens", "4096"]

    def test_custom_args_precede_prompt(self):
        args = GeminiProvider(sandbox=False, custom_args=["--yolo"]).build_args("PROMPT")
        assert args[-3:] == ["--yolo", "-p", "PROMPT"]
        assert "--sandbox" not in args

    def test_codex_rejects_unknown_approval_mode(self):
        with pytest.raises(ValueError):
            CodexProvider(approval_mode="reckless")


class TestAvailability:
    def test_env_var_override(self, monkeypatch, temp_dir, installed):
        installed()
        executable = temp_dir / "claude"
        executable.write_text("#!/bin/sh\n")
        monkeypatch.setenv("CLAUDE_PATH", str(executable))

        provider = ClaudeProvider()
        assert provider.is_available()
        assert provider.resolve_executable() == (str(executable), "envvar")

    def test_alternate_command(self, installed):
        installed("gemini-cli")
        provider = GeminiProvider()

        assert provider.is_available()
        assert provider.resolve_executable() == ("/usr/local/bin/gemini-cli", "which")

    def test_availability_is_memoized_until_cleared(self, installed):
        installed()
        provider = CodexProvider()
        assert not provider.is_available()

        installed("codex")
        assert not provider.is_available()
        provider.clear_cache()
        assert provider.is_available()

    def test_get_info_reads_version(self, monkeypatch, installed):
        installed("claude")
        monkeypatch.setattr(
            subprocess,
            "run",
            lambda args, **kwargs: subprocess.CompletedProcess(args, 0, stdout="1.0.43 (Claude Code)\n", stderr=""),
        )

        info = ClaudeProvider().get_info()
        assert info.available
        assert info.version == "1.0.43"
        assert info.priority == 100
        assert info.path == "/usr/local/bin/claude"

    def test_unavailable_info_has_zero_priority(self, installed):
        installed()
        info = GeminiProvider().get_info()
        assert not info.available
        assert info.priority == 0

    def test_analyze_raises_when_unavailable(self, installed, make_context, patch_update):
        installed()
        with pytest.raises(ProviderUnavailableError):
            ClaudeProvider().analyze(make_context([patch_update]))


class TestExecution:
    def test_successful_analysis(self, installed, popen_script, sleeps, make_context, patch_update):
        installed("claude")
        popen_script.outcomes.append((GOOD_OUTPUT, "", 0))

        result = ClaudeProvider().analyze(make_context([patch_update]))

        assert result.provider == "claude"
        assert result.recommendations[0].action is RecommendedAction.UPDATE
        process = popen_script.spawned[0]
        assert process.args[0] == "/usr/local/bin/claude"
        assert process.kwargs["stdin"] == subprocess.DEVNULL
        assert process.kwargs["env"]["NO_COLOR"] == "1"
        assert process.kwargs["env"]["FORCE_COLOR"] == "0"
        assert sleeps == []

    def test_stderr_used_when_stdout_empty(self, installed, popen_script, sleeps, make_context, patch_update):
        installed("codex")
        popen_script.outcomes.append(("", GOOD_OUTPUT, 0))

        result = CodexProvider().analyze(make_context([patch_update]))
        assert result.summary == "Safe patch"

    def test_retries_then_succeeds(self, installed, popen_script, sleeps, make_context, patch_update):
        installed("gemini")
        popen_script.outcomes.extend([("", "rate limited", 1), (GOOD_OUTPUT, "", 0)])

        result = GeminiProvider().analyze(make_context([patch_update]))

        assert result.confidence > 0.1
        assert len(popen_script.spawned) == 2
        assert sleeps == [1.0]

    def test_exhausted_retries_give_degraded_result(
        self, installed, popen_script, sleeps, make_context, sample_packages
    ):
        installed("claude")
        popen_script.outcomes.extend([("", "boom", 2)] * 3)

        result = ClaudeProvider(max_retries=3).analyze(make_context(sample_packages))

        assert sleeps == [1.0, 2.0]
        assert result.confidence == pytest.approx(0.1)
        assert len(result.recommendations) == len(sample_packages)
        assert all(r.action is RecommendedAction.REVIEW for r in result.recommendations)
        assert result.warnings[0].startswith("Claude CLI error:")
        assert "boom" in result.warnings[0]

    def test_timeout_is_not_retried(self, installed, popen_script, sleeps, make_context, patch_update):
        installed("codex")
        popen_script.outcomes.extend(["timeout", (GOOD_OUTPUT, "", 0)])

        result = CodexProvider(timeout=5).analyze(make_context([patch_update]))

        assert len(popen_script.spawned) == 1
        assert popen_script.spawned[0].killed
        assert sleeps == []
        assert result.confidence == pytest.approx(0.1)
        assert "timed out after 5s" in result.warnings[0]

    def test_spawn_failure_is_retried(self, installed, popen_script, sleeps, make_context, patch_update):
        installed("claude")
        popen_script.outcomes.extend([FileNotFoundError("claude vanished"), (GOOD_OUTPUT, "", 0)])

        result = ClaudeProvider().analyze(make_context([patch_update]))

        assert result.provider == "claude"
        assert sleeps == [1.0]

    def test_malformed_output_keeps_raw_text(self, installed, popen_script, sleeps, make_context, sample_packages):
        installed("claude")
        popen_script.outcomes.append(("I think these look fine.", "", 0))

        result = ClaudeProvider().analyze(make_context(sample_packages))

        assert len(result.recommendations) == len(sample_packages)
        assert all(r.action is RecommendedAction.REVIEW for r in result.recommendations)
        assert result.details == "I think these look fine."


@pytest.mark.parametrize("attempt,expected", [(1, 1.0), (2, 2.0), (3, 4.0), (4, 8.0), (5, 10.0)])
def test_backoff_delay(attempt, expected):
    assert calculate_backoff_delay(attempt) == expected


class TestPrompts:
    def test_prompt_lists_packages_and_schema(self, make_context, sample_packages):
        prompt = build_prompt(make_context(sample_packages, AnalysisType.COMPATIBILITY))

        assert "- react: 17.0.2 -> 18.2.0 (major, catalog: react17)" in prompt
        assert "Workspace: acme-monorepo" in prompt
        assert "peer dependency compatibility" in prompt
        assert '"recommendations"' in prompt
        assert "Security data" not in prompt

    def test_prompt_includes_vulnerability_briefing(self, make_context, patch_update):
        security = SecurityVulnerabilityData(
            package_name="lodash",
            version="4.17.21",
            vulnerabilities=[
                Vulnerability(
                    id="GHSA-35jh-r3h4-6jhm",
                    severity="HIGH",
                    aliases=["CVE-2021-23337"],
                    summary="Command injection",
                    fixed_versions=["4.17.22"],
                )
            ],
            safe_version=SafeVersionInfo(version="4.17.22", same_major=True, same_minor=True, versions_checked=2),
        )
        context = make_context([patch_update], security_data={"lodash@4.17.21": security})

        prompt = build_prompt(context)
        assert "[HIGH] GHSA-35jh-r3h4-6jhm, CVE-2021-23337" in prompt
        assert "fixed in 4.17.22" in prompt
        assert "Verified safe version: 4.17.22 (same minor" in prompt

    def test_variant_guidance_is_appended(self, make_context, patch_update):
        prompt = CodexProvider().build_prompt(make_context([patch_update]))
        assert prompt.rstrip().endswith("Return only valid JSON response")
