"""Tests for AI tool detection."""

import subprocess
from pathlib import Path

import pytest

from catalogai.detector import ProviderDefinition, ProviderDetector, default_definitions, extract_version
from catalogai.models import AnalysisType


@pytest.fixture
def no_which(monkeypatch):
    monkeypatch.setattr("catalogai.detector.shutil.which", lambda cmd: None)


@pytest.fixture
def fake_run(monkeypatch):
    """subprocess.run stub: `type` reports nothing, `--version` prints 2.1.0."""
    calls = []

    def run(args, **kwargs):
        calls.append(args)
        if args[0] == "bash":
            return subprocess.CompletedProcess(args, 1, stdout="", stderr="")
        return subprocess.CompletedProcess(args, 0, stdout="tool v2.1.0\n", stderr="")

    monkeypatch.setattr(subprocess, "run", run)
    return calls


def _definition(name="gemini", priority=100, **kwargs) -> ProviderDefinition:
    return ProviderDefinition(
        name=name,
        command=name,
        priority=priority,
        capabilities=[AnalysisType.IMPACT],
        env_var=f"{name.upper()}_PATH",
        **kwargs,
    )


@pytest.mark.parametrize(
    "output,expected",
    [
        ("gemini 0.1.12", "0.1.12"),
        ("v1.2.3-beta.1 (build 42)", "1.2.3-beta.1"),
        ("Codex CLI nightly", "Codex CLI nightly"),
        ("", None),
    ],
)
def test_extract_version(output, expected):
    assert extract_version(output) == expected


def test_extract_version_truncates_unversioned_output():
    assert len(extract_version("x" * 80)) == 50


def test_default_definitions_priority_order(temp_dir: Path):
    definitions = default_definitions(home=temp_dir, is_windows=False)

    assert [d.name for d in definitions] == ["gemini", "claude", "codex", "cursor"]
    assert [d.priority for d in definitions] == [100, 80, 60, 40]
    assert AnalysisType.SECURITY not in definitions[2].capabilities
    assert definitions[3].application_paths == ["/Applications/Cursor.app/Contents/MacOS/Cursor"]
    assert str(temp_dir / ".local" / "bin" / "claude") in definitions[1].known_paths


def test_windows_known_paths(temp_dir: Path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(temp_dir / "Roaming"))
    definitions = default_definitions(home=temp_dir, is_windows=True)

    assert definitions[0].known_paths[0].endswith("gemini.cmd")
    assert definitions[3].application_paths[0].endswith("Cursor.exe")


class TestStrategies:
    def test_env_var_wins(self, monkeypatch, temp_dir, fake_run):
        executable = temp_dir / "gemini"
        executable.write_text("")
        monkeypatch.setenv("GEMINI_PATH", str(executable))
        monkeypatch.setattr("catalogai.detector.shutil.which", lambda cmd: "/usr/bin/gemini")

        result = ProviderDetector([_definition()], is_windows=False).detect(_definition())

        assert result.found
        assert result.detection_method == "envvar"
        assert result.path == str(executable)
        assert result.version == "2.1.0"

    def test_which(self, monkeypatch, fake_run):
        monkeypatch.setattr("catalogai.detector.shutil.which", lambda cmd: f"/usr/bin/{cmd}")

        result = ProviderDetector([_definition()], is_windows=False).detect(_definition())

        assert result.detection_method == "which"
        assert result.path == "/usr/bin/gemini"

    def test_alias(self, monkeypatch, no_which):
        def run(args, **kwargs):
            if args[0] == "bash":
                return subprocess.CompletedProcess(args, 0, stdout="claude is aliased to `npx claude`", stderr="")
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(subprocess, "run", run)
        definition = _definition("claude")

        result = ProviderDetector([definition], is_windows=False).detect(definition)

        assert result.detection_method == "alias"
        assert result.path == "alias"
        assert result.version is None

    def test_alias_skipped_on_windows(self, no_which, fake_run):
        definition = _definition()
        result = ProviderDetector([definition], is_windows=True).detect(definition)

        assert not result.found
        assert not any(call[0] == "bash" for call in fake_run)

    def test_known_path(self, temp_dir, no_which, fake_run):
        binary = temp_dir / "bin" / "codex"
        binary.parent.mkdir()
        binary.write_text("")
        definition = _definition("codex", known_paths=[str(temp_dir / "missing"), str(binary)])

        result = ProviderDetector([definition], is_windows=False).detect(definition)

        assert result.detection_method == "known-path"
        assert result.path == str(binary)

    def test_application_path(self, temp_dir, no_which, fake_run):
        app = temp_dir / "Cursor"
        app.write_text("")
        definition = _definition("cursor", application_paths=[str(app)])

        result = ProviderDetector([definition], is_windows=False).detect(definition)

        assert result.detection_method == "application"
        assert result.version is None

    def test_not_found(self, no_which, fake_run):
        definition = _definition()
        result = ProviderDetector([definition], is_windows=False).detect(definition)
        assert not result.found


class TestDetectorQueries:
    @pytest.fixture
    def detector(self, monkeypatch, fake_run):
        monkeypatch.setattr(
            "catalogai.detector.shutil.which",
            lambda cmd: f"/usr/bin/{cmd}" if cmd in ("claude", "codex") else None,
        )
        return ProviderDetector(
            [_definition("gemini", 100), _definition("claude", 80), _definition("codex", 60)],
            is_windows=False,
        )

    def test_sorted_by_priority_with_unavailable_last(self, detector):
        infos = detector.detect_available_providers()

        assert [i.name for i in infos] == ["claude", "codex", "gemini"]
        assert infos[-1].priority == 0
        assert not infos[-1].available

    def test_best_and_available(self, detector):
        assert detector.get_best_provider().name == "claude"
        assert [i.name for i in detector.get_available_providers()] == ["claude", "codex"]
        assert detector.is_provider_available("codex")
        assert not detector.is_provider_available("gemini")
        assert not detector.is_provider_available("aider")

    def test_get_provider(self, detector):
        assert detector.get_provider("claude").path == "/usr/bin/claude"
        assert detector.get_provider("aider") is None

    def test_detection_summary(self, detector):
        summary = detector.get_detection_summary()

        assert summary.splitlines()[0] == "Available AI tools:"
        assert "  - claude (2.1.0) at /usr/bin/claude" in summary
        assert "gemini" not in summary

    def test_empty_summary_when_nothing_found(self, no_which, fake_run):
        assert ProviderDetector([_definition()], is_windows=False).get_detection_summary() == ""
