"""
Detection of AI command-line tools installed on this machine.

Each known tool is probed with several strategies in order; the first hit
wins:

1. ``<NAME>_PATH`` environment variable pointing at an existing file
2. ``shutil.which`` on the command name
3. shell alias or function (``bash -c "type <cmd>"``, POSIX only)
4. well-known install locations (Homebrew, npm global, ~/.local/bin, ...)
5. application bundle paths for GUI tools

catalogai/src/catalogai/detector.py
"""

import logging
import os
import re
import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .constants import DETECTION_TIMEOUT_SECONDS, VERSION_CHECK_TIMEOUT_SECONDS
from .models import AnalysisType, ProviderInfo

logger = logging.getLogger(__name__)

__all__ = [
    "ProviderDefinition",
    "DetectionResult",
    "ProviderDetector",
    "default_definitions",
    "extract_version",
]

VERSION_PATTERN = re.compile(r"v?(\d+\.\d+\.\d+(?:-[\w.]+)?)")

_ALL_TYPES = [AnalysisType.IMPACT, AnalysisType.SECURITY, AnalysisType.COMPATIBILITY, AnalysisType.RECOMMEND]


def extract_version(output: Optional[str]) -> Optional[str]:
    """Pull a semantic version out of ``--version`` output.

    Falls back to the first 50 characters of the output when no version
    number is present.
    """
    if not output:
        return None
    match = VERSION_PATTERN.search(output)
    if match:
        return match.group(1)
    return output.strip()[:50] or None


@dataclass
class ProviderDefinition:
    """How to find one AI tool."""

    name: str
    command: str
    priority: int
    capabilities: List[AnalysisType]
    env_var: Optional[str] = None
    known_paths: List[str] = field(default_factory=list)
    application_paths: List[str] = field(default_factory=list)
    version_arg: str = "--version"


@dataclass
class DetectionResult:
    found: bool
    path: Optional[str] = None
    version: Optional[str] = None
    detection_method: Optional[str] = None


def _known_paths(command: str, home: Path, is_windows: bool) -> List[str]:
    if is_windows:
        app_data = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        local_app_data = os.environ.get("LOCALAPPDATA") or str(home / "AppData" / "Local")
        program_files = os.environ.get("ProgramFiles") or "C:\\Program Files"
        return [
            os.path.join(app_data, "npm", f"{command}.cmd"),
            os.path.join(app_data, "npm", command),
            os.path.join(local_app_data, "Programs", command, f"{command}.exe"),
            os.path.join(program_files, command, f"{command}.exe"),
            str(home / ".npm-global" / "bin" / f"{command}.cmd"),
        ]
    return [
        f"/opt/homebrew/bin/{command}",
        f"/usr/local/bin/{command}",
        str(home / ".npm-global" / "bin" / command),
        str(home / ".local" / "bin" / command),
    ]


def default_definitions(home: Optional[Path] = None, is_windows: Optional[bool] = None) -> List[ProviderDefinition]:
    """Known AI tools, highest priority first."""
    home = home or Path.home()
    if is_windows is None:
        is_windows = sys.platform == "win32"

    if is_windows:
        local_app_data = os.environ.get("LOCALAPPDATA") or str(home / "AppData" / "Local")
        program_files = os.environ.get("ProgramFiles") or "C:\\Program Files"
        cursor_paths = [
            os.path.join(local_app_data, "Programs", "cursor", "Cursor.exe"),
            os.path.join(program_files, "Cursor", "Cursor.exe"),
        ]
        cursor_apps = [os.path.join(local_app_data, "Programs", "cursor", "Cursor.exe")]
    else:
        cursor_paths = ["/opt/homebrew/bin/cursor", "/usr/local/bin/cursor"]
        cursor_apps = ["/Applications/Cursor.app/Contents/MacOS/Cursor"]

    return [
        ProviderDefinition(
            name="gemini",
            command="gemini",
            env_var="GEMINI_PATH",
            known_paths=_known_paths("gemini", home, is_windows),
            priority=100,
            capabilities=list(_ALL_TYPES),
        ),
        ProviderDefinition(
            name="claude",
            command="claude",
            env_var="CLAUDE_PATH",
            known_paths=_known_paths("claude", home, is_windows),
            priority=80,
            capabilities=list(_ALL_TYPES),
        ),
        ProviderDefinition(
            name="codex",
            command="codex",
            env_var="CODEX_PATH",
            known_paths=_known_paths("codex", home, is_windows),
            priority=60,
            capabilities=[AnalysisType.IMPACT, AnalysisType.COMPATIBILITY, AnalysisType.RECOMMEND],
        ),
        ProviderDefinition(
            name="cursor",
            command="cursor",
            env_var="CURSOR_PATH",
            known_paths=cursor_paths,
            application_paths=cursor_apps,
            priority=40,
            capabilities=[AnalysisType.IMPACT, AnalysisType.RECOMMEND],
        ),
    ]


class ProviderDetector:
    """Detects which AI tools are installed and how to reach them."""

    def __init__(
        self,
        definitions: Optional[List[ProviderDefinition]] = None,
        is_windows: Optional[bool] = None,
        home: Optional[Path] = None,
    ):
        self.is_windows = sys.platform == "win32" if is_windows is None else is_windows
        self.home = home or Path.home()
        self.definitions = definitions if definitions is not None else default_definitions(self.home, self.is_windows)
        self._by_name: Dict[str, ProviderDefinition] = {d.name: d for d in self.definitions}

    def detect_available_providers(self) -> List[ProviderInfo]:
        """Every known tool, sorted by descending priority (unavailable ones last)."""
        results = [self._to_info(definition, self.detect(definition)) for definition in self.definitions]
        return sorted(results, key=lambda info: info.priority, reverse=True)

    def get_available_providers(self) -> List[ProviderInfo]:
        return [info for info in self.detect_available_providers() if info.available]

    def is_provider_available(self, name: str) -> bool:
        definition = self._by_name.get(name)
        if definition is None:
            return False
        return self.detect(definition).found

    def get_best_provider(self) -> Optional[ProviderInfo]:
        available = self.get_available_providers()
        return available[0] if available else None

    def get_provider(self, name: str) -> Optional[ProviderInfo]:
        definition = self._by_name.get(name)
        if definition is None:
            return None
        return self._to_info(definition, self.detect(definition))

    def get_detection_summary(self) -> str:
        """Human-readable list of available tools, or an empty string."""
        available = self.get_available_providers()
        if not available:
            return ""

        lines = ["Available AI tools:"]
        for info in available:
            version = f" ({info.version})" if info.version else ""
            path = f" at {info.path}" if info.path else ""
            lines.append(f"  - {info.name}{version}{path}")
        return "\n".join(lines)

    def detect(self, definition: ProviderDefinition) -> DetectionResult:
        """Run the detection strategies for one tool."""
        if definition.env_var:
            env_path = os.environ.get(definition.env_var)
            if env_path and os.path.exists(os.path.expanduser(env_path)):
                return self._found(definition, env_path, "envvar")

        which_path = shutil.which(definition.command)
        if which_path:
            return self._found(definition, which_path, "which")

        if not self.is_windows and self._is_shell_alias(definition.command):
            return self._found(definition, definition.command, "alias", display_path="alias")

        for known_path in definition.known_paths:
            if os.path.exists(os.path.expanduser(known_path)):
                return self._found(definition, known_path, "known-path")

        for app_path in definition.application_paths:
            if os.path.exists(app_path):
                return DetectionResult(found=True, path=app_path, detection_method="application")

        logger.debug(f"{definition.name} not found")
        return DetectionResult(found=False)

    def _found(
        self, definition: ProviderDefinition, path: str, method: str, display_path: Optional[str] = None
    ) -> DetectionResult:
        logger.debug(f"Detected {definition.name} via {method}: {path}")
        return DetectionResult(
            found=True,
            path=display_path or path,
            version=self.get_version(path, definition.version_arg),
            detection_method=method,
        )

    def _is_shell_alias(self, command: str) -> bool:
        try:
            completed = subprocess.run(
                ["bash", "-c", f"type {shlex.quote(command)} 2>/dev/null"],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=DETECTION_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.SubprocessError):
            return False
        return "alias" in completed.stdout or "function" in completed.stdout

    def get_version(self, command_or_path: str, version_arg: str = "--version") -> Optional[str]:
        try:
            completed = subprocess.run(
                [os.path.expanduser(command_or_path), version_arg],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=VERSION_CHECK_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Version check failed for {command_or_path}: {e}")
            return None
        return extract_version(completed.stdout or completed.stderr)

    @staticmethod
    def _to_info(definition: ProviderDefinition, detection: DetectionResult) -> ProviderInfo:
        return ProviderInfo(
            name=definition.name,
            available=detection.found,
            priority=definition.priority if detection.found else 0,
            capabilities=list(definition.capabilities),
            version=detection.version,
            path=detection.path,
            detection_method=detection.detection_method,
        )
