"""
Provider interface and the shared template for CLI-backed AI providers.

Every provider shells out to an external AI command-line tool. The template
in ``BaseCLIProvider.analyze`` is fixed:

1. re-check availability (``ProviderUnavailableError`` when the CLI is missing)
2. build the prompt
3. run the CLI with bounded retries
4. parse the textual response
5. turn any failure of steps 2-4 into a degraded result

Variants only supply the command name, argument shape and prompt guidance.

catalogai/src/catalogai/providers/base.py
"""

import logging
import os
import shutil
import subprocess
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from ..constants import (
    ANALYSIS_TIMEOUT_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_TOKENS,
    DEGRADED_CONFIDENCE,
    VERSION_CHECK_TIMEOUT_SECONDS,
    calculate_backoff_delay,
)
from ..detector import extract_version
from ..errors import ProviderExecutionError, ProviderTimeoutError, ProviderUnavailableError
from ..models import (
    AnalysisContext,
    AnalysisResult,
    AnalysisType,
    ProviderInfo,
    Recommendation,
    RecommendedAction,
    RiskLevel,
)
from .prompts import build_prompt
from .response_parser import parse_response

logger = logging.getLogger(__name__)

__all__ = ["AIProvider", "BaseCLIProvider"]

_STDERR_EXCERPT = 500


class AIProvider(ABC):
    """Interface every analysis provider implements."""

    name: str = ""
    priority: int = 0
    capabilities: Tuple[AnalysisType, ...] = tuple(AnalysisType)

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the provider can currently be used. Memoized until clear_cache()."""

    @abstractmethod
    def get_info(self) -> ProviderInfo:
        """Provider metadata. Memoized until clear_cache()."""

    @abstractmethod
    def analyze(self, context: AnalysisContext) -> AnalysisResult:
        """Analyze the packages in ``context``."""

    def clear_cache(self) -> None:
        """Forget memoized availability and info."""

    def supports(self, analysis_type: AnalysisType) -> bool:
        return AnalysisType(analysis_type) in self.capabilities


class BaseCLIProvider(AIProvider):
    """Shared behavior for providers backed by an external CLI tool."""

    command: str = ""
    alternate_commands: Tuple[str, ...] = ()
    display_name: str = ""
    default_model: str = ""
    guidance: str = ""

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        custom_args: Optional[Sequence[str]] = None,
    ):
        self.model = model or self.default_model
        self.max_tokens = max_tokens or DEFAULT_MAX_TOKENS
        self.timeout = timeout or ANALYSIS_TIMEOUT_SECONDS
        self.max_retries = max(1, max_retries if max_retries is not None else DEFAULT_MAX_RETRIES)
        self.custom_args: List[str] = list(custom_args or [])

        self._availability: Optional[bool] = None
        self._executable: Optional[str] = None
        self._detection_method: Optional[str] = None
        self._info: Optional[ProviderInfo] = None

    @property
    def env_var(self) -> str:
        """Environment variable that overrides executable lookup."""
        return f"{self.name.upper()}_PATH"

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def resolve_executable(self) -> Tuple[Optional[str], Optional[str]]:
        """Locate the CLI. Returns (path, detection method) or (None, None)."""
        override = os.environ.get(self.env_var)
        if override and os.path.isfile(override):
            return override, "envvar"

        for candidate in (self.command,) + tuple(self.alternate_commands):
            path = shutil.which(candidate)
            if path:
                return path, "which"

        return None, None

    def is_available(self) -> bool:
        if self._availability is None:
            self._executable, self._detection_method = self.resolve_executable()
            self._availability = self._executable is not None
            logger.debug(f"{self.name} availability: {self._availability} ({self._executable or 'not found'})")
        return self._availability

    def get_info(self) -> ProviderInfo:
        if self._info is not None:
            return self._info

        available = self.is_available()
        version = self._read_version() if available else None
        self._info = ProviderInfo(
            name=self.name,
            available=available,
            priority=self.priority if available else 0,
            capabilities=list(self.capabilities),
            version=version,
            path=self._executable,
            detection_method=self._detection_method,
        )
        return self._info

    def clear_cache(self) -> None:
        self._availability = None
        self._executable = None
        self._detection_method = None
        self._info = None

    def _read_version(self) -> Optional[str]:
        try:
            completed = subprocess.run(
                [self._executable, "--version"],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=VERSION_CHECK_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Could not read {self.name} version: {e}")
            return None
        return extract_version(completed.stdout or completed.stderr)

    # ------------------------------------------------------------------
    # Analysis template
    # ------------------------------------------------------------------

    def build_prompt(self, context: AnalysisContext) -> str:
        prompt = build_prompt(context)
        if self.guidance:
            prompt = f"{prompt}\n\n{self.guidance}"
        return prompt

    @abstractmethod
    def build_args(self, prompt: str) -> List[str]:
        """Command-line arguments (without the executable) for one invocation."""

    def analyze(self, context: AnalysisContext) -> AnalysisResult:
        start = time.monotonic()

        if not self.is_available():
            raise ProviderUnavailableError(self.name, f"{self.display_name} CLI is not available")

        try:
            prompt = self.build_prompt(context)
            timeout = context.options.timeout or self.timeout
            output = self.execute_with_retry(prompt, timeout)
            elapsed_ms = (time.monotonic() - start) * 1000
            result = parse_response(output, context, self.name, processing_time_ms=elapsed_ms)
        except Exception as e:
            logger.warning(f"{self.display_name} analysis failed for {len(context.packages)} packages: {e}")
            return self.create_degraded_result(context, e, (time.monotonic() - start) * 1000)

        logger.debug(f"{self.name} analysis finished in {elapsed_ms:.0f}ms (confidence {result.confidence:.2f})")
        return result

    def execute_with_retry(self, prompt: str, timeout: float) -> str:
        """Run the CLI, retrying execution failures with exponential backoff.

        Timeouts are raised immediately and never retried.
        """
        last_error: Optional[ProviderExecutionError] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return self.run_once(prompt, timeout)
            except ProviderExecutionError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = calculate_backoff_delay(attempt)
                    logger.debug(f"{self.name} attempt {attempt} failed ({e}); retrying in {delay:g}s")
                    time.sleep(delay)

        raise last_error

    def run_once(self, prompt: str, timeout: float) -> str:
        """Single CLI invocation. Returns stdout, or stderr when stdout is empty."""
        executable = self._executable or self.command
        args = [executable] + self.build_args(prompt)
        env = dict(os.environ, NO_COLOR="1", FORCE_COLOR="0")

        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
            )
        except OSError as e:
            raise ProviderExecutionError(self.name, f"failed to start {self.command}: {e}") from e

        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            raise ProviderTimeoutError(self.name, timeout)

        if process.returncode != 0:
            excerpt = (stderr or stdout or "").strip()[:_STDERR_EXCERPT]
            raise ProviderExecutionError(
                self.name,
                f"{self.command} exited with code {process.returncode}: {excerpt}",
                exit_code=process.returncode,
                stderr=excerpt,
            )

        return stdout or stderr

    def create_degraded_result(
        self, context: AnalysisContext, error: Exception, processing_time_ms: Optional[float] = None
    ) -> AnalysisResult:
        """Review-everything result used when the CLI run failed."""
        message = str(error)
        return AnalysisResult(
            provider=self.name,
            analysis_type=context.analysis_type,
            recommendations=[
                Recommendation(
                    package=pkg.name,
                    current_version=pkg.current_version,
                    target_version=pkg.target_version,
                    action=RecommendedAction.REVIEW,
                    reason=f"{self.display_name} analysis failed: {message}",
                    risk_level=RiskLevel.MEDIUM,
                )
                for pkg in context.packages
            ],
            summary="Analysis failed, manual review recommended",
            confidence=DEGRADED_CONFIDENCE,
            warnings=[f"{self.display_name} CLI error: {message}"],
            processing_time_ms=processing_time_ms,
        )
