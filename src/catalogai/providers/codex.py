"""
OpenAI Codex CLI provider.

The prompt is passed as the first positional argument; options follow it.

catalogai/src/catalogai/providers/codex.py
"""

from typing import List, Optional, Sequence

from ..constants import CODEX_DEFAULT_MODEL, CODEX_PRIORITY
from .base import BaseCLIProvider

__all__ = ["CodexProvider", "APPROVAL_MODES"]

APPROVAL_MODES = ("full-auto", "suggest", "auto-edit")


class CodexProvider(BaseCLIProvider):
    """Runs analyses through the ``codex`` (or ``openai-codex``) command."""

    name = "codex"
    priority = CODEX_PRIORITY
    command = "codex"
    alternate_commands = ("openai-codex",)
    display_name = "Codex"
    default_model = CODEX_DEFAULT_MODEL
    guidance = """Code Analysis Guidelines:
- Focus on code-level impact and breaking changes
- Analyze TypeScript/JavaScript compatibility thoroughly
- Check for API signature changes between versions
- Identify deprecated APIs and migration paths
- Consider build tool and bundler compatibility
- Return only valid JSON response"""

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        custom_args: Optional[Sequence[str]] = None,
        approval_mode: str = "full-auto",
    ):
        super().__init__(model, max_tokens, timeout, max_retries, custom_args)
        if approval_mode not in APPROVAL_MODES:
            raise ValueError(f"approval_mode must be one of {', '.join(APPROVAL_MODES)}, got {approval_mode!r}")
        self.approval_mode = approval_mode

    def build_args(self, prompt: str) -> List[str]:
        args = list(self.custom_args)
        args.extend([prompt, "--approval-mode", self.approval_mode, "--quiet"])
        if self.model:
            args.extend(["--model", self.model])
        if self.max_tokens:
            args.extend(["--max-tokens", str(self.max_tokens)])
        return args
