"""
Claude Code CLI provider.

catalogai/src/catalogai/providers/claude.py
"""

from typing import List, Optional, Sequence

from ..constants import CLAUDE_DEFAULT_MODEL, CLAUDE_PRIORITY
from .base import BaseCLIProvider

__all__ = ["ClaudeProvider"]


class ClaudeProvider(BaseCLIProvider):
    """Runs analyses through the ``claude`` command in print mode."""

    name = "claude"
    priority = CLAUDE_PRIORITY
    command = "claude"
    display_name = "Claude"
    default_model = CLAUDE_DEFAULT_MODEL
    guidance = """Important:
- Be concise and focus on actionable insights
- Provide specific version numbers and package names
- Consider the pnpm catalog context for shared dependency management
- Prioritize breaking changes and security implications
- If unsure, recommend "review" action with explanation"""

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        custom_args: Optional[Sequence[str]] = None,
        skip_permissions: bool = True,
    ):
        super().__init__(model, max_tokens, timeout, max_retries, custom_args)
        self.skip_permissions = skip_permissions

    def build_args(self, prompt: str) -> List[str]:
        args = []
        if self.skip_permissions:
            args.append("--dangerously-skip-permissions")
        if self.model:
            args.extend(["--model", self.model])
        args.extend(["--output-format", "text"])
        args.extend(self.custom_args)
        args.extend(["-p", prompt])
        return args
