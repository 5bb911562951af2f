"""
Gemini CLI provider.

catalogai/src/catalogai/providers/gemini.py
"""

from typing import List, Optional, Sequence

from ..constants import GEMINI_DEFAULT_MODEL, GEMINI_PRIORITY
from .base import BaseCLIProvider

__all__ = ["GeminiProvider"]


class GeminiProvider(BaseCLIProvider):
    """Runs analyses through the ``gemini`` (or ``gemini-cli``) command."""

    name = "gemini"
    priority = GEMINI_PRIORITY
    command = "gemini"
    alternate_commands = ("gemini-cli",)
    display_name = "Gemini"
    default_model = GEMINI_DEFAULT_MODEL
    guidance = """Instructions:
- Provide comprehensive analysis with clear reasoning
- Focus on practical impact and migration guidance
- Consider the pnpm workspace catalog context
- Be precise about version compatibility
- Return valid JSON format only"""

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        custom_args: Optional[Sequence[str]] = None,
        sandbox: bool = True,
    ):
        super().__init__(model, max_tokens, timeout, max_retries, custom_args)
        self.sandbox = sandbox

    def build_args(self, prompt: str) -> List[str]:
        args = []
        if self.sandbox:
            args.append("--sandbox")
        if self.model:
            args.extend(["--model", self.model])
        if self.max_tokens:
            args.extend(["--max-output-tokens", str(self.max_tokens)])
        args.extend(self.custom_args)
        args.extend(["-p", prompt])
        return args
