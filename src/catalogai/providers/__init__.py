"""
AI providers backed by external command-line tools.

catalogai/src/catalogai/providers/__init__.py
"""

from .base import AIProvider, BaseCLIProvider
from .claude import ClaudeProvider
from .codex import CodexProvider
from .gemini import GeminiProvider

__all__ = [
    "AIProvider",
    "BaseCLIProvider",
    "ClaudeProvider",
    "GeminiProvider",
    "CodexProvider",
    "PROVIDER_CLASSES",
]

# Registry used by the orchestrator to build providers from configuration
PROVIDER_CLASSES = {
    ClaudeProvider.name: ClaudeProvider,
    GeminiProvider.name: GeminiProvider,
    CodexProvider.name: CodexProvider,
}
