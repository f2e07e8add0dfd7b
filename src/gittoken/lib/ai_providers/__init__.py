"""Provider wrapper layer for the answer-generation collaborator.

Related interfaces:
- Used by ``gittoken.lib.analyst`` to send assembled repository context.
- Referenced by CLI/server code to resolve a provider by name.
"""

from gittoken.lib.ai_providers.anthropic import (
    ANTHROPIC_PROVIDER,
    AnthropicProvider,
)
from gittoken.lib.ai_providers.google import GOOGLE_PROVIDER, GoogleProvider
from gittoken.lib.ai_providers.openai import OPENAI_PROVIDER, OpenAIProvider
from gittoken.lib.ai_providers.types import AIProvider

PROVIDERS: dict[str, AIProvider] = {
    GOOGLE_PROVIDER.name: GOOGLE_PROVIDER,
    OPENAI_PROVIDER.name: OPENAI_PROVIDER,
    ANTHROPIC_PROVIDER.name: ANTHROPIC_PROVIDER,
}

DEFAULT_PROVIDER = GOOGLE_PROVIDER.name

__all__ = [
    "ANTHROPIC_PROVIDER",
    "DEFAULT_PROVIDER",
    "GOOGLE_PROVIDER",
    "OPENAI_PROVIDER",
    "PROVIDERS",
    "AIProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "OpenAIProvider",
]
