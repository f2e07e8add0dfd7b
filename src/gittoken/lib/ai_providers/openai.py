"""OpenAI provider wrapper."""

from __future__ import annotations

__all__ = ["OPENAI_PROVIDER", "OpenAIProvider"]

from typing import Any

from gittoken.lib.ai_providers.types import AIProvider


class OpenAIProvider(AIProvider):
    """Wrapper around the OpenAI Python SDK client (Responses API)."""

    name = "openai"
    api_key_env_var = "OPENAI_API_KEY"
    default_model = "gpt-4.1-mini"
    install_hint = "pip install openai"

    def _build_inner(self) -> Any:
        """Lazily construct an ``openai.OpenAI`` client."""
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError(
                "OpenAI SDK is not installed. Install with: pip install openai"
            ) from exc

        api_key = self.api_key()
        if api_key:
            return OpenAI(api_key=api_key)
        return OpenAI()

    def _complete_impl(
        self,
        *,
        inner: Any,
        messages: list[dict[str, str]],
        model: str,
        system: str | None,
        **kwargs: Any,
    ) -> Any:
        """Call ``inner.responses.create``; ``model`` turns become ``assistant``."""
        payload = [
            {
                "role": "assistant" if m["role"] == "model" else m["role"],
                "content": m["content"],
            }
            for m in messages
        ]
        if system:
            kwargs.setdefault("instructions", system)
        return inner.responses.create(
            model=model,
            input=payload,
            **kwargs,
        )

    def response_text(self, response: Any) -> str:
        return getattr(response, "output_text", None) or ""


OPENAI_PROVIDER = OpenAIProvider()
