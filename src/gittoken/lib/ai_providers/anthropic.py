"""Anthropic provider wrapper."""

from __future__ import annotations

__all__ = ["ANTHROPIC_PROVIDER", "AnthropicProvider"]

from typing import Any

from gittoken.lib.ai_providers.types import AIProvider


class AnthropicProvider(AIProvider):
    """Wrapper around the Anthropic Python SDK client."""

    name = "anthropic"
    api_key_env_var = "ANTHROPIC_API_KEY"
    default_model = "claude-3-5-haiku-latest"
    install_hint = "pip install anthropic"

    def _build_inner(self) -> Any:
        """Lazily construct an ``anthropic.Anthropic`` client."""
        try:
            from anthropic import Anthropic
        except ImportError as exc:
            raise RuntimeError(
                "Anthropic SDK is not installed. Install with: pip install anthropic"
            ) from exc

        api_key = self.api_key()
        if api_key:
            return Anthropic(api_key=api_key)
        return Anthropic()

    def _complete_impl(
        self,
        *,
        inner: Any,
        messages: list[dict[str, str]],
        model: str,
        system: str | None,
        **kwargs: Any,
    ) -> Any:
        """Call the Messages API via ``inner.messages.create``.

        Defaults ``max_tokens`` to 4096 when not supplied in *kwargs*.
        """
        max_tokens = kwargs.pop("max_tokens", 4096)
        if system:
            kwargs.setdefault("system", system)
        return inner.messages.create(
            model=model,
            max_tokens=max_tokens,
            messages=[
                {
                    "role": "assistant" if m["role"] == "model" else m["role"],
                    "content": m["content"],
                }
                for m in messages
            ],
            **kwargs,
        )

    def response_text(self, response: Any) -> str:
        blocks = getattr(response, "content", None) or []
        return "".join(
            getattr(block, "text", "")
            for block in blocks
            if getattr(block, "type", "") == "text"
        )


ANTHROPIC_PROVIDER = AnthropicProvider()
