"""Google GenAI (Gemini) provider wrapper."""

from __future__ import annotations

__all__ = ["GOOGLE_PROVIDER", "GoogleProvider"]

from typing import Any

from gittoken.lib.ai_providers.types import AIProvider


class GoogleProvider(AIProvider):
    """Wrapper around the Google GenAI Python SDK client.

    Reads ``GEMINI_API_KEY`` first and falls back to ``GOOGLE_API_KEY``.
    """

    name = "google"
    api_key_env_var = "GEMINI_API_KEY"
    fallback_env_vars = ("GOOGLE_API_KEY",)
    default_model = "gemini-2.5-flash-lite"
    install_hint = "pip install google-genai"

    def _build_inner(self) -> Any:
        """Lazily construct a ``google.genai.Client``."""
        try:
            from google import genai
        except ImportError as exc:
            raise RuntimeError(
                "Google GenAI SDK is not installed. "
                "Install with: pip install google-genai"
            ) from exc

        api_key = self.api_key()
        if api_key:
            return genai.Client(api_key=api_key)
        return genai.Client()

    def _complete_impl(
        self,
        *,
        inner: Any,
        messages: list[dict[str, str]],
        model: str,
        system: str | None,
        **kwargs: Any,
    ) -> Any:
        """Call Google GenAI via ``inner.models.generate_content``.

        Each message becomes a ``{role, parts}`` content entry; the system
        instruction travels in the request config.
        """
        contents = [
            {"role": m["role"], "parts": [{"text": m["content"]}]}
            for m in messages
            if m["content"]
        ]
        if system:
            config = dict(kwargs.pop("config", None) or {})
            config["system_instruction"] = system
            kwargs["config"] = config
        return inner.models.generate_content(
            model=model,
            contents=contents,
            **kwargs,
        )

    def response_text(self, response: Any) -> str:
        return getattr(response, "text", None) or ""


GOOGLE_PROVIDER = GoogleProvider()
