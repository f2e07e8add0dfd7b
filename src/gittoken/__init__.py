"""gittoken: turn GitHub repositories into LLM-ready text digests."""

__version__ = "0.1.0"
