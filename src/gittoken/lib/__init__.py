"""Core library: listing, selection, fetching, digests, ranking, and providers.

Primary namespaces:
- ``gittoken.lib.tree`` / ``gittoken.lib.selection`` for the selectable tree.
- ``gittoken.lib.fetcher`` / ``gittoken.lib.digest`` for content and output.
- ``gittoken.lib.ranker`` / ``gittoken.lib.analyst`` for repository chat.
- ``gittoken.lib.ai_providers`` for provider wrappers and defaults.
"""
