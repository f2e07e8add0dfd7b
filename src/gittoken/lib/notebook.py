"""Jupyter notebook linearisation for LLM ingestion."""

from __future__ import annotations

import json
import logging
from typing import Any

__all__ = ["NOTEBOOK_EXTENSION", "notebook_to_text", "transform_content"]

logger = logging.getLogger(__name__)

NOTEBOOK_EXTENSION = ".ipynb"


def _join(value: Any) -> str:
    if isinstance(value, list):
        return "".join(str(part) for part in value)
    return str(value or "")


def _render_outputs(outputs: list[dict[str, Any]]) -> str:
    rendered = ""
    for out in outputs:
        kind = out.get("output_type")
        if kind == "stream" and out.get("text"):
            rendered += f"{_join(out['text'])}\n"
        elif kind in ("execute_result", "display_data"):
            plain = (out.get("data") or {}).get("text/plain")
            if plain:
                rendered += f"{_join(plain)}\n"
        elif kind == "error":
            ename = out.get("ename") or "Error"
            evalue = out.get("evalue") or ""
            rendered += f"Error: {ename}: {evalue}\n"
    return rendered


def notebook_to_text(notebook: dict[str, Any]) -> str:
    """Render a parsed ``.ipynb`` document as plain text.

    Markdown cells are emitted as-is under a numbered heading. Code cells get
    every line prefixed with ``>>> `` and are followed by their stream text,
    plain-text results, and error summaries.
    """
    output = ""
    for index, cell in enumerate(notebook.get("cells") or [], start=1):
        cell_type = cell.get("cell_type")
        source = _join(cell.get("source"))
        if cell_type == "markdown":
            output += f"\n# --- Markdown Cell {index} ---\n{source}\n"
        elif cell_type == "code":
            code = source.replace("\n", "\n>>> ")
            output += f"\n# --- Code Cell {index} ---\n>>> {code}\n"
            output += _render_outputs(cell.get("outputs") or [])
    return output.strip()


def transform_content(path: str, raw: str) -> str:
    """Linearise notebook content; any other file passes through unchanged.

    Malformed notebooks fall back to the raw text.
    """
    if not path.lower().endswith(NOTEBOOK_EXTENSION):
        return raw
    try:
        document = json.loads(raw)
        if not isinstance(document, dict):
            raise TypeError("notebook root is not a JSON object")
        return notebook_to_text(document)
    except (ValueError, TypeError, AttributeError, KeyError, RecursionError) as exc:
        logger.warning("Could not convert notebook %s, keeping raw text: %s", path, exc)
        return raw
