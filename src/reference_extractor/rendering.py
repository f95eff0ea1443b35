"""Citation rendering backends used by the output formatter."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol, Sequence

from .exporters import to_bibtex, to_ris
from .formatter import BibliographyFormatter
from .models import CslRecord

logger = logging.getLogger(__name__)


class CitationRenderer(Protocol):
    def render(
        self,
        records: Sequence[CslRecord],
        syntax: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        ...


class CslRenderer:
    """Render CSL-JSON records as BibTeX, RIS or a plain-text bibliography."""

    SYNTAXES = ("bibtex", "ris", "bibliography")

    def __init__(self, formatter: BibliographyFormatter | None = None, default_style: str = "apa"):
        self.formatter = formatter or BibliographyFormatter()
        self.default_style = default_style

    def render(
        self,
        records: Sequence[CslRecord],
        syntax: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        options = options or {}
        if syntax == "bibtex":
            return to_bibtex(records)
        if syntax == "ris":
            return to_ris(records)
        if syntax == "bibliography":
            style = str(options.get("style") or self.default_style)
            logger.debug("Rendering %d records as %s bibliography", len(records), style)
            return self.formatter.format_all(records, style)
        raise ValueError(f"Unsupported citation syntax: {syntax}")


__all__ = ["CitationRenderer", "CslRenderer"]
