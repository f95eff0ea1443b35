"""Bibliography formatting for CSL-JSON records."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from .exporters import author_names, issued_year, text_field


class BibliographyFormatter:
    """Render records as plain-text bibliography lines.

    Only a handful of common styles are approximated; records are rendered in
    the order given, one line each.
    """

    SUPPORTED_STYLES = {"apa", "harvard", "vancouver"}

    def format(self, record: Mapping[str, Any], style: str = "apa") -> str:
        style_key = (style or "apa").lower().strip()
        if style_key not in self.SUPPORTED_STYLES:
            style_key = "apa"
        formatter = getattr(self, f"format_{style_key}")
        # One record per line.
        return " ".join(formatter(record).split())

    def format_all(self, records: Sequence[Mapping[str, Any]], style: str = "apa") -> str:
        return "\n".join(self.format(record, style) for record in records)

    def format_apa(self, record: Mapping[str, Any]) -> str:
        authors = self._join_authors(author_names(record), last_sep=", & ")
        year = issued_year(record)
        year = f"({year})" if year else "(n.d.)"
        title = text_field(record, "title")
        venue = text_field(record, "container-title")
        details = self._volume_issue_pages(record, sep=", ")
        if venue and details:
            venue = f"{venue}, {details}"
        publisher = None if venue else text_field(record, "publisher")
        body = self._terminate(self._join([authors, year, title, venue, publisher], ". "))
        return self._append_locator(body, record)

    def format_harvard(self, record: Mapping[str, Any]) -> str:
        authors = self._join_authors(author_names(record), last_sep=" and ")
        year = issued_year(record)
        lead = " ".join(part for part in [authors, f"({year})" if year else None] if part)
        title = text_field(record, "title")
        venue = text_field(record, "container-title") or text_field(record, "publisher")
        details = self._volume_issue_pages(record, sep=", ")
        body = self._terminate(self._join([lead, title, venue, details], ", "))
        return self._append_locator(body, record)

    def format_vancouver(self, record: Mapping[str, Any]) -> str:
        authors = ", ".join(author_names(record, inverted=False)) or None
        title = text_field(record, "title")
        venue = text_field(record, "container-title") or text_field(record, "publisher")
        trailing = []
        year = issued_year(record)
        if year:
            trailing.append(year)
        volume = text_field(record, "volume")
        if volume:
            issue = text_field(record, "issue")
            trailing.append(f"{volume}({issue})" if issue else volume)
        pages = text_field(record, "page")
        if pages:
            trailing.append(pages)
        core = ";".join(trailing) if trailing else None
        body = self._terminate(self._join([authors, title, venue, core], ". "))
        return self._append_locator(body, record)

    @staticmethod
    def _join(components: List[Optional[str]], sep: str) -> str:
        parts = [comp for comp in components if comp]
        if sep.startswith("."):
            # Avoid "J.. (2020)" when a part already ends with a period.
            parts = [part[:-1] if part.endswith(".") and idx < len(parts) - 1 else part for idx, part in enumerate(parts)]
        return sep.join(parts)

    def _append_locator(self, body: str, record: Mapping[str, Any]) -> str:
        locator = self._locator(record)
        return f"{body} {locator}" if locator else body

    @staticmethod
    def _join_authors(names: List[str], last_sep: str) -> Optional[str]:
        if not names:
            return None
        if len(names) == 1:
            return names[0]
        return ", ".join(names[:-1]) + last_sep + names[-1]

    @staticmethod
    def _volume_issue_pages(record: Mapping[str, Any], sep: str = ", ") -> Optional[str]:
        trailing = []
        volume = text_field(record, "volume")
        if volume:
            issue = text_field(record, "issue")
            trailing.append(f"{volume}({issue})" if issue else volume)
        pages = text_field(record, "page")
        if pages:
            trailing.append(pages)
        return sep.join(trailing) if trailing else None

    @staticmethod
    def _locator(record: Mapping[str, Any]) -> Optional[str]:
        doi = text_field(record, "DOI")
        if doi:
            for prefix in ("https://doi.org/", "http://doi.org/", "doi:"):
                if doi.lower().startswith(prefix):
                    doi = doi[len(prefix):]
            return f"https://doi.org/{doi}"
        return text_field(record, "URL")

    @staticmethod
    def _terminate(text: str) -> str:
        if text and not text.endswith("."):
            return f"{text}."
        return text
