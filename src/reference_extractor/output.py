"""Serialize canonical citations into the supported output formats."""
from __future__ import annotations

import copy
import hashlib
import json
import logging
import re
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from cachetools import FIFOCache

from .deduplication import TIMES_CITED_PATTERN
from .errors import FormatError
from .models import CslRecord
from .rendering import CitationRenderer, CslRenderer

logger = logging.getLogger(__name__)

COUNT_MARKER_PATTERN = re.compile(r"\[(\d+) citations\] ")
NOTE_COUNT_PATTERN = re.compile(r"^Times cited: (\d+)$", re.MULTILINE)
COUNTS_HEADER = "cite_count\treference\n"
_DEFAULT_RENDERER: Any = object()


class OutputFormat(str, Enum):
    DATA = "data"
    DATA_WITH_COUNTS = "data-with-counts"
    BIBTEX = "bibtex"
    RIS = "ris"
    BIBLIOGRAPHY = "bibliography"
    BIBLIOGRAPHY_WITH_COUNTS = "bibliography-with-counts"

    @classmethod
    def parse(cls, value: "OutputFormat | str") -> "OutputFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise FormatError(
                f"Unsupported output format: {value}",
                context={"format": str(value)},
                cause=exc,
            ) from exc

    @property
    def extension(self) -> str:
        return _FORMAT_INFO[self][0]

    @property
    def description(self) -> str:
        return _FORMAT_INFO[self][1]

    @property
    def requires_renderer(self) -> bool:
        return _FORMAT_INFO[self][2]


_FORMAT_INFO: Dict[OutputFormat, Tuple[str, str, bool]] = {
    OutputFormat.DATA: (".json", "CSL JSON for reference managers", False),
    OutputFormat.DATA_WITH_COUNTS: (".json", "CSL JSON with citation counts in notes", False),
    OutputFormat.BIBTEX: (".bib", "BibTeX for LaTeX", True),
    OutputFormat.RIS: (".ris", "RIS for reference managers", True),
    OutputFormat.BIBLIOGRAPHY: (".txt", "Formatted bibliography", True),
    OutputFormat.BIBLIOGRAPHY_WITH_COUNTS: (
        ".tsv",
        "Bibliography with citation counts (tab-separated)",
        True,
    ),
}


@dataclass(frozen=True)
class FormattedOutput:
    text: str
    output_format: OutputFormat
    cache_key: str = ""
    degraded: bool = False
    from_cache: bool = False

    @property
    def extension(self) -> str:
        return self.output_format.extension


def strip_counts(records: Sequence[CslRecord]) -> List[CslRecord]:
    """Copy records with ``Times cited`` lines removed and empty notes dropped."""

    cleaned: List[CslRecord] = []
    for record in records:
        item = copy.deepcopy(dict(record))
        if "note" in item:
            note = TIMES_CITED_PATTERN.sub("", str(item.get("note") or ""))
            if note.strip():
                item["note"] = note
            else:
                del item["note"]
        cleaned.append(item)
    return cleaned


def add_counts_to_titles(records: Sequence[CslRecord]) -> List[CslRecord]:
    titled: List[CslRecord] = []
    for record in records:
        match = NOTE_COUNT_PATTERN.search(str(record.get("note") or ""))
        count = match.group(1) if match else "NA"
        item = copy.deepcopy(dict(record))
        item["title"] = f"[{count} citations] {item.get('title') or ''}"
        titled.append(item)
    return titled


def tabulate_counts(rendered: str) -> str:
    """Turn marker-carrying bibliography lines into ``count<TAB>line`` rows.

    Rows are sorted by count, highest first; rows with no count are dropped.
    """

    rows: List[Tuple[int, str]] = []
    for line in rendered.splitlines():
        if not line.strip():
            continue
        match = COUNT_MARKER_PATTERN.search(line)
        if match:
            cleaned = line[: match.start()] + line[match.end():]
            rows.append((int(match.group(1)), cleaned))
        else:
            rows.append((0, line))
    rows.sort(key=lambda row: row[0], reverse=True)
    body = "\n".join(f"{count}\t{line}" for count, line in rows if count != 0)
    return COUNTS_HEADER + body


def fallback_listing(records: Sequence[CslRecord]) -> str:
    lines = []
    for index, record in enumerate(records, start=1):
        title = record.get("title") or "Unknown Title"
        authors = record.get("author")
        if isinstance(authors, list) and authors:
            author_text = ", ".join(
                f"{author.get('family', '')}, {author.get('given', '')}"
                for author in authors
                if isinstance(author, Mapping)
            )
        else:
            author_text = "Unknown Author"
        lines.append(f"{index}. {author_text}. {title}.")
    return "\n".join(lines)


def cache_key(records: Sequence[CslRecord], output_format: OutputFormat, options: Mapping[str, Any]) -> str:
    payload = json.dumps(
        {"records": list(records), "format": output_format.value, "options": dict(options)},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class OutputFormatter:
    """Format citation lists, caching results by content."""

    def __init__(self, renderer: CitationRenderer | None = _DEFAULT_RENDERER, cache_size: int = 100):
        # Passing renderer=None forces the fallback listing.
        self.renderer = CslRenderer() if renderer is _DEFAULT_RENDERER else renderer
        self._cache: FIFOCache = FIFOCache(maxsize=cache_size)
        self._lock = threading.Lock()
        self._citations: List[CslRecord] = []
        self._handlers: Dict[OutputFormat, Callable[[List[CslRecord], Dict[str, Any]], Tuple[str, bool]]] = {
            OutputFormat.DATA: self._format_data,
            OutputFormat.DATA_WITH_COUNTS: self._format_data_with_counts,
            OutputFormat.BIBTEX: self._format_bibtex,
            OutputFormat.RIS: self._format_ris,
            OutputFormat.BIBLIOGRAPHY: self._format_bibliography,
            OutputFormat.BIBLIOGRAPHY_WITH_COUNTS: self._format_bibliography_with_counts,
        }
        self.reset_stats()

    def set_citations(self, citations: Sequence[CslRecord]) -> None:
        self._citations = list(citations)
        logger.info("Set %d citations for formatting", len(self._citations))

    def current_citations(self) -> List[CslRecord]:
        return list(self._citations)

    @staticmethod
    def supported_formats() -> Dict[str, Dict[str, Any]]:
        return {
            fmt.value: {
                "extension": fmt.extension,
                "description": fmt.description,
                "requires_renderer": fmt.requires_renderer,
            }
            for fmt in OutputFormat
        }

    def format(
        self,
        output_format: OutputFormat | str,
        citations: Optional[Sequence[CslRecord]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> FormattedOutput:
        fmt = OutputFormat.parse(output_format)
        records = list(citations) if citations is not None else self.current_citations()
        opts = dict(options or {})

        if not records:
            logger.info("No citations to format")
            self._record(fmt, success=True)
            return FormattedOutput(text="", output_format=fmt)

        key = cache_key(records, fmt, opts)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Using cached %s output", fmt.value)
            self._record(fmt, success=True, from_cache=True)
            return replace(cached, from_cache=True)

        try:
            text, degraded = self._handlers[fmt](records, opts)
        except Exception as exc:
            self._record(fmt, success=False)
            raise FormatError(
                f"Output formatting failed for {fmt.value}",
                context={"format": fmt.value, "citation_count": len(records)},
                cause=exc,
            ) from exc

        result = FormattedOutput(text=text, output_format=fmt, cache_key=key, degraded=degraded)
        if not degraded:
            with self._lock:
                self._cache[key] = result
        self._record(fmt, success=True)
        logger.info("Formatted %d citations as %s", len(records), fmt.value)
        return result

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.debug("Formatting cache cleared")

    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._stats["total"]
            success_rate = (self._stats["successful"] / total * 100) if total else 0.0
            return {
                "total": total,
                "successful": self._stats["successful"],
                "cached": self._stats["cached"],
                "format_counts": dict(self._stats["format_counts"]),
                "cache_size": len(self._cache),
                "success_rate": round(success_rate, 2),
            }

    def reset_stats(self) -> None:
        with self._lock:
            self._stats: Dict[str, Any] = {"total": 0, "successful": 0, "cached": 0, "format_counts": {}}

    def _record(self, fmt: OutputFormat, success: bool, from_cache: bool = False) -> None:
        with self._lock:
            self._stats["total"] += 1
            if success:
                self._stats["successful"] += 1
            if from_cache:
                self._stats["cached"] += 1
            counts = self._stats["format_counts"]
            counts[fmt.value] = counts.get(fmt.value, 0) + 1

    def _format_data(self, records: List[CslRecord], options: Dict[str, Any]) -> Tuple[str, bool]:
        return json.dumps(strip_counts(records), indent=2, ensure_ascii=False), False

    def _format_data_with_counts(self, records: List[CslRecord], options: Dict[str, Any]) -> Tuple[str, bool]:
        return json.dumps(records, indent=2, ensure_ascii=False), False

    def _format_bibtex(self, records: List[CslRecord], options: Dict[str, Any]) -> Tuple[str, bool]:
        return self._render(strip_counts(records), "bibtex", options)

    def _format_ris(self, records: List[CslRecord], options: Dict[str, Any]) -> Tuple[str, bool]:
        return self._render(strip_counts(records), "ris", options)

    def _format_bibliography(self, records: List[CslRecord], options: Dict[str, Any]) -> Tuple[str, bool]:
        return self._render(strip_counts(records), "bibliography", options)

    def _format_bibliography_with_counts(
        self, records: List[CslRecord], options: Dict[str, Any]
    ) -> Tuple[str, bool]:
        titled = strip_counts(add_counts_to_titles(records))
        rendered, degraded = self._render(titled, "bibliography", options)
        return tabulate_counts(rendered), degraded

    def _render(self, records: List[CslRecord], syntax: str, options: Dict[str, Any]) -> Tuple[str, bool]:
        if self.renderer is None:
            logger.warning("No citation renderer configured, using fallback listing for %s", syntax)
            return fallback_listing(records), True
        try:
            return self.renderer.render(records, syntax, options), False
        except Exception as exc:
            logger.warning("Citation renderer failed for %s, using fallback listing: %s", syntax, exc)
            return fallback_listing(records), True


__all__ = [
    "FormattedOutput",
    "OutputFormat",
    "OutputFormatter",
    "add_counts_to_titles",
    "fallback_listing",
    "strip_counts",
    "tabulate_counts",
]
