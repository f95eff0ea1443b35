"""Exporters for CSL-JSON citation records."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .models import CslRecord

BIBTEX_SPECIAL_CHARS = re.compile(r"(?<!\\)([%&$#_])")


def bibtex_escape(value: str) -> str:
    return BIBTEX_SPECIAL_CHARS.sub(r"\\\1", value)


def to_bibtex(records: Sequence[CslRecord]) -> str:
    entries = []
    used_keys: Dict[str, int] = {}
    for idx, record in enumerate(records, start=1):
        key = _unique_key(citation_key(record) or f"ref{idx}", used_keys)
        lines = [f"@{_bibtex_type(record.get('type'))}{{{key},"]
        authors = author_names(record, inverted=True)
        if authors:
            lines.append(f"  author = {{{bibtex_escape(' and '.join(authors))}}},")
        title = text_field(record, "title")
        if title:
            lines.append(f"  title = {{{bibtex_escape(title)}}},")
        container = text_field(record, "container-title")
        if container:
            container_key = "booktitle" if record.get("type") in ("chapter", "paper-conference") else "journal"
            lines.append(f"  {container_key} = {{{bibtex_escape(container)}}},")
        publisher = text_field(record, "publisher")
        if publisher:
            lines.append(f"  publisher = {{{bibtex_escape(publisher)}}},")
        year = issued_year(record)
        if year:
            lines.append(f"  year = {{{year}}},")
        for csl_name, bib_name in (("volume", "volume"), ("issue", "number"), ("page", "pages")):
            value = text_field(record, csl_name)
            if value:
                lines.append(f"  {bib_name} = {{{bibtex_escape(value)}}},")
        # doi and url are verbatim fields.
        for csl_name, bib_name in (("DOI", "doi"), ("URL", "url")):
            value = text_field(record, csl_name)
            if value:
                lines.append(f"  {bib_name} = {{{value}}},")
        lines.append("}")
        entries.append("\n".join(lines))
    return "\n\n".join(entries)


def to_ris(records: Sequence[CslRecord]) -> str:
    entries = []
    for record in records:
        lines = [f"TY  - {_ris_type(record.get('type'))}"]
        for author in author_names(record, inverted=True):
            lines.append(f"AU  - {author}")
        title = text_field(record, "title")
        if title:
            lines.append(f"TI  - {title}")
        container = text_field(record, "container-title")
        if container:
            lines.append(f"T2  - {container}")
        publisher = text_field(record, "publisher")
        if publisher:
            lines.append(f"PB  - {publisher}")
        year = issued_year(record)
        if year:
            lines.append(f"PY  - {year}")
        volume = text_field(record, "volume")
        if volume:
            lines.append(f"VL  - {volume}")
        issue = text_field(record, "issue")
        if issue:
            lines.append(f"IS  - {issue}")
        pages = text_field(record, "page")
        if pages:
            start, end = split_pages(pages)
            if start:
                lines.append(f"SP  - {start}")
            if end:
                lines.append(f"EP  - {end}")
        doi = text_field(record, "DOI")
        if doi:
            lines.append(f"DO  - {doi}")
        url = text_field(record, "URL")
        if url:
            lines.append(f"UR  - {url}")
        lines.append("ER  - ")
        entries.append("\n".join(lines))
    return "\n\n".join(entries)


def text_field(record: Mapping[str, Any], name: str) -> Optional[str]:
    value = record.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def author_names(record: Mapping[str, Any], inverted: bool = True) -> List[str]:
    """Return author names as ``Family, Given`` (or ``Given Family``)."""

    names: List[str] = []
    authors = record.get("author")
    if not isinstance(authors, list):
        return names
    for author in authors:
        if not isinstance(author, Mapping):
            continue
        literal = str(author.get("literal") or "").strip()
        family = str(author.get("family") or "").strip()
        given = str(author.get("given") or "").strip()
        if literal and not family:
            names.append(literal)
        elif family and given:
            names.append(f"{family}, {given}" if inverted else f"{given} {family}")
        elif family or given:
            names.append(family or given)
    return names


def issued_year(record: Mapping[str, Any]) -> Optional[str]:
    issued = record.get("issued")
    if not isinstance(issued, Mapping):
        return None
    parts = issued.get("date-parts")
    if isinstance(parts, list) and parts and isinstance(parts[0], list) and parts[0]:
        return str(parts[0][0]).strip() or None
    for key in ("raw", "literal"):
        match = re.search(r"\d{4}", str(issued.get(key) or ""))
        if match:
            return match.group(0)
    return None


def split_pages(pages: str) -> Tuple[Optional[str], Optional[str]]:
    parts = re.split(r"\s*[-–—]+\s*", pages.strip(), maxsplit=1)
    if len(parts) == 2:
        return parts[0] or None, parts[1] or None
    return pages.strip(), None


def citation_key(record: Mapping[str, Any]) -> str:
    authors = record.get("author")
    lead = ""
    if isinstance(authors, list) and authors and isinstance(authors[0], Mapping):
        lead = str(authors[0].get("family") or authors[0].get("literal") or "")
    lead = re.sub(r"[^0-9a-z]", "", lead.lower())
    year = issued_year(record) or ""
    return f"{lead}{year}" if lead else ""


def _unique_key(key: str, used_keys: Dict[str, int]) -> str:
    seen = used_keys.get(key, 0)
    used_keys[key] = seen + 1
    if not seen:
        return key
    suffix = ""
    number = seen
    while number:
        number, remainder = divmod(number - 1, 26)
        suffix = chr(ord("a") + remainder) + suffix
    return f"{key}{suffix}"


def _bibtex_type(csl_type: Any) -> str:
    return {
        "article-journal": "article",
        "article-magazine": "article",
        "article-newspaper": "article",
        "book": "book",
        "chapter": "incollection",
        "paper-conference": "inproceedings",
        "thesis": "phdthesis",
        "report": "techreport",
    }.get(str(csl_type or ""), "misc")


def _ris_type(csl_type: Any) -> str:
    return {
        "article-journal": "JOUR",
        "article-magazine": "MGZN",
        "article-newspaper": "NEWS",
        "book": "BOOK",
        "chapter": "CHAP",
        "paper-conference": "CONF",
        "dataset": "DATA",
        "thesis": "THES",
        "report": "RPRT",
        "webpage": "ELEC",
    }.get(str(csl_type or ""), "GEN")
