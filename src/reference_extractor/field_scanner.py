"""Locate citation field codes inside document markup.

Word processors store reference-manager citations in two ways:

* Office Open XML uses *complex fields*: a ``w:fldChar`` begin marker, a run
  of sibling ``w:r`` elements whose ``w:instrText`` children carry the field
  code in fragments, and a ``w:fldChar`` end marker.
* OpenDocument uses *reference marks*: the whole field code sits in the
  ``text:name`` attribute of a ``text:reference-mark-start`` element.

Element matching is done on local names so the scanner does not depend on
the namespace prefixes chosen by a particular producer.
"""
from __future__ import annotations

import html
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from xml.etree import ElementTree

from .config import (
    MENDELEY_STYLE_PROPERTY,
    ZOTERO_PREF_PREFIX,
    ZOTERO_STYLE_URL_PREFIX,
    DocumentVariant,
    ExtractorSettings,
)
from .errors import MarkupParseError
from .models import RawField, StyleInfo

logger = logging.getLogger(__name__)

Element = ElementTree.Element


def local_name(tag: object) -> str:
    # Comments and processing instructions carry a callable as their tag.
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def attribute(element: Element, name: str) -> Optional[str]:
    """Return the attribute whose local name is ``name``, ignoring its namespace."""

    for key, value in element.attrib.items():
        if local_name(key) == name:
            return value
    return None


def parse_markup(content: str, file_name: str = "unknown") -> Element:
    try:
        return ElementTree.fromstring(content)
    except ElementTree.ParseError as exc:
        raise MarkupParseError(file_name, cause=exc) from exc


def _is_field_char(element: Element, kind: str) -> bool:
    return local_name(element.tag) == "fldChar" and attribute(element, "fldCharType") == kind


@dataclass
class FieldScanResult:
    fields: List[RawField] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)


class FieldScanner:
    """Extract raw field-code strings from content files."""

    def __init__(self, settings: ExtractorSettings | None = None):
        self.settings = settings or ExtractorSettings()

    def scan(
        self,
        contents: Sequence[str],
        variant: DocumentVariant,
        file_names: Optional[Sequence[str]] = None,
    ) -> FieldScanResult:
        """Scan every content file, skipping (and reporting) files whose markup is broken."""

        names = list(file_names) if file_names else [
            f"content_file_{index + 1}" for index in range(len(contents))
        ]
        jobs = [(index, text, names[index], variant) for index, text in enumerate(contents)]

        if self.settings.max_workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                outcomes = list(pool.map(self._scan_job, jobs))
        else:
            outcomes = [self._scan_job(job) for job in jobs]

        result = FieldScanResult()
        order = 0
        for (index, _, name, _), texts in zip(jobs, outcomes):
            if texts is None:
                result.failed_files.append(name)
                continue
            for text in texts:
                result.fields.append(RawField(text=text, file_index=index, order=order))
                order += 1

        logger.info(
            "Field extraction completed: %d fields from %d files (%d skipped)",
            len(result.fields),
            len(contents),
            len(result.failed_files),
        )
        return result

    def _scan_job(self, job: Tuple[int, str, str, DocumentVariant]) -> Optional[List[str]]:
        _, text, name, variant = job
        try:
            return self.scan_content(text, variant, name)
        except MarkupParseError as exc:
            logger.warning("Skipping %s: %s", exc.file_name, exc)
            return None

    def scan_content(
        self, content: str, variant: DocumentVariant, file_name: str = "unknown"
    ) -> List[str]:
        root = parse_markup(content, file_name)
        if variant == DocumentVariant.OFFICE_OPEN_XML:
            fields = self._complex_fields(root, file_name)
        else:
            fields = self._reference_marks(root, file_name)
        logger.debug("Extracted %d fields from %s", len(fields), file_name)
        return fields

    def _complex_fields(self, root: Element, file_name: str) -> List[str]:
        parents: Dict[Element, Element] = {child: parent for parent in root.iter() for child in parent}
        begins = [element for element in root.iter() if _is_field_char(element, "begin")]
        logger.debug("Found %d complex field starts in %s", len(begins), file_name)

        fields: List[str] = []
        for position, begin in enumerate(begins, start=1):
            try:
                text = self.walk_complex_field(begin, parents)
            except Exception as exc:
                logger.warning("Failed to extract field %d from %s: %s", position, file_name, exc)
                continue
            if text:
                fields.append(text)
        return fields

    def walk_complex_field(self, begin: Element, parents: Dict[Element, Element]) -> str:
        """Concatenate instruction text from the runs following ``begin``.

        The walk stops at the first sibling holding an end marker, or after
        ``max_field_walk_steps`` siblings; in the latter case whatever was
        gathered so far is returned.
        """

        run = parents.get(begin)
        container = parents.get(run) if run is not None else None
        if container is None:
            return ""

        siblings = list(container)
        start = next(i for i, node in enumerate(siblings) if node is run) + 1
        ceiling = self.settings.max_field_walk_steps

        fragments: List[str] = []
        steps = 0
        closed = False
        for sibling in siblings[start:]:
            if steps >= ceiling:
                break
            steps += 1
            if any(_is_field_char(node, "end") for node in sibling.iter()):
                closed = True
                break
            fragments.extend(
                node.text or "" for node in sibling.iter() if local_name(node.tag) == "instrText"
            )

        if not closed and steps >= ceiling:
            logger.warning(
                "Reached maximum of %d steps while extracting complex field content", ceiling
            )
        return "".join(fragments).strip()

    @staticmethod
    def _reference_marks(root: Element, file_name: str) -> List[str]:
        marks = [
            element
            for element in root.iter()
            if local_name(element.tag) == "reference-mark-start"
            and attribute(element, "name") is not None
        ]
        logger.debug("Found %d reference marks in %s", len(marks), file_name)

        fields = [(attribute(mark, "name") or "").strip() for mark in marks]
        return [name for name in fields if name]


class StyleExtractor:
    """Read the citation style a reference manager recorded in document metadata."""

    def extract(self, style_content: Optional[str], variant: DocumentVariant) -> StyleInfo:
        if not style_content:
            return StyleInfo()
        try:
            root = parse_markup(style_content, "style-file")
        except MarkupParseError as exc:
            logger.warning("Style extraction failed, continuing without style info: %s", exc)
            return StyleInfo()

        mendeley = self._mendeley_style(root)
        zotero = self._zotero_style(root, variant)
        combined = ", ".join(style for style in (mendeley, zotero) if style)
        cleaned = combined
        if cleaned.startswith(ZOTERO_STYLE_URL_PREFIX):
            cleaned = cleaned[len(ZOTERO_STYLE_URL_PREFIX):]
        info = StyleInfo(mendeley=mendeley, zotero=zotero, combined=combined, cleaned=cleaned)
        logger.info("Style extraction completed: %s", info.combined or "no style")
        return info

    @staticmethod
    def _mendeley_style(root: Element) -> str:
        for element in root.iter():
            if local_name(element.tag) != "property":
                continue
            if attribute(element, "name") != MENDELEY_STYLE_PROPERTY:
                continue
            children = list(element)
            if children:
                return "".join(children[0].itertext()).strip()
        return ""

    def _zotero_style(self, root: Element, variant: DocumentVariant) -> str:
        prefs = "".join(self._zotero_pref_fragments(root, variant))
        if not prefs:
            return ""
        if variant == DocumentVariant.OPEN_DOCUMENT:
            prefs = html.unescape(prefs)
        try:
            prefs_root = parse_markup(prefs, "zotero-preferences")
        except MarkupParseError as exc:
            logger.warning("Error parsing Zotero style ID: %s", exc)
            return ""
        for element in prefs_root.iter():
            if local_name(element.tag) == "style" and attribute(element, "id"):
                return (attribute(element, "id") or "").strip()
        logger.debug("No style node with id attribute found in Zotero preferences")
        return ""

    @staticmethod
    def _zotero_pref_fragments(root: Element, variant: DocumentVariant) -> Iterable[str]:
        if variant == DocumentVariant.OFFICE_OPEN_XML:
            for element in root.iter():
                name = attribute(element, "name") or ""
                if local_name(element.tag) == "property" and name.startswith(ZOTERO_PREF_PREFIX):
                    for child in element:
                        yield "".join(child.itertext())
        else:
            for element in root.iter():
                name = attribute(element, "name") or ""
                if local_name(element.tag) == "user-defined" and name.startswith(ZOTERO_PREF_PREFIX):
                    yield "".join(element.itertext())


__all__ = ["FieldScanner", "FieldScanResult", "StyleExtractor", "parse_markup"]
