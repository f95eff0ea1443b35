"""High-level orchestrator for citation extraction workflows."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .config import ExtractorSettings
from .deduplication import DeduplicationEngine
from .errors import FieldParseError
from .field_parser import CitationFieldParser
from .field_scanner import FieldScanner, StyleExtractor
from .metadata import MetadataProjector
from .models import DocumentContent, ExtractionResult, ProcessingStats
from .output import FormattedOutput, OutputFormat, OutputFormatter
from .parsers import DocumentParser
from .rendering import CitationRenderer, CslRenderer
from .report import render_report
from .zotero import build_library_selectors, collect_zotero_uris

logger = logging.getLogger(__name__)

NO_CITATIONS_MESSAGE = "No citations found"
_DEFAULT_RENDERER: Any = object()


class ReferenceExtractorApp:
    """Coordinates package reading, citation extraction, deduplication and export."""

    def __init__(
        self,
        settings: ExtractorSettings | None = None,
        renderer: CitationRenderer | None = _DEFAULT_RENDERER,
        parser: DocumentParser | None = None,
        scanner: FieldScanner | None = None,
        style_extractor: StyleExtractor | None = None,
        field_parser: CitationFieldParser | None = None,
        deduplicator: DeduplicationEngine | None = None,
        projector: MetadataProjector | None = None,
        formatter: OutputFormatter | None = None,
    ):
        self.settings = settings or ExtractorSettings()
        self.parser = parser or DocumentParser(self.settings)
        self.scanner = scanner or FieldScanner(self.settings)
        self.style_extractor = style_extractor or StyleExtractor()
        self.field_parser = field_parser or CitationFieldParser()
        self.deduplicator = deduplicator or DeduplicationEngine()
        self.projector = projector or MetadataProjector()
        # renderer=None forces the fallback listing.
        if formatter is None:
            formatter = OutputFormatter(
                renderer=CslRenderer(default_style=self.settings.default_style)
                if renderer is _DEFAULT_RENDERER
                else renderer,
                cache_size=self.settings.cache_size,
            )
        self.formatter = formatter
        self.result: Optional[ExtractionResult] = None

    def process_file(self, file_path: str | Path) -> ExtractionResult:
        started = time.perf_counter()
        document = self.parser.load(file_path)
        return self._process(document, started)

    def process_bytes(self, data: bytes, file_name: str = "document") -> ExtractionResult:
        started = time.perf_counter()
        document = self.parser.load_bytes(data, file_name=file_name)
        return self._process(document, started)

    def _process(self, document: DocumentContent, started: float) -> ExtractionResult:
        logger.info("Processing %s (%s)", document.file_name, document.variant.value)

        scan = self.scanner.scan(document.texts, document.variant, document.paths)
        style = self.style_extractor.extract(document.style_content, document.variant)

        failures: List[FieldParseError] = []
        entries = self.field_parser.parse_fields(scan.fields, failures)
        clusters = self.deduplicator.deduplicate(entries)
        projection = self.projector.project(clusters)
        libraries = build_library_selectors(collect_zotero_uris(clusters))

        stats = ProcessingStats(
            total_fields=len(scan.fields),
            failed_files=len(scan.failed_files),
            failed_fields=len(failures),
            valid_citations=len(projection.citations),
            duplicates_removed=len(entries) - len(clusters),
            cites_without_metadata=projection.cites_without_metadata,
            processing_time=time.perf_counter() - started,
            message=None if projection.citations else NO_CITATIONS_MESSAGE,
        )

        result = ExtractionResult(
            document=document,
            fields=scan.fields,
            entries=entries,
            clusters=clusters,
            citations=projection.citations,
            style=style,
            stats=stats,
            zotero_libraries=libraries,
        )
        self.result = result
        self.formatter.set_citations(result.citations)
        logger.info(
            "Processed %s: %d fields, %d citations, %d duplicates removed in %.3fs",
            document.file_name,
            stats.total_fields,
            stats.valid_citations,
            stats.duplicates_removed,
            stats.processing_time,
        )
        return result

    def format_output(
        self,
        output_format: OutputFormat | str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> FormattedOutput:
        return self.formatter.format(output_format, options=options)

    def report(self) -> str:
        if self.result is None:
            return render_report(None)
        return render_report(self.result)

    def reset(self) -> None:
        self.result = None
        self.formatter.set_citations([])
        logger.debug("Application state reset")


__all__ = ["NO_CITATIONS_MESSAGE", "ReferenceExtractorApp"]
