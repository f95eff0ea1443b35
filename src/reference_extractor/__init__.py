"""Citation extraction and deduplication toolkit for DOCX/ODT documents."""

from .app import ReferenceExtractorApp
from .config import DocumentVariant, ExtractorSettings
from .deduplication import DeduplicationEngine
from .errors import ExtractorError
from .field_parser import CitationFieldParser
from .field_scanner import FieldScanner, StyleExtractor
from .metadata import MetadataProjector
from .models import CitationEntry, DeduplicationCluster, ExtractionResult, RawField
from .output import FormattedOutput, OutputFormat, OutputFormatter
from .rendering import CitationRenderer, CslRenderer

__all__ = [
    "ReferenceExtractorApp",
    "DocumentVariant",
    "ExtractorSettings",
    "DeduplicationEngine",
    "ExtractorError",
    "CitationFieldParser",
    "FieldScanner",
    "StyleExtractor",
    "MetadataProjector",
    "CitationEntry",
    "DeduplicationCluster",
    "ExtractionResult",
    "RawField",
    "FormattedOutput",
    "OutputFormat",
    "OutputFormatter",
    "CitationRenderer",
    "CslRenderer",
]
