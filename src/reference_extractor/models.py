"""Data models for citation extraction workflows."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import DocumentVariant

CslRecord = Dict[str, Any]


@dataclass(frozen=True)
class RawField:
    """A field-code string lifted out of one content file."""

    text: str
    file_index: int
    order: int


@dataclass(frozen=True)
class CitationEntry:
    """One item of a field's ``citationItems`` list."""

    uris: Tuple[str, ...]
    item_data: Optional[Mapping[str, Any]]
    field_index: int
    item_index: int
    file_index: int = 0
    item: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class DeduplicationCluster:
    """Citation entries that refer to the same source."""

    canonical_record: Optional[CslRecord]
    occurrence_count: int
    member_indices: Tuple[int, ...]
    identifiers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StyleInfo:
    mendeley: str = ""
    zotero: str = ""
    combined: str = ""
    cleaned: str = ""

    @property
    def has_style(self) -> bool:
        return bool(self.combined)


@dataclass
class DocumentContent:
    """Markup pulled out of a document package."""

    variant: DocumentVariant
    file_name: str
    content_files: List[Tuple[str, str]]
    style_content: Optional[str] = None
    style_file: Optional[str] = None
    total_files: int = 0

    @property
    def texts(self) -> List[str]:
        return [text for _, text in self.content_files]

    @property
    def paths(self) -> List[str]:
        return [path for path, _ in self.content_files]


@dataclass
class ProcessingStats:
    total_fields: int = 0
    failed_files: int = 0
    failed_fields: int = 0
    valid_citations: int = 0
    duplicates_removed: int = 0
    cites_without_metadata: int = 0
    processing_time: float = 0.0
    message: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "totalFields": self.total_fields,
            "failedFiles": self.failed_files,
            "failedFields": self.failed_fields,
            "validCitations": self.valid_citations,
            "duplicatesRemoved": self.duplicates_removed,
            "citesWithoutMetadata": self.cites_without_metadata,
            "processingTime": round(self.processing_time, 4),
            "message": self.message,
        }


@dataclass(frozen=True)
class ZoteroLibrary:
    library_url: str
    library_type: str
    library_id: str
    items: Tuple[str, ...]
    selection_string: Optional[str] = None


@dataclass
class ExtractionResult:
    """Everything produced by one extraction run."""

    document: DocumentContent
    fields: List[RawField]
    entries: List[CitationEntry]
    clusters: List[DeduplicationCluster]
    citations: List[CslRecord]
    style: StyleInfo = field(default_factory=StyleInfo)
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    zotero_libraries: Dict[str, ZoteroLibrary] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.citations
