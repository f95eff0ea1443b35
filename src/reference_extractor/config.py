"""Runtime settings and fixed constants for the extraction pipeline."""
from __future__ import annotations

import os
from enum import Enum
from typing import Dict, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "REFERENCE_EXTRACTOR_"

LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class DocumentVariant(str, Enum):
    OFFICE_OPEN_XML = "OfficeOpenXML"
    OPEN_DOCUMENT = "OpenDocument"


class PackageLayout(BaseModel):
    """Where a document variant keeps its markup inside the archive."""

    indicator_file: str
    content_files: Tuple[str, ...]
    style_file: str
    extensions: Tuple[str, ...]


PACKAGE_LAYOUTS: Dict[DocumentVariant, PackageLayout] = {
    DocumentVariant.OFFICE_OPEN_XML: PackageLayout(
        indicator_file="word/document.xml",
        content_files=("word/document.xml", "word/footnotes.xml", "word/endnotes.xml"),
        style_file="docProps/custom.xml",
        extensions=(".docx",),
    ),
    DocumentVariant.OPEN_DOCUMENT: PackageLayout(
        indicator_file="content.xml",
        content_files=("content.xml",),
        style_file="meta.xml",
        extensions=(".odt",),
    ),
}

# Longest first so "ADDIN ZOTERO_ITEM" wins over "ADDIN".
CITATION_PREFIXES: Tuple[str, ...] = (
    "ADDIN ZOTERO_ITEM CSL_CITATION",
    "ADDIN CSL_CITATION",
    "ZOTERO_ITEM CSL_CITATION",
    "CSL_CITATION",
)

MENDELEY_STYLE_PROPERTY = "Mendeley Recent Style Id 0_1"
ZOTERO_PREF_PREFIX = "ZOTERO_PREF"
ZOTERO_STYLE_URL_PREFIX = "http://www.zotero.org/styles/"

ZOTERO_URI_PREFIX = "http://zotero.org/"
ZOTERO_LOCAL_URI_PREFIX = "http://zotero.org/users/local/"
ZOTERO_WEB_URI_PREFIX = "http://zotero.org/users/"
ZOTERO_SELECTION_PREFIX = "zotero://select/"


class ExtractorSettings(BaseModel):
    """Tunable limits for one extractor instance."""

    max_field_walk_steps: int = Field(1000, description="Sibling ceiling for complex fields")
    cache_size: int = Field(100, description="Formatted output cache capacity")
    max_file_size: int = Field(50 * 1024 * 1024, description="Largest accepted package in bytes")
    max_workers: int = Field(1, description="Threads used to scan content files")
    default_style: str = Field("apa", description="Bibliography style when none is requested")
    log_level: str = Field("WARNING", description="Logging level used by the CLI")

    @field_validator("max_field_walk_steps", "cache_size", "max_file_size", "max_workers")
    @classmethod
    def ensure_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("log_level")
    @classmethod
    def ensure_known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level: {value}")
        return level

    @field_validator("default_style")
    @classmethod
    def normalize_style(cls, value: str) -> str:
        return value.strip().lower() or "apa"

    @classmethod
    def from_env(cls, **overrides: object) -> "ExtractorSettings":
        """Build settings from ``REFERENCE_EXTRACTOR_*`` variables (and a .env file)."""

        load_dotenv()
        values: Dict[str, object] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


__all__ = [
    "CITATION_PREFIXES",
    "DocumentVariant",
    "ExtractorSettings",
    "PACKAGE_LAYOUTS",
    "PackageLayout",
]
