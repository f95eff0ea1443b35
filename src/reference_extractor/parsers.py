"""Open word-processor packages and pull out the markup that holds field codes."""
from __future__ import annotations

import logging
import zipfile
import zlib
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple

from .config import PACKAGE_LAYOUTS, DocumentVariant, ExtractorSettings
from .errors import ContainerError, ErrorCode
from .models import DocumentContent

logger = logging.getLogger(__name__)


class DocumentParser:
    """Reads .docx/.odt archives and returns their content files as text."""

    def __init__(self, settings: ExtractorSettings | None = None):
        self.settings = settings or ExtractorSettings()

    @staticmethod
    def is_supported(file_name: str) -> bool:
        suffix = Path(file_name).suffix.lower()
        return any(suffix in layout.extensions for layout in PACKAGE_LAYOUTS.values())

    @staticmethod
    def detect_variant(names: List[str]) -> Optional[DocumentVariant]:
        """Return the variant whose indicator file is present in the archive."""

        for variant, layout in PACKAGE_LAYOUTS.items():
            if layout.indicator_file in names:
                logger.info("Document type detected: %s", variant.value)
                return variant
        logger.warning("Unknown document type; archive holds %d files", len(names))
        return None

    def load(self, file_path: str | Path) -> DocumentContent:
        path = Path(file_path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ContainerError(
                f"Could not read {path.name}",
                code=ErrorCode.FILE_READ_ERROR,
                context={"file_name": path.name},
                cause=exc,
            ) from exc
        return self.load_bytes(data, file_name=path.name)

    def load_bytes(self, data: bytes, file_name: str = "document") -> DocumentContent:
        if len(data) > self.settings.max_file_size:
            raise ContainerError(
                "File size too large",
                code=ErrorCode.FILE_READ_ERROR,
                context={"file_name": file_name, "file_size": len(data)},
            )
        try:
            archive = zipfile.ZipFile(BytesIO(data))
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise ContainerError(
                "Document file is corrupted or invalid",
                context={"file_name": file_name},
                cause=exc,
            ) from exc

        with archive:
            names = archive.namelist()
            if not names:
                raise ContainerError(
                    "Document file is corrupted or invalid",
                    context={"file_name": file_name, "reason": "empty archive"},
                )
            variant = self.detect_variant(names)
            if variant is None:
                raise ContainerError(
                    "Unsupported document type",
                    code=ErrorCode.INVALID_FILE_TYPE,
                    context={"file_name": file_name},
                )
            layout = PACKAGE_LAYOUTS[variant]
            wanted = [name for name in layout.content_files if name in names]
            if not wanted:
                raise ContainerError(
                    "No extractable content files found",
                    code=ErrorCode.FILE_PARSE_ERROR,
                    context={"file_name": file_name},
                )

            content_files: List[Tuple[str, str]] = []
            for name in wanted:
                content_files.append((name, self._read_text(archive, name, file_name)))

            style_content = None
            if layout.style_file in names:
                try:
                    style_content = self._read_text(archive, layout.style_file, file_name)
                except ContainerError as exc:
                    logger.warning(
                        "Failed to read style file %s, continuing without it: %s",
                        layout.style_file,
                        exc,
                    )

        logger.info(
            "Loaded %s with %d content files (style file: %s)",
            file_name,
            len(content_files),
            "yes" if style_content else "no",
        )
        return DocumentContent(
            variant=variant,
            file_name=file_name,
            content_files=content_files,
            style_content=style_content,
            style_file=layout.style_file if style_content else None,
            total_files=len(names),
        )

    @staticmethod
    def _read_text(archive: zipfile.ZipFile, name: str, file_name: str) -> str:
        try:
            raw = archive.read(name)
        except (KeyError, zipfile.BadZipFile, OSError, zlib.error) as exc:
            raise ContainerError(
                f"Failed to read {name} from {file_name}",
                context={"file_name": file_name, "member": name},
                cause=exc,
            ) from exc
        return raw.decode("utf-8-sig", errors="replace")
