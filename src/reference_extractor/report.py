"""Extraction reporting utilities."""
from __future__ import annotations

from .models import ExtractionResult


def render_report(result: ExtractionResult | None) -> str:
    """Return a human-readable summary of an extraction run."""

    header_lines = ["Citation Extraction Report"]
    if result is None:
        header_lines.append("No document processed.")
        return "\n".join(header_lines)

    stats = result.stats
    header_lines.append(f"Document: {result.document.file_name} ({result.document.variant.value})")
    header_lines.append(f"Citation fields detected: {stats.total_fields}")
    header_lines.append(f"Unique citations: {stats.valid_citations}")
    header_lines.append(f"Duplicates removed: {stats.duplicates_removed}")
    if stats.cites_without_metadata:
        header_lines.append(f"Citations without metadata: {stats.cites_without_metadata}")
    if stats.failed_files or stats.failed_fields:
        header_lines.append(
            f"Skipped: {stats.failed_files} unreadable files, {stats.failed_fields} malformed fields"
        )
    if result.style.has_style:
        header_lines.append(f"Citation style: {result.style.cleaned}")
    header_lines.append(f"Processing time: {stats.processing_time:.3f}s")

    if stats.message:
        header_lines.append(stats.message + ".")
        return "\n".join(header_lines)

    lines = header_lines
    if result.zotero_libraries:
        lines.append("Zotero libraries:")
        for library in result.zotero_libraries.values():
            lines.append(f"- {library.library_url} ({len(library.items)} items)")
            if library.selection_string:
                lines.append(f"  {library.selection_string}")
    return "\n".join(lines)
