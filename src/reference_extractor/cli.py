"""Command line interface for extracting citations from documents."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from .app import ReferenceExtractorApp
from .config import LOG_LEVELS, ExtractorSettings
from .errors import ExtractorError
from .models import ExtractionResult
from .output import OutputFormat

logger = logging.getLogger(__name__)


def _serialize_libraries(result: ExtractionResult) -> List[Dict[str, Any]]:
    return [
        {
            "library_url": library.library_url,
            "library_type": library.library_type,
            "library_id": library.library_id,
            "items": list(library.items),
            "selection_string": library.selection_string,
        }
        for library in result.zotero_libraries.values()
    ]


def _build_result(result: ExtractionResult) -> Dict[str, Any]:
    return {
        "file_name": result.document.file_name,
        "document_type": result.document.variant.value,
        "stats": result.stats.as_dict(),
        "style": {
            "mendeley": result.style.mendeley,
            "zotero": result.style.zotero,
            "combined": result.style.combined,
            "cleaned": result.style.cleaned,
        },
        "zotero_libraries": _serialize_libraries(result),
        "citations": result.citations,
    }


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Extract and deduplicate Zotero/Mendeley citations from DOCX or ODT files"
    )
    parser.add_argument("input", help="Path to the .docx or .odt document")
    parser.add_argument(
        "--format",
        default=OutputFormat.DATA.value,
        choices=[fmt.value for fmt in OutputFormat],
        help="Output format for the extracted citations",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the formatted citations to this path (default: input name with the format's extension)",
    )
    parser.add_argument(
        "--style",
        choices=["apa", "harvard", "vancouver"],
        help="Bibliography style used by the bibliography formats",
    )
    parser.add_argument(
        "--json-output",
        type=Path,
        help="Write a JSON summary (statistics, style, Zotero selectors, citations)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=sorted(LOG_LEVELS),
        help="Logging verbosity (defaults to REFERENCE_EXTRACTOR_LOG_LEVEL or WARNING)",
    )
    args = parser.parse_args(argv)

    settings = ExtractorSettings.from_env(log_level=args.log_level, default_style=args.style)
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    extractor = ReferenceExtractorApp(settings=settings)
    input_path = Path(args.input)
    output_format = OutputFormat(args.format)

    try:
        result = extractor.process_file(input_path)
        formatted = extractor.format_output(output_format, options={"style": settings.default_style})
    except ExtractorError as exc:
        logger.debug("Extraction failed", exc_info=exc)
        print(f"Error {exc.code}: {exc.user_message}", file=sys.stderr)
        return 1

    print(extractor.report())

    if formatted.degraded:
        print("Citation renderer unavailable; wrote a simplified listing.", file=sys.stderr)

    if not result.is_empty:
        output_path = args.output or input_path.with_suffix(output_format.extension)
        output_path.write_text(formatted.text, encoding="utf-8")
        print(f"Wrote {output_format.value} output to {output_path}")

    if args.json_output:
        args.json_output.write_text(
            json.dumps(_build_result(result), indent=2, ensure_ascii=False), encoding="utf-8"
        )

    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    raise SystemExit(main())
