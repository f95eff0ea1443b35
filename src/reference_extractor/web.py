"""FastAPI + Tailwind interface for the citation extractor.

Run with:
    uvicorn reference_extractor.web:app --reload
"""
from __future__ import annotations

import html
import logging
from pathlib import Path
from secrets import token_hex

from cachetools import FIFOCache
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import HTMLResponse, Response

from .app import ReferenceExtractorApp
from .config import ExtractorSettings
from .errors import ExtractorError
from .output import OutputFormat

logger = logging.getLogger(__name__)

app = FastAPI(title="Reference Extractor", description="Extract citations from the browser")

MAX_PENDING_EXPORTS = 50

# Oldest undownloaded exports are dropped once the limit is reached.
generated_exports: FIFOCache = FIFOCache(maxsize=MAX_PENDING_EXPORTS)

_MEDIA_TYPES = {
    ".json": "application/json",
    ".bib": "application/x-bibtex",
    ".ris": "application/x-research-info-systems",
    ".txt": "text/plain",
    ".tsv": "text/tab-separated-values",
}


def _build_extractor() -> ReferenceExtractorApp:
    return ReferenceExtractorApp(settings=ExtractorSettings.from_env())


def _layout(content: str) -> str:
    """Wrap provided content in a Tailwind-powered HTML page."""

    return f"""
    <!doctype html>
    <html lang=\"en\" class=\"h-full bg-gray-50\">
    <head>
        <meta charset=\"utf-8\" />
        <title>Reference Extractor</title>
        <link href=\"https://cdn.jsdelivr.net/npm/tailwindcss@3.4.4/dist/tailwind.min.css\" rel=\"stylesheet\" />
    </head>
    <body class=\"min-h-full py-10\">
        <div class=\"max-w-5xl mx-auto px-4\">
            <div class=\"bg-white shadow rounded-lg p-6\">
                <h1 class=\"text-3xl font-semibold text-gray-900\">Reference Extractor</h1>
                <p class=\"text-gray-600 mt-2\">Upload a Word or LibreOffice document with Zotero or Mendeley citations to get a deduplicated reference list.</p>
                {content}
            </div>
        </div>
    </body>
    </html>
    """


def _form_page(
    report: str | None = None,
    output: str | None = None,
    download_token: str | None = None,
    selected_format: str = OutputFormat.DATA.value,
) -> str:
    """Render the landing page with optional report, output preview and download link."""

    options = "".join(
        f"<option value=\"{fmt.value}\"{' selected' if fmt.value == selected_format else ''}>"
        f"{html.escape(fmt.description)} ({fmt.extension})</option>"
        for fmt in OutputFormat
    )

    upload_form = f"""
    <form action=\"/extract\" method=\"post\" enctype=\"multipart/form-data\" class=\"bg-gray-50 border border-gray-200 rounded-lg p-4 mt-6\">
        <h2 class=\"text-xl font-semibold text-gray-800\">Upload document</h2>
        <label class=\"block text-sm font-medium text-gray-700 mb-2\" for=\"file\">DOCX or ODT file</label>
        <input type=\"file\" name=\"file\" accept=\".docx,.odt\" required class=\"block w-full text-sm text-gray-800\" />
        <label class=\"block text-sm font-medium text-gray-700 mt-3 mb-2\" for=\"output_format\">Output format</label>
        <select name=\"output_format\" id=\"output_format\" class=\"border border-gray-300 rounded-md p-2 text-sm\">{options}</select>
        <button type=\"submit\" class=\"mt-4 inline-flex items-center px-4 py-2 bg-indigo-600 text-white rounded-md shadow hover:bg-indigo-700\">Extract citations</button>
    </form>
    """

    report_block = ""
    if report:
        report_block = f"""
        <div class=\"mt-8\">
            <h2 class=\"text-xl font-semibold text-gray-800\">Extraction Report</h2>
            <pre class=\"mt-3 bg-gray-900 text-green-100 p-4 rounded-lg whitespace-pre-wrap text-sm\">{html.escape(report)}</pre>
        </div>
        """

    output_block = ""
    if output:
        output_block = f"""
        <div class=\"mt-6\">
            <h2 class=\"text-xl font-semibold text-gray-800\">Output</h2>
            <pre class=\"mt-3 bg-gray-100 text-gray-900 p-4 rounded-lg whitespace-pre-wrap text-sm\">{html.escape(output)}</pre>
        </div>
        """

    download_block = ""
    if download_token:
        download_block = f"""
        <div class=\"mt-4\">
            <a class=\"inline-flex items-center px-4 py-2 bg-emerald-600 text-white rounded-md shadow hover:bg-emerald-700\" href=\"/download/{download_token}\">Download output</a>
        </div>
        """

    return _layout(upload_form + report_block + output_block + download_block)


@app.get("/", response_class=HTMLResponse)
async def home() -> HTMLResponse:
    """Serve the upload form."""

    return HTMLResponse(_form_page())


@app.post("/extract", response_class=HTMLResponse)
async def extract(
    file: UploadFile = File(...), output_format: str = Form(OutputFormat.DATA.value)
) -> HTMLResponse:
    """Process an uploaded document and return the report and formatted output."""

    file_name = file.filename or "document"
    extractor = _build_extractor()
    if not extractor.parser.is_supported(file_name):
        raise HTTPException(status_code=400, detail="Only DOCX and ODT files are supported")

    try:
        fmt = OutputFormat.parse(output_format)
        extractor.process_bytes(await file.read(), file_name=file_name)
        formatted = extractor.format_output(fmt)
    except ExtractorError as exc:
        logger.warning("Extraction of %s failed: %s", file_name, exc)
        raise HTTPException(status_code=400, detail=exc.user_message) from exc

    token = None
    if formatted.text:
        token = token_hex(8)
        download_name = f"{Path(file_name).stem}{fmt.extension}"
        generated_exports[token] = (download_name, formatted.text.encode("utf-8"))

    return HTMLResponse(
        _form_page(
            extractor.report(),
            output=formatted.text,
            download_token=token,
            selected_format=fmt.value,
        )
    )


@app.get("/download/{token}")
async def download_output(token: str) -> Response:
    """Serve a generated output file once."""

    export = generated_exports.pop(token, None)
    if export is None:
        raise HTTPException(status_code=404, detail="Export not found or expired")

    download_name, payload = export
    return Response(
        content=payload,
        media_type=_MEDIA_TYPES.get(Path(download_name).suffix, "text/plain"),
        headers={"Content-Disposition": f"attachment; filename=\"{download_name}\""},
    )


def main() -> None:
    """Run the FastAPI app using uvicorn."""

    import uvicorn

    uvicorn.run("reference_extractor.web:app", host="0.0.0.0", port=8000, reload=False)


__all__ = ["app", "main"]
