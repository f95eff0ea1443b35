from __future__ import annotations

import json
import sys
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from xml.sax.saxutils import escape, quoteattr

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

import pytest

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
OFFICE_NS = "urn:oasis:names:tc:opendocument:xmlns:office:1.0"
TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"
META_NS = "urn:oasis:names:tc:opendocument:xmlns:meta:1.0"


def citation_item(uri: str | None = None, title: str | None = "Sample title", **item_data: Any) -> Dict[str, Any]:
    item: Dict[str, Any] = {"id": uri or title}
    if uri:
        item["uris"] = [uri]
    if title is not None:
        data = {"type": "article-journal", "title": title}
        data.update(item_data)
        item["itemData"] = data
    return item


def field_code(items: Sequence[Dict[str, Any]], prefix: str = "ADDIN ZOTERO_ITEM CSL_CITATION", suffix: str = "") -> str:
    payload = json.dumps({"citationID": "abc", "citationItems": list(items)})
    code = f"{prefix} {payload}"
    return f"{code} {suffix}" if suffix else code


def complex_field_paragraph(code: str, split: bool = True) -> str:
    """Build a w:p holding one complex field, with the code spread over two runs."""

    cut = len(code) // 2 if split else len(code)
    fragments = [code[:cut], code[cut:]] if split else [code]
    runs = ["<w:r><w:fldChar w:fldCharType=\"begin\"/></w:r>"]
    for fragment in fragments:
        runs.append(f"<w:r><w:instrText xml:space=\"preserve\">{escape(fragment)}</w:instrText></w:r>")
    runs.append("<w:r><w:fldChar w:fldCharType=\"separate\"/></w:r>")
    runs.append("<w:r><w:t>(Citation)</w:t></w:r>")
    runs.append("<w:r><w:fldChar w:fldCharType=\"end\"/></w:r>")
    return "<w:p>" + "".join(runs) + "</w:p>"


def word_document(paragraphs: Sequence[str]) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        f"<w:document xmlns:w=\"{W_NS}\"><w:body>{''.join(paragraphs)}</w:body></w:document>"
    )


def zotero_prefs(style_id: str) -> str:
    return f"<data data-version=\"3\"><session id=\"s1\"/><style id=\"{style_id}\" locale=\"en-US\"/></data>"


def custom_properties(zotero_style: str | None = None, mendeley_style: str | None = None) -> str:
    properties = []
    if mendeley_style:
        properties.append(
            "<property fmtid=\"{D5CDD505-2E9C-101B-9397-08002B2CF9AE}\" pid=\"2\" "
            f"name=\"Mendeley Recent Style Id 0_1\"><vt:lpwstr>{escape(mendeley_style)}</vt:lpwstr></property>"
        )
    if zotero_style:
        properties.append(
            "<property fmtid=\"{D5CDD505-2E9C-101B-9397-08002B2CF9AE}\" pid=\"3\" "
            f"name=\"ZOTERO_PREF_1\"><vt:lpwstr>{escape(zotero_prefs(zotero_style))}</vt:lpwstr></property>"
        )
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Properties xmlns=\"http://schemas.openxmlformats.org/officeDocument/2006/custom-properties\" "
        "xmlns:vt=\"http://schemas.openxmlformats.org/officeDocument/2006/docPropsVTypes\">"
        + "".join(properties)
        + "</Properties>"
    )


def build_docx(
    paragraphs: Sequence[str],
    footnotes: Optional[Sequence[str]] = None,
    custom_xml: str | None = None,
    extra_files: Optional[Dict[str, str]] = None,
) -> bytes:
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, mode="w") as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        archive.writestr("word/document.xml", word_document(paragraphs))
        if footnotes is not None:
            archive.writestr(
                "word/footnotes.xml",
                f"<w:footnotes xmlns:w=\"{W_NS}\"><w:footnote>{''.join(footnotes)}</w:footnote></w:footnotes>",
            )
        if custom_xml is not None:
            archive.writestr("docProps/custom.xml", custom_xml)
        for name, content in (extra_files or {}).items():
            archive.writestr(name, content)
    return buffer.getvalue()


def build_odt(codes: Sequence[str], zotero_style: str | None = None) -> bytes:
    marks = "".join(
        f"<text:p><text:reference-mark-start text:name={quoteattr(code)}/>(Citation)"
        f"<text:reference-mark-end text:name={quoteattr(code)}/></text:p>"
        for code in codes
    )
    content = (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        f"<office:document-content xmlns:office=\"{OFFICE_NS}\" xmlns:text=\"{TEXT_NS}\">"
        f"<office:body><office:text>{marks}</office:text></office:body></office:document-content>"
    )
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, mode="w") as archive:
        archive.writestr("mimetype", "application/vnd.oasis.opendocument.text")
        archive.writestr("content.xml", content)
        if zotero_style:
            archive.writestr(
                "meta.xml",
                "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
                f"<office:document-meta xmlns:office=\"{OFFICE_NS}\" xmlns:meta=\"{META_NS}\">"
                f"<office:meta><meta:user-defined meta:name=\"ZOTERO_PREF_1\">{escape(zotero_prefs(zotero_style))}"
                "</meta:user-defined></office:meta></office:document-meta>",
            )
    return buffer.getvalue()


@pytest.fixture()
def sample_items() -> List[Dict[str, Any]]:
    return [
        citation_item(
            "http://zotero.org/users/local/abc/items/KEY1",
            title="Deep learning for citation analysis",
            author=[{"family": "Doe", "given": "Jane"}],
            issued={"date-parts": [[2020]]},
            **{"container-title": "Journal of Testing"},
        ),
        citation_item(
            "http://zotero.org/groups/42/items/KEY2",
            title="Reference managers in practice",
            author=[{"family": "Smith", "given": "Alex"}],
            issued={"date-parts": [[2019]]},
        ),
    ]


@pytest.fixture()
def sample_docx_path(tmp_path: Path, sample_items) -> Path:
    """A DOCX citing the first item twice (once in a footnote) and the second once."""

    first, second = sample_items
    data = build_docx(
        [complex_field_paragraph(field_code([first, second], suffix="RND7x2k9"))],
        footnotes=[complex_field_paragraph(field_code([first]))],
        custom_xml=custom_properties(zotero_style="http://www.zotero.org/styles/apa"),
    )
    docx_path = tmp_path / "sample_manuscript.docx"
    docx_path.write_bytes(data)
    return docx_path
