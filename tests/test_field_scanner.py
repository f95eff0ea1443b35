import logging

from conftest import (
    complex_field_paragraph,
    custom_properties,
    field_code,
    citation_item,
    word_document,
    zotero_prefs,
)
from reference_extractor.config import DocumentVariant, ExtractorSettings
from reference_extractor.field_scanner import FieldScanner, StyleExtractor

ODT_CONTENT = (
    "<office:document-content xmlns:office=\"urn:oasis:names:tc:opendocument:xmlns:office:1.0\" "
    "xmlns:text=\"urn:oasis:names:tc:opendocument:xmlns:text:1.0\"><office:body><office:text>"
    "<text:p><text:reference-mark-start text:name=\"ZOTERO_ITEM CSL_CITATION {&quot;citationItems&quot;: []} RND1\"/>"
    "(Doe)<text:reference-mark-end text:name=\"ZOTERO_ITEM CSL_CITATION {&quot;citationItems&quot;: []} RND1\"/></text:p>"
    "<text:p><text:reference-mark-start text:name=\"  \"/></text:p>"
    "</office:text></office:body></office:document-content>"
)


def test_complex_field_fragments_are_concatenated():
    code = field_code([citation_item("http://zotero.org/users/1/items/A")])
    content = word_document([complex_field_paragraph(code)])

    fields = FieldScanner().scan_content(content, DocumentVariant.OFFICE_OPEN_XML)

    assert fields == [code]


def test_display_text_after_separator_is_not_collected():
    code = "ADDIN CSL_CITATION {\"citationItems\": []}"
    content = word_document([complex_field_paragraph(code, split=False)])

    fields = FieldScanner().scan_content(content, DocumentVariant.OFFICE_OPEN_XML)

    assert fields == [code]
    assert "(Citation)" not in fields[0]


def test_reference_marks_are_read_from_name_attribute():
    fields = FieldScanner().scan_content(ODT_CONTENT, DocumentVariant.OPEN_DOCUMENT)

    assert fields == ["ZOTERO_ITEM CSL_CITATION {\"citationItems\": []} RND1"]


def test_walk_stops_at_step_ceiling_and_warns(caplog):
    runs = ["<w:r><w:fldChar w:fldCharType=\"begin\"/></w:r>"]
    runs.extend(f"<w:r><w:instrText>part{i} </w:instrText></w:r>" for i in range(10))
    runs.append("<w:r><w:fldChar w:fldCharType=\"end\"/></w:r>")
    second = complex_field_paragraph("ADDIN CSL_CITATION {}", split=False)
    content = word_document(["<w:p>" + "".join(runs) + "</w:p>", second])

    scanner = FieldScanner(ExtractorSettings(max_field_walk_steps=3))
    with caplog.at_level(logging.WARNING, logger="reference_extractor.field_scanner"):
        fields = scanner.scan_content(content, DocumentVariant.OFFICE_OPEN_XML)

    assert fields == ["part0 part1 part2", "ADDIN CSL_CITATION {}"]
    assert any("maximum of 3 steps" in record.getMessage() for record in caplog.records)


def test_malformed_file_is_skipped_and_reported(caplog):
    good = word_document([complex_field_paragraph("ADDIN CSL_CITATION {}", split=False)])
    broken = "<w:document><w:body>"

    with caplog.at_level(logging.WARNING):
        result = FieldScanner().scan(
            [broken, good],
            DocumentVariant.OFFICE_OPEN_XML,
            ["word/document.xml", "word/footnotes.xml"],
        )

    assert result.failed_files == ["word/document.xml"]
    assert [field.text for field in result.fields] == ["ADDIN CSL_CITATION {}"]
    assert result.fields[0].file_index == 1
    assert "Failed to parse XML from word/document.xml" in caplog.text


def test_thread_pool_preserves_file_order():
    contents = [
        word_document([complex_field_paragraph(f"ADDIN CSL_CITATION {{\"n\": {i}}}", split=False)])
        for i in range(4)
    ]

    result = FieldScanner(ExtractorSettings(max_workers=3)).scan(contents, DocumentVariant.OFFICE_OPEN_XML)

    assert [field.file_index for field in result.fields] == [0, 1, 2, 3]
    assert [field.order for field in result.fields] == [0, 1, 2, 3]
    assert result.fields[2].text.endswith("{\"n\": 2}")


def test_style_extractor_reads_zotero_and_mendeley_styles():
    xml = custom_properties(
        zotero_style="http://www.zotero.org/styles/apa",
        mendeley_style="http://www.zotero.org/styles/harvard-cite-them-right",
    )

    style = StyleExtractor().extract(xml, DocumentVariant.OFFICE_OPEN_XML)

    assert style.mendeley == "http://www.zotero.org/styles/harvard-cite-them-right"
    assert style.zotero == "http://www.zotero.org/styles/apa"
    assert style.combined == (
        "http://www.zotero.org/styles/harvard-cite-them-right, http://www.zotero.org/styles/apa"
    )
    assert style.cleaned.startswith("harvard-cite-them-right, ")


def test_style_extractor_reads_open_document_user_fields():
    prefs = zotero_prefs("http://www.zotero.org/styles/ieee").replace("<", "&lt;").replace(">", "&gt;")
    meta = (
        "<office:document-meta xmlns:office=\"urn:oasis:names:tc:opendocument:xmlns:office:1.0\" "
        "xmlns:meta=\"urn:oasis:names:tc:opendocument:xmlns:meta:1.0\"><office:meta>"
        f"<meta:user-defined meta:name=\"ZOTERO_PREF_1\">{prefs}</meta:user-defined>"
        "</office:meta></office:document-meta>"
    )

    style = StyleExtractor().extract(meta, DocumentVariant.OPEN_DOCUMENT)

    assert style.zotero == "http://www.zotero.org/styles/ieee"
    assert style.cleaned == "ieee"


def test_style_extractor_tolerates_missing_or_broken_metadata():
    extractor = StyleExtractor()

    assert not extractor.extract(None, DocumentVariant.OFFICE_OPEN_XML).has_style
    assert not extractor.extract("<Properties", DocumentVariant.OFFICE_OPEN_XML).has_style
