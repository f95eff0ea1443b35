import re

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from reference_extractor.web import MAX_PENDING_EXPORTS, app, generated_exports


client = TestClient(app)

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def test_homepage_renders_form():
    response = client.get("/")

    assert response.status_code == 200
    assert "Reference Extractor" in response.text
    assert "tailwind" in response.text.lower()
    assert "name=\"file\"" in response.text
    assert "bibliography-with-counts" in response.text


def test_extract_docx_upload(sample_docx_path):
    with sample_docx_path.open("rb") as handle:
        response = client.post(
            "/extract",
            files={"file": (sample_docx_path.name, handle, DOCX_TYPE)},
            data={"output_format": "ris"},
        )

    assert response.status_code == 200
    assert "Citation Extraction Report" in response.text
    assert "TY  - JOUR" in response.text
    assert "Download output" in response.text

    match = re.search(r"/download/([a-f0-9]+)", response.text)
    assert match is not None

    download = client.get(f"/download/{match.group(1)}")
    assert download.status_code == 200
    assert "sample_manuscript.ris" in download.headers["content-disposition"]
    assert download.text.startswith("TY  - JOUR")

    assert client.get(f"/download/{match.group(1)}").status_code == 404


def test_extract_rejects_unsupported_files():
    response = client.post("/extract", files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")})

    assert response.status_code == 400


def test_extract_reports_corrupt_documents():
    response = client.post(
        "/extract",
        files={"file": ("broken.docx", b"not a zip", DOCX_TYPE)},
        data={"output_format": "data"},
    )

    assert response.status_code == 400
    assert "corrupted" in response.json()["detail"]


def test_extract_rejects_unknown_format(sample_docx_path):
    response = client.post(
        "/extract",
        files={"file": (sample_docx_path.name, sample_docx_path.read_bytes(), DOCX_TYPE)},
        data={"output_format": "endnote"},
    )

    assert response.status_code == 400


def test_undownloaded_exports_are_bounded(sample_docx_path):
    generated_exports.clear()
    payload = sample_docx_path.read_bytes()

    for _ in range(MAX_PENDING_EXPORTS + 5):
        response = client.post(
            "/extract",
            files={"file": (sample_docx_path.name, payload, DOCX_TYPE)},
            data={"output_format": "data"},
        )
        assert response.status_code == 200

    assert len(generated_exports) == MAX_PENDING_EXPORTS
