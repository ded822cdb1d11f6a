"""Unit test conftest — no storage, model API or backend process required."""

from __future__ import annotations

import io

import pytest


@pytest.fixture
def sample_docx_bytes() -> bytes:
    """Generate a 3-paragraph DOCX file in memory."""
    docx = pytest.importorskip("docx")
    doc = docx.Document()
    doc.add_paragraph("First paragraph of the document.")
    doc.add_paragraph("Second paragraph with more detail.")
    doc.add_paragraph("Third and final paragraph.")
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def table_docx_bytes() -> bytes:
    """Generate a DOCX whose only content is a 2x2 table."""
    docx = pytest.importorskip("docx")
    doc = docx.Document()
    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Region"
    table.cell(0, 1).text = "Revenue"
    table.cell(1, 0).text = "North"
    table.cell(1, 1).text = "1200"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Generate a 1-page PDF with 3 lines via fpdf2."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", size=12)
    pdf.cell(text="Line one of the PDF document.")
    pdf.ln()
    pdf.cell(text="Line two with additional content.")
    pdf.ln()
    pdf.cell(text="Line three concludes the page.")
    return bytes(pdf.output())


@pytest.fixture
def multi_page_pdf_bytes() -> bytes:
    """Generate a 3-page PDF for page count verification."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.set_font("Helvetica", size=12)
    for i in range(1, 4):
        pdf.add_page()
        pdf.cell(text=f"Content on page {i}.")
    return bytes(pdf.output())


@pytest.fixture
def png_bytes() -> bytes:
    """Smallest byte string that carries a PNG signature."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def valid_csv_bytes() -> bytes:
    return b"name,age,city\nalice,30,Paris\nbob,25,Berlin\n"
