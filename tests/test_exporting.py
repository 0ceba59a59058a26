"""Tests for Excel and PDF export."""
from __future__ import annotations

from io import BytesIO

from openpyxl import load_workbook

from core.exporting import records_to_frame, to_excel_bytes, to_pdf_bytes

COLUMNS = {"Reference": "referenceNumber", "Product": "product.name", "Quantity": "quantity"}


def test_records_to_frame_reads_nested_paths(disposals):
    df = records_to_frame(disposals[:2], COLUMNS)
    assert list(df.columns) == ["Reference", "Product", "Quantity"]
    assert df.iloc[0].tolist() == ["DSP-001", "Beans", 1.0]


def test_records_to_frame_empty():
    df = records_to_frame([], COLUMNS)
    assert df.empty and list(df.columns) == list(COLUMNS)


def test_excel_has_table_and_rows(disposals):
    data = to_excel_bytes(records_to_frame(disposals, COLUMNS), sheet_name="disposals")
    ws = load_workbook(BytesIO(data))["disposals"]
    assert [c.value for c in ws[1]] == ["Reference", "Product", "Quantity"]
    assert ws.max_row == 13
    assert "DisposalsExport" in ws.tables


def test_excel_empty_frame():
    data = to_excel_bytes(records_to_frame([], COLUMNS), sheet_name="returns")
    ws = load_workbook(BytesIO(data))["returns"]
    assert ws.max_row == 1


def test_pdf_bytes(disposals):
    data = to_pdf_bytes(records_to_frame(disposals, COLUMNS), title="Disposals")
    assert data.startswith(b"%PDF")
