"""Excel and PDF export of the rows a list page currently matches."""
from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, List

import pandas as pd
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table as XlTable, TableStyleInfo as XlTableStyleInfo
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.list_pipeline import get_field

EXCEL_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIME = "application/pdf"


def records_to_frame(rows: List[Dict[str, Any]], columns: Dict[str, str]) -> pd.DataFrame:
    """Flatten records into a frame; ``columns`` maps header -> dotted field path."""
    data = {header: [get_field(r, path) for r in rows] for header, path in columns.items()}
    return pd.DataFrame(data, columns=list(columns))


def _table_name(sheet_name: str) -> str:
    cleaned = "".join(ch for ch in sheet_name.title() if ch.isalnum())
    return f"{cleaned or 'Records'}Export"


def to_excel_bytes(df: pd.DataFrame, sheet_name: str = "records") -> bytes:
    """Workbook with the frame laid out as a striped Excel table."""
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
        ws = writer.sheets[sheet_name]
        max_col = len(df.columns)
        max_row = max(len(df), 1) + 1
        if max_col:
            last_col = get_column_letter(max_col)
            table = XlTable(displayName=_table_name(sheet_name), ref=f"A1:{last_col}{max_row}")
            table.tableStyleInfo = XlTableStyleInfo(
                name="TableStyleMedium9",
                showFirstColumn=False,
                showLastColumn=False,
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(table)
            for idx, col_name in enumerate(df.columns, start=1):
                ws.column_dimensions[get_column_letter(idx)].width = max(12, len(str(col_name)) + 2)
    return buf.getvalue()


def to_pdf_bytes(df: pd.DataFrame, title: str = "") -> bytes:
    """Landscape PDF with a title and one grid table."""
    buf = BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(letter))
    story = []
    if title:
        story.append(Paragraph(title, getSampleStyleSheet()["Heading2"]))
        story.append(Spacer(1, 8))
    data = [list(df.columns)] + df.fillna("").astype(str).values.tolist()
    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    story.append(table)
    doc.build(story)
    return buf.getvalue()
