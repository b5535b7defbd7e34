from pathlib import Path

import pandas as pd
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from . import config
from .errors import NotFound
from .persistence import allocation_rows

EXCEL_COLUMNS = [
    "student_id", "name", "batch", "semester", "subject_code",
    "room_id", "row_number", "bench_number", "seat_position",
]


def _rows_or_raise(db, session_key):
    rows = allocation_rows(db, session_key)
    if not rows:
        raise NotFound("No allocation found. Run /allocations/run first.")
    return rows


def _export_path(export_dir, session_key, suffix):
    export_dir = Path(export_dir or config.EXPORT_DIR)
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir / f"allocation_{session_key.label()}.{suffix}"


def export_excel(db, session_key, export_dir=None):
    rows = _rows_or_raise(db, session_key)

    df = pd.DataFrame(rows, columns=EXCEL_COLUMNS + ["exam_id"])

    file_path = _export_path(export_dir, session_key, "xlsx")
    df.to_excel(file_path, index=False)
    return file_path


def export_pdf(db, session_key, export_dir=None):
    rows = _rows_or_raise(db, session_key)
    file_path = _export_path(export_dir, session_key, "pdf")

    c = canvas.Canvas(str(file_path), pagesize=A4)
    width, height = A4

    def header(y):
        c.setFont("Helvetica", 10)
        c.drawString(50, y, "Student")
        c.drawString(150, y, "Subject")
        c.drawString(240, y, "Room")
        c.drawString(310, y, "Row")
        c.drawString(360, y, "Bench")
        c.drawString(420, y, "Seat")
        y -= 15
        c.line(50, y, 550, y)
        return y - 15

    y = height - 50
    c.setFont("Helvetica-Bold", 14)
    c.drawString(
        50, y,
        f"Seating Arrangement - Series {session_key.series_id}, "
        f"{session_key.exam_date.isoformat()} {session_key.start_time.strftime('%H:%M')}"
    )
    y = header(y - 30)

    for row in rows:
        if y < 60:
            c.showPage()
            y = header(height - 50)

        c.drawString(50, y, str(row["student_id"]))
        c.drawString(150, y, str(row["subject_code"]))
        c.drawString(240, y, str(row["room_id"]))
        c.drawString(310, y, str(row["row_number"]))
        c.drawString(360, y, str(row["bench_number"]))
        c.drawString(420, y, row["seat_position"].upper())
        y -= 15

    c.save()
    return file_path
