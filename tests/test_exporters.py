"""
tests/test_exporters.py
"""
import pandas as pd
import pytest

from exam_seating.errors import NotFound
from exam_seating.exporters import export_excel, export_pdf
from exam_seating.service import run_allocation


def test_excel_export_lists_every_seat(db, seed, session_key, tmp_path):
    seed.standard()
    run_allocation(db, session_key)

    path = export_excel(db, session_key, export_dir=tmp_path)

    assert path.name == "allocation_1_2025-03-10_0930.xlsx"
    df = pd.read_excel(path)
    assert len(df) == 10
    assert list(df.columns[:2]) == ["student_id", "name"]
    assert df.iloc[1]["seat_position"] == "middle"


def test_pdf_export_with_page_breaks(db, seed, session_key, tmp_path):
    seed.department(1, "CSE")
    seed.subject(10, "CS301", 1)
    seed.students(1, [f"C{i:03d}" for i in range(1, 121)])
    seed.room("R101", 150)
    seed.series()
    seed.exams([10])
    run_allocation(db, session_key)

    path = export_pdf(db, session_key, export_dir=tmp_path)

    content = path.read_bytes()
    assert content.startswith(b"%PDF")


def test_export_without_allocation(db, seed, session_key, tmp_path):
    seed.standard()

    with pytest.raises(NotFound):
        export_excel(db, session_key, export_dir=tmp_path)
