import logging
from datetime import date, time
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config
from .database import Base, SessionLocal, engine
from .db_models import (
    AllocationDB,
    ClassroomDB,
    DepartmentDB,
    ExamSeriesDB,
    ScheduledExamDB,
    StudentDB,
    SubjectDB,
)
from .errors import NotFound, RecordInUse, SeatingError
from .exporters import export_excel, export_pdf
from .persistence import allocation_rows, session_has_allocations
from .service import build_session_key, delete_session, reset_allocations, run_allocation

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title = "Exam Seating API")

Base.metadata.create_all(bind = engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.exception_handler(SeatingError)
async def seating_error_handler(request: Request, exc: SeatingError):
    logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def _create(db, obj, what):
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"{what} already exists or references a missing record")
    db.refresh(obj)
    return obj


@app.get("/")
def root():
    return {"message": "Exam Seating API is running !"}


# ------------------ REFERENCE DATA ------------------

class DepartmentIn(BaseModel):
    dept_code: str
    dept_name: str


class SubjectIn(BaseModel):
    subject_code: str
    subject_name: str
    semester: int
    dept_id: int


class StudentIn(BaseModel):
    student_id: str
    name: str
    batch: int
    semester: int
    dept_id: int


class ClassroomIn(BaseModel):
    room_id: str
    capacity: int = Field(ge=0)


class ExamSeriesIn(BaseModel):
    series_name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ScheduledExamIn(BaseModel):
    series_id: int
    subject_ids: List[int] = Field(min_length=1)
    exam_date: date
    start_time: time
    end_time: Optional[time] = None


@app.post("/departments", status_code=201)
def create_department(body: DepartmentIn, db: Session = Depends(get_db)):
    dept = _create(db, DepartmentDB(**body.model_dump()), "Department")
    return {"message": "Department created ✅", "dept_id": dept.dept_id}


@app.get("/departments")
def get_departments(db: Session = Depends(get_db)):
    return [
        {"dept_id": d.dept_id, "dept_code": d.dept_code, "dept_name": d.dept_name}
        for d in db.query(DepartmentDB).order_by(DepartmentDB.dept_name).all()
    ]


@app.post("/subjects", status_code=201)
def create_subject(body: SubjectIn, db: Session = Depends(get_db)):
    subject = _create(db, SubjectDB(**body.model_dump()), "Subject")
    return {"message": "Subject created ✅", "subject_id": subject.subject_id}


@app.get("/subjects")
def get_subjects(db: Session = Depends(get_db)):
    return [
        {
            "subject_id": s.subject_id,
            "subject_code": s.subject_code,
            "subject_name": s.subject_name,
            "semester": s.semester,
            "dept_id": s.dept_id
        }
        for s in db.query(SubjectDB).order_by(SubjectDB.subject_name).all()
    ]


@app.post("/students", status_code=201)
def create_student(body: StudentIn, db: Session = Depends(get_db)):
    student = _create(db, StudentDB(**body.model_dump()), "Student")
    return {"message": "Student created ✅", "student_id": student.student_id}


@app.get("/students")
def get_students(db: Session = Depends(get_db)):
    students = (
        db.query(StudentDB, DepartmentDB)
        .join(DepartmentDB, StudentDB.dept_id == DepartmentDB.dept_id)
        .order_by(StudentDB.student_id)
        .all()
    )
    return [
        {
            "student_id": s.student_id,
            "name": s.name,
            "batch": s.batch,
            "semester": s.semester,
            "dept_name": d.dept_name,
            "status": s.status
        }
        for s, d in students
    ]


@app.post("/classrooms", status_code=201)
def create_classroom(body: ClassroomIn, db: Session = Depends(get_db)):
    room = _create(db, ClassroomDB(**body.model_dump()), "Classroom")
    return {"message": "Classroom created ✅", "room_id": room.room_id, "capacity": room.capacity}


@app.get("/classrooms")
def get_classrooms(db: Session = Depends(get_db)):
    return [
        {"room_id": c.room_id, "capacity": c.capacity}
        for c in db.query(ClassroomDB).order_by(ClassroomDB.room_id).all()
    ]


@app.post("/exam-series", status_code=201)
def create_exam_series(body: ExamSeriesIn, db: Session = Depends(get_db)):
    series = _create(db, ExamSeriesDB(**body.model_dump()), "Exam series")
    return {"message": "Exam series created ✅", "series_id": series.series_id}


@app.post("/scheduled-exams", status_code=201)
def create_scheduled_exams(body: ScheduledExamIn, db: Session = Depends(get_db)):
    exams = [
        ScheduledExamDB(
            series_id=body.series_id,
            subject_id=subject_id,
            exam_date=body.exam_date,
            start_time=body.start_time,
            end_time=body.end_time
        )
        for subject_id in body.subject_ids
    ]
    db.add_all(exams)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Scheduled exam references a missing record")

    return {
        "message": f"Successfully scheduled {len(exams)} exams!",
        "exam_ids": [e.exam_id for e in exams]
    }


@app.get("/scheduled-exams")
def get_scheduled_exams(db: Session = Depends(get_db)):
    rows = (
        db.query(ScheduledExamDB, SubjectDB)
        .join(SubjectDB, ScheduledExamDB.subject_id == SubjectDB.subject_id)
        .order_by(ScheduledExamDB.exam_date, ScheduledExamDB.start_time, SubjectDB.subject_name)
        .all()
    )

    sessions = {}
    for exam, subject in rows:
        key = build_session_key(exam.series_id, exam.exam_date, exam.start_time)
        entry = sessions.setdefault(key, {
            "series_id": key.series_id,
            "exam_date": key.exam_date.isoformat(),
            "start_time": key.start_time.strftime("%H:%M"),
            "session_key": key.label(),
            "subjects": []
        })
        entry["subjects"].append(subject.subject_name)

    return list(sessions.values())


@app.delete("/scheduled-exam-session")
def delete_scheduled_exam_session(series_id: Optional[int] = None, exam_date: Optional[str] = None,
                                  start_time: Optional[str] = None, db: Session = Depends(get_db)):
    session_key = build_session_key(series_id, exam_date, start_time)
    deleted, cleared = delete_session(db, session_key)
    return {
        "message": f"Successfully deleted {deleted} exam(s) from the session.",
        "allocations_cleared": cleared
    }


@app.get("/exam-series")
def get_exam_series(db: Session = Depends(get_db)):
    return [
        {
            "series_id": s.series_id,
            "series_name": s.series_name,
            "start_date": s.start_date.isoformat() if s.start_date else None,
            "end_date": s.end_date.isoformat() if s.end_date else None
        }
        for s in db.query(ExamSeriesDB).order_by(ExamSeriesDB.start_date.desc(), ExamSeriesDB.series_id).all()
    ]


@app.get("/timetable/{series_id}")
def get_timetable(series_id: int, db: Session = Depends(get_db)):
    rows = (
        db.query(ScheduledExamDB, SubjectDB, DepartmentDB)
        .join(SubjectDB, ScheduledExamDB.subject_id == SubjectDB.subject_id)
        .join(DepartmentDB, SubjectDB.dept_id == DepartmentDB.dept_id)
        .filter(ScheduledExamDB.series_id == series_id)
        .order_by(ScheduledExamDB.exam_date, ScheduledExamDB.start_time, ScheduledExamDB.exam_id)
        .all()
    )
    return [
        {
            "exam_id": e.exam_id,
            "exam_date": e.exam_date.isoformat(),
            "start_time": e.start_time.strftime("%H:%M"),
            "subject_name": s.subject_name,
            "subject_code": s.subject_code,
            "dept_code": d.dept_code
        }
        for e, s, d in rows
    ]


@app.get("/semesters")
def get_semesters(db: Session = Depends(get_db)):
    rows = db.query(StudentDB.semester).distinct().order_by(StudentDB.semester).all()
    return [semester for (semester,) in rows]


# ------------------ MANAGEMENT ------------------

class DepartmentUpdate(BaseModel):
    dept_code: str
    dept_name: str


class StudentUpdate(BaseModel):
    name: str
    batch: int
    semester: int
    dept_id: int


class ClassroomUpdate(BaseModel):
    capacity: int = Field(ge=0)


class ExamSeriesUpdate(BaseModel):
    series_name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def _get_or_404(query, what):
    obj = query.first()
    if obj is None:
        raise NotFound(f"{what} not found.")
    return obj


def _refuse_if_referenced(query, message):
    if query.first() is not None:
        raise RecordInUse(message)


def _update(db, obj, values, what):
    for field, value in values.items():
        setattr(obj, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"{what} update conflicts with an existing record")
    return {"message": f"{what} updated successfully!"}


def _delete(db, obj, what):
    db.delete(obj)
    db.commit()
    return {"message": f"{what} deleted successfully!"}


@app.put("/departments/{dept_id}")
def update_department(dept_id: int, body: DepartmentUpdate, db: Session = Depends(get_db)):
    dept = _get_or_404(db.query(DepartmentDB).filter(DepartmentDB.dept_id == dept_id), "Department")
    return _update(db, dept, body.model_dump(), "Department")


@app.delete("/departments/{dept_id}")
def delete_department(dept_id: int, db: Session = Depends(get_db)):
    dept = _get_or_404(db.query(DepartmentDB).filter(DepartmentDB.dept_id == dept_id), "Department")
    _refuse_if_referenced(
        db.query(StudentDB).filter(StudentDB.dept_id == dept_id),
        "Cannot delete. This department is linked to existing students or subjects."
    )
    _refuse_if_referenced(
        db.query(SubjectDB).filter(SubjectDB.dept_id == dept_id),
        "Cannot delete. This department is linked to existing students or subjects."
    )
    return _delete(db, dept, "Department")


@app.put("/students/{student_id}")
def update_student(student_id: str, body: StudentUpdate, db: Session = Depends(get_db)):
    student = _get_or_404(db.query(StudentDB).filter(StudentDB.student_id == student_id), "Student")
    return _update(db, student, body.model_dump(), "Student")


@app.delete("/students/{student_id}")
def delete_student(student_id: str, db: Session = Depends(get_db)):
    student = _get_or_404(db.query(StudentDB).filter(StudentDB.student_id == student_id), "Student")
    _refuse_if_referenced(
        db.query(AllocationDB).filter(AllocationDB.student_id == student_id),
        "Cannot delete this student as they are part of an existing allocation."
    )
    return _delete(db, student, "Student")


@app.put("/classrooms/{room_id}")
def update_classroom(room_id: str, body: ClassroomUpdate, db: Session = Depends(get_db)):
    room = _get_or_404(db.query(ClassroomDB).filter(ClassroomDB.room_id == room_id), "Classroom")
    return _update(db, room, body.model_dump(), "Classroom")


@app.delete("/classrooms/{room_id}")
def delete_classroom(room_id: str, db: Session = Depends(get_db)):
    room = _get_or_404(db.query(ClassroomDB).filter(ClassroomDB.room_id == room_id), "Classroom")
    _refuse_if_referenced(
        db.query(AllocationDB).filter(AllocationDB.room_id == room_id),
        "Cannot delete this classroom because it is currently in use in an allocation."
    )
    return _delete(db, room, "Classroom")


@app.put("/exam-series/{series_id}")
def update_exam_series(series_id: int, body: ExamSeriesUpdate, db: Session = Depends(get_db)):
    series = _get_or_404(db.query(ExamSeriesDB).filter(ExamSeriesDB.series_id == series_id), "Exam Series")
    return _update(db, series, body.model_dump(), "Exam Series")


@app.delete("/exam-series/{series_id}")
def delete_exam_series(series_id: int, db: Session = Depends(get_db)):
    series = _get_or_404(db.query(ExamSeriesDB).filter(ExamSeriesDB.series_id == series_id), "Exam Series")
    _refuse_if_referenced(
        db.query(ScheduledExamDB).filter(ScheduledExamDB.series_id == series_id),
        "Cannot delete. This series is linked to scheduled exams."
    )
    return _delete(db, series, "Exam Series")


# ------------------ ALLOCATION ------------------

class AllocateRequest(BaseModel):
    series_id: Optional[int] = None
    exam_date: Optional[date] = None
    start_time: Optional[time] = None
    policy: Optional[str] = None


@app.post("/allocations/run")
def allocate_session(req: AllocateRequest, db: Session = Depends(get_db)):
    session_key = build_session_key(req.series_id, req.exam_date, req.start_time)

    result = run_allocation(db, session_key, policy=req.policy)

    return {
        "ok": True,
        "message": (f"Allocation completed for {session_key.exam_date.isoformat()} "
                    f"at {session_key.start_time.strftime('%H:%M')} ✅"),
        "policy": result.policy.value,
        **result.summary()
    }


@app.get("/allocations/timeslot")
def get_timeslot_allocations(series_id: Optional[int] = None, exam_date: Optional[str] = None,
                             start_time: Optional[str] = None, db: Session = Depends(get_db)):
    session_key = build_session_key(series_id, exam_date, start_time)
    return allocation_rows(db, session_key)


@app.get("/allocations/status")
def get_allocation_status(series_id: Optional[int] = None, exam_date: Optional[str] = None,
                          start_time: Optional[str] = None, db: Session = Depends(get_db)):
    session_key = build_session_key(series_id, exam_date, start_time)
    return {"allocated": session_has_allocations(db, session_key)}


@app.delete("/allocations/reset")
def reset_all_allocations(db: Session = Depends(get_db)):
    deleted = reset_allocations(db)
    return {
        "ok": True,
        "message": "All allocations have been cleared and student statuses have been reset.",
        "deleted": deleted
    }


@app.get("/stats")
def get_stats(db: Session = Depends(get_db)):
    return {
        "total_students": db.query(func.count(StudentDB.student_id)).scalar(),
        "total_classrooms": db.query(func.count(ClassroomDB.room_id)).scalar(),
        "total_exams": db.query(func.count(ScheduledExamDB.exam_id)).scalar(),
        "total_allocations": db.query(func.count(AllocationDB.id)).scalar(),
        "students_assigned": (
            db.query(func.count(StudentDB.student_id))
            .filter(StudentDB.status == config.STATUS_ASSIGNED)
            .scalar()
        ),
    }


@app.get("/public/seat-lookup")
def seat_lookup(student_id: str, series_id: Optional[int] = None, exam_date: Optional[str] = None,
                start_time: Optional[str] = None, db: Session = Depends(get_db)):
    session_key = build_session_key(series_id, exam_date, start_time)

    rows = allocation_rows(db, session_key, student_id=student_id)
    if not rows:
        raise NotFound("Seat not allocated yet")

    first = rows[0]
    return {
        "student_id": first["student_id"],
        "name": first["name"],
        "room_id": first["room_id"],
        "row_number": first["row_number"],
        "bench_number": first["bench_number"],
        "seat_position": first["seat_position"],
        "exam_ids": [r["exam_id"] for r in rows]
    }


# ------------------ EXPORTS ------------------

@app.get("/export/allocation/excel")
def export_allocation_excel(series_id: Optional[int] = None, exam_date: Optional[str] = None,
                            start_time: Optional[str] = None, db: Session = Depends(get_db)):
    session_key = build_session_key(series_id, exam_date, start_time)
    file_path = export_excel(db, session_key)

    return FileResponse(
        path=str(file_path),
        filename=file_path.name,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )


@app.get("/export/allocation/pdf")
def export_allocation_pdf(series_id: Optional[int] = None, exam_date: Optional[str] = None,
                          start_time: Optional[str] = None, db: Session = Depends(get_db)):
    session_key = build_session_key(series_id, exam_date, start_time)
    file_path = export_pdf(db, session_key)

    return FileResponse(
        path=str(file_path),
        filename=file_path.name,
        media_type="application/pdf"
    )
