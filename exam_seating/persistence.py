"""
Write side of an allocation run, plus the queries that read seat plans back.

Nothing here commits: the caller owns the transaction.
"""
import logging

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config
from .db_models import AllocationDB, ScheduledExamDB, StudentDB, SubjectDB
from .eligibility import ExamLinkage, session_exams
from .errors import DuplicateAssignment
from .models import SessionKey
from .result import AllocationResult

logger = logging.getLogger(__name__)

_POSITION_ORDER = {"left": 0, "middle": 1, "right": 2}


def _chunks(items, size):
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start:start + size]


class PersistenceGateway:
    def __init__(self, db: Session, chunk_size=None):
        self.db = db
        self.chunk_size = chunk_size or config.BULK_CHUNK_SIZE

    def clear_session(self, exam_ids):
        deleted = 0
        for chunk in _chunks(exam_ids, self.chunk_size):
            deleted += (
                self.db.query(AllocationDB)
                .filter(AllocationDB.exam_id.in_(chunk))
                .delete(synchronize_session=False)
            )
        logger.info("cleared %d previous allocation rows", deleted)
        return deleted

    def insert_assignments(self, records):
        if not records:
            return 0
        try:
            for chunk in _chunks(records, self.chunk_size):
                self.db.execute(insert(AllocationDB), chunk)
        except IntegrityError as exc:
            raise DuplicateAssignment(f"Allocation rows conflict with existing rows: {exc.orig}") from exc
        logger.info("inserted %d allocation records", len(records))
        return len(records)

    def set_status(self, student_ids, status):
        updated = 0
        for chunk in _chunks(student_ids, self.chunk_size):
            updated += (
                self.db.query(StudentDB)
                .filter(StudentDB.student_id.in_(chunk))
                .update({StudentDB.status: status}, synchronize_session=False)
            )
        if updated:
            logger.info("updated %d students to '%s' status", updated, status)
        return updated

    def replace_assignments(self, session_key: SessionKey, result: AllocationResult,
                            linkage: ExamLinkage):
        """
        Replace every allocation of the session with ``result``.

        Seated students get one row per exam they sit in the session, all on
        the same seat. Seated students become Assigned, the rest of the
        eligible pool Unassigned.
        """
        exam_ids = [e.exam_id for e in session_exams(self.db, session_key)]
        self.clear_session(exam_ids)

        records = []
        for student_id, seat in result.ordered_assignments():
            for exam_id in linkage.exams_for(student_id):
                records.append({
                    "student_id": student_id,
                    "exam_id": exam_id,
                    "room_id": seat.room_id,
                    "row_number": seat.row_number,
                    "bench_number": seat.bench_number,
                    "seat_position": seat.seat_position.value,
                })
        inserted = self.insert_assignments(records)

        self.set_status(sorted(result.assigned_student_ids), config.STATUS_ASSIGNED)
        self.set_status(list(result.unassigned_in_order), config.STATUS_UNASSIGNED)
        return inserted

    def reset_all(self):
        deleted = self.db.query(AllocationDB).delete(synchronize_session=False)
        self.db.query(StudentDB).filter(StudentDB.status != config.STATUS_ACTIVE).update(
            {StudentDB.status: config.STATUS_ACTIVE}, synchronize_session=False
        )
        logger.info("reset: removed %d allocation rows", deleted)
        return deleted


def _session_query(db, session_key):
    return (
        db.query(AllocationDB, StudentDB, ScheduledExamDB, SubjectDB)
        .join(StudentDB, AllocationDB.student_id == StudentDB.student_id)
        .join(ScheduledExamDB, AllocationDB.exam_id == ScheduledExamDB.exam_id)
        .join(SubjectDB, ScheduledExamDB.subject_id == SubjectDB.subject_id)
        .filter(ScheduledExamDB.series_id == session_key.series_id)
        .filter(ScheduledExamDB.exam_date == session_key.exam_date)
        .filter(ScheduledExamDB.start_time == session_key.start_time)
    )


def allocation_rows(db: Session, session_key: SessionKey, student_id=None):
    query = _session_query(db, session_key)
    if student_id is not None:
        query = query.filter(AllocationDB.student_id == student_id)

    rows = [
        {
            "student_id": alloc.student_id,
            "name": student.name,
            "batch": student.batch,
            "semester": student.semester,
            "exam_id": alloc.exam_id,
            "subject_code": subject.subject_code,
            "room_id": alloc.room_id,
            "row_number": alloc.row_number,
            "bench_number": alloc.bench_number,
            "seat_position": alloc.seat_position,
        }
        for alloc, student, exam, subject in query.all()
    ]
    rows.sort(key=lambda r: (r["room_id"], r["row_number"], r["bench_number"],
                             _POSITION_ORDER.get(r["seat_position"], 3), r["exam_id"]))
    return rows


def session_has_allocations(db: Session, session_key: SessionKey):
    return _session_query(db, session_key).first() is not None
