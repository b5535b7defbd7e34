"""
Read side of an allocation run: which exams make up a session, which
students sit them, and which rooms are available.
"""
import logging
from collections import OrderedDict
from typing import List, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from .config import ELIGIBLE_STATUSES
from .db_models import AllocationDB, ClassroomDB, DepartmentDB, ScheduledExamDB, StudentDB, SubjectDB
from .errors import NoEligibleStudents, NoExamsFound, NoRoomsAvailable
from .grouping import unique_students
from .models import Room, SessionKey, Student

logger = logging.getLogger(__name__)


class ExamLinkage:
    """student_id -> exam ids of the session the student sits."""

    def __init__(self):
        self._exams = OrderedDict()

    def link(self, student_id, exam_id):
        exams = self._exams.setdefault(student_id, [])
        if exam_id not in exams:
            exams.append(exam_id)

    def exams_for(self, student_id) -> List[int]:
        return list(self._exams.get(student_id, ()))

    def __len__(self):
        return len(self._exams)


def session_exams(db: Session, session_key: SessionKey) -> List[ScheduledExamDB]:
    return (
        db.query(ScheduledExamDB)
        .filter(ScheduledExamDB.series_id == session_key.series_id)
        .filter(ScheduledExamDB.exam_date == session_key.exam_date)
        .filter(ScheduledExamDB.start_time == session_key.start_time)
        .order_by(ScheduledExamDB.exam_id)
        .all()
    )


class EligibilityResolver:
    def __init__(self, db: Session):
        self.db = db

    def scheduled_exams(self, session_key):
        exams = session_exams(self.db, session_key)
        if not exams:
            raise NoExamsFound("No exams found for the selected series, date, and time.")
        logger.info("found %d exams for session %s", len(exams), session_key.label())
        return exams

    def resolve(self, session_key) -> Tuple[List[Student], ExamLinkage]:
        """
        Eligible students of the session, one per student_id, with their exam links.

        A student is eligible when their status allows it or when they already
        hold a seat in this same session, so re-running a session sees the
        same pool.
        """
        exams = self.scheduled_exams(session_key)
        exam_ids = [e.exam_id for e in exams]
        exams_by_subject = OrderedDict()
        for exam in exams:
            exams_by_subject.setdefault(exam.subject_id, []).append(exam.exam_id)

        seated_here = select(AllocationDB.student_id).where(AllocationDB.exam_id.in_(exam_ids))

        rows = (
            self.db.query(StudentDB, SubjectDB, DepartmentDB)
            .join(SubjectDB, and_(StudentDB.semester == SubjectDB.semester,
                                  StudentDB.dept_id == SubjectDB.dept_id))
            .join(DepartmentDB, StudentDB.dept_id == DepartmentDB.dept_id)
            .filter(SubjectDB.subject_id.in_(list(exams_by_subject)))
            .filter(or_(StudentDB.status.in_(ELIGIBLE_STATUSES),
                        StudentDB.student_id.in_(seated_here)))
            .order_by(DepartmentDB.dept_id, StudentDB.batch, StudentDB.student_id, SubjectDB.subject_id)
            .all()
        )

        if not rows:
            raise NoEligibleStudents("No eligible students found for the selected exams.")

        linkage = ExamLinkage()
        candidates = []
        for student, subject, dept in rows:
            candidates.append(
                Student(
                    student_id=student.student_id,
                    department_id=dept.dept_id,
                    subject_id=subject.subject_id,
                    batch=student.batch,
                    semester=student.semester,
                    department_code=dept.dept_code,
                    department_name=dept.dept_name,
                    name=student.name
                )
            )
            for exam_id in exams_by_subject[subject.subject_id]:
                linkage.link(student.student_id, exam_id)

        students = unique_students(candidates)
        logger.info("found %d eligible students (%d student-subject rows)", len(students), len(rows))
        return students, linkage

    def fetch(self, session_key) -> List[Student]:
        students, _ = self.resolve(session_key)
        return students


class RoomCatalog:
    def __init__(self, db: Session):
        self.db = db

    def list_rooms(self) -> List[Room]:
        rooms = [
            Room(c.room_id, c.capacity)
            for c in self.db.query(ClassroomDB).order_by(ClassroomDB.room_id).all()
        ]
        if not rooms:
            raise NoRoomsAvailable("No classrooms available.")
        logger.info("available rooms: %d, total capacity: %d seats",
                    len(rooms), sum(r.capacity for r in rooms))
        return rooms
