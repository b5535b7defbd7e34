from sqlalchemy import Column, Date, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import relationship

from .config import STATUS_ACTIVE
from .database import Base


class DepartmentDB(Base):
    __tablename__ = "departments"

    dept_id = Column(Integer, primary_key = True, index = True)
    dept_code = Column(String, unique = True, nullable = False)
    dept_name = Column(String, nullable = False)


class SubjectDB(Base):
    __tablename__ = "subjects"

    subject_id = Column(Integer, primary_key=True, index=True)
    subject_code = Column(String, unique=True, nullable=False)
    subject_name = Column(String, nullable=False)
    semester = Column(Integer, nullable=False)
    dept_id = Column(Integer, ForeignKey("departments.dept_id"), nullable=False)

    department = relationship("DepartmentDB")


class StudentDB(Base):
    __tablename__ = "students"

    student_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    batch = Column(Integer, nullable=False)
    semester = Column(Integer, nullable=False)
    dept_id = Column(Integer, ForeignKey("departments.dept_id"), nullable=False)
    status = Column(String, nullable=False, default=STATUS_ACTIVE)

    department = relationship("DepartmentDB")


class ClassroomDB(Base):
    __tablename__ = "classrooms"

    room_id = Column(String, primary_key=True, index=True)
    capacity = Column(Integer, nullable=False)


class ExamSeriesDB(Base):
    __tablename__ = "exam_series"

    series_id = Column(Integer, primary_key=True, index=True)
    series_name = Column(String, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)


class ScheduledExamDB(Base):
    __tablename__ = "scheduled_exams"

    exam_id = Column(Integer, primary_key=True, index=True)
    series_id = Column(Integer, ForeignKey("exam_series.series_id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.subject_id"), nullable=False)
    exam_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)

    series = relationship("ExamSeriesDB")
    subject = relationship("SubjectDB")


class AllocationDB(Base):
    __tablename__ = "allocations"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", name="uq_allocation_student_exam"),
        UniqueConstraint("exam_id", "room_id", "row_number", "bench_number", "seat_position",
                         name="uq_allocation_seat"),
    )

    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(String, ForeignKey("students.student_id"), nullable=False)
    exam_id = Column(Integer, ForeignKey("scheduled_exams.exam_id"), nullable=False)
    room_id = Column(String, ForeignKey("classrooms.room_id"), nullable=False)
    row_number = Column(Integer, nullable=False)
    bench_number = Column(Integer, nullable=False)
    seat_position = Column(String, nullable=False)

    student = relationship("StudentDB")
    exam = relationship("ScheduledExamDB")
    classroom = relationship("ClassroomDB")
