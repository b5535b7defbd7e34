"""
In-memory types used by the allocator.
"""
from datetime import date, time
from enum import Enum
from typing import NamedTuple


class SeatPosition(str, Enum):
    LEFT = "left"
    MIDDLE = "middle"
    RIGHT = "right"


SEAT_ORDER = (SeatPosition.LEFT, SeatPosition.MIDDLE, SeatPosition.RIGHT)


class Student:
    """One seating unit: a student sitting an exam in the session."""

    def __init__(self, student_id, department_id, subject_id, batch=None, semester=None,
                 department_code=None, department_name=None, name=None):
        self.student_id = student_id
        self.department_id = department_id
        self.subject_id = subject_id
        self.batch = batch
        self.semester = semester
        self.department_code = department_code if department_code is not None else str(department_id)
        self.department_name = department_name if department_name is not None else self.department_code
        self.name = name

    @property
    def group_key(self):
        """(department_code, semester), the unit the global-sort policy keeps apart."""
        return (self.department_code, self.semester)

    def __repr__(self):
        return f"Student({self.student_id}, dept={self.department_code}, subject={self.subject_id})"


class Room:
    def __init__(self, room_id, capacity):
        self.room_id = room_id
        self.capacity = capacity

    def __repr__(self):
        return f"Room({self.room_id}, {self.capacity} seats)"


class SessionKey(NamedTuple):
    """(series, date, start time) of one batch of simultaneous exams."""

    series_id: int
    exam_date: date
    start_time: time

    def label(self):
        return f"{self.series_id}_{self.exam_date.isoformat()}_{self.start_time.strftime('%H%M')}"


class Seat(NamedTuple):
    room_id: str
    row_number: int
    bench_number: int
    seat_position: SeatPosition


class Bench:
    """A three-seat bench. ``usable`` lists the positions that count toward room capacity."""

    def __init__(self, room_id, index, row_number, bench_number, usable=SEAT_ORDER):
        self.room_id = room_id
        self.index = index
        self.row_number = row_number
        self.bench_number = bench_number
        self.usable = tuple(usable)
        self.occupants = {}

    def accepts(self, position):
        return position in self.usable

    def is_free(self, position):
        return self.accepts(position) and position not in self.occupants

    def seat(self, position, student):
        if not self.is_free(position):
            raise ValueError(f"{position.value} seat of {self!r} is not available")
        self.occupants[position] = student
        return Seat(self.room_id, self.row_number, self.bench_number, position)

    def has_free_edge(self):
        return self.is_free(SeatPosition.LEFT) or self.is_free(SeatPosition.RIGHT)

    def __repr__(self):
        return f"Bench({self.room_id}, row {self.row_number}, bench {self.bench_number})"
