"""
Greedy seat allocation.

Two policies are available:

``department-first-immediate-middle``
    Departments are seated one after another, largest first, filling the
    LEFT and RIGHT seats of each bench. Right after a LEFT seat is taken the
    MIDDLE seat is offered to the first student of another department whose
    subject differs from the bench's occupants.

``global-sort-seat-by-seat``
    The whole pool is sorted by (semester, department code, batch) and every
    bench is filled LEFT, MIDDLE, RIGHT with the first student whose
    (department code, semester) differs from everyone already on the bench.
    When the pool has a single such group the MIDDLE seats stay empty.

Neither policy backtracks. The bench cursor only moves forward, so a room
that was walked past is never reopened in the same run.
"""
import logging
import time
from enum import Enum
from typing import Iterable, List, Optional

from . import config
from .errors import AllocationTimeout
from .grouping import StudentPool, group_by_department, unique_students
from .layouts import generate_layout
from .models import Room, SeatPosition, Student
from .result import AllocationResult

logger = logging.getLogger(__name__)


class AllocationPolicy(str, Enum):
    DEPARTMENT_FIRST = config.DEPARTMENT_FIRST
    GLOBAL_SORT = config.GLOBAL_SORT

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(f"unknown allocation policy {value!r}, expected one of: {choices}")


class Deadline:
    def __init__(self, seconds: Optional[float]):
        self.seconds = seconds
        self._expires = time.monotonic() + seconds if seconds is not None else None

    def check(self):
        if self._expires is not None and time.monotonic() > self._expires:
            raise AllocationTimeout(f"allocation exceeded its {self.seconds:g}s deadline")


class BenchCursor:
    """Forward-only position over the benches of every room, in room order."""

    def __init__(self, rooms: Iterable[Room]):
        self.rooms = [generate_layout(room) for room in rooms]
        self.room_index = 0
        self.bench_index = 0

    def _at(self):
        return self.rooms[self.room_index][self.bench_index]

    def _in_range(self):
        while self.room_index < len(self.rooms):
            if self.bench_index < len(self.rooms[self.room_index]):
                return True
            self.room_index += 1
            self.bench_index = 0
        return False

    def advance(self):
        self.bench_index += 1

    def current_open(self):
        """Move to the first bench with a free LEFT or RIGHT seat; None once rooms run out."""
        while self._in_range():
            bench = self._at()
            if bench.has_free_edge():
                return bench
            self.advance()
        return None

    def benches(self):
        for room_benches in self.rooms:
            yield from room_benches


class _Placement:
    """Seat map being built by one run."""

    def __init__(self):
        self.seat_map = {}
        self.middle_filled = 0
        self.middle_empty = 0

    def place(self, bench, position, student):
        seat = bench.seat(position, student)
        self.seat_map[student.student_id] = seat
        logger.debug("room %s, row %d, bench %d: %s = %s (%s)",
                     seat.room_id, seat.row_number, seat.bench_number,
                     position.value.upper(), student.student_id, student.department_code)
        return seat


def _differs_in_subject(bench):
    taken = {s.subject_id for s in bench.occupants.values()}
    return lambda candidate: candidate.subject_id not in taken


def _fill_middle(bench, groups, current, placement):
    accept = _differs_in_subject(bench)

    for other in groups:
        if other is current:
            continue
        candidate = other.take_first(accept)
        if candidate is not None:
            placement.place(bench, SeatPosition.MIDDLE, candidate)
            placement.middle_filled += 1
            return candidate

    placement.middle_empty += 1
    logger.debug("%r: MIDDLE left empty, no other-department student with a different subject", bench)
    return None


def _department_first(students, rooms, deadline):
    groups = group_by_department(students)
    cursor = BenchCursor(rooms)
    placement = _Placement()
    exhausted = False

    for group in groups:
        if exhausted:
            break
        logger.info("processing %s (%d students)", group.department_name, len(group))
        seated_before = len(placement.seat_map)

        while group:
            deadline.check()
            bench = cursor.current_open()
            if bench is None:
                exhausted = True
                logger.info("rooms exhausted, %d students of %s left unassigned",
                            len(group), group.department_code)
                break

            if bench.is_free(SeatPosition.LEFT):
                placement.place(bench, SeatPosition.LEFT, group.pop_next())
                if bench.is_free(SeatPosition.MIDDLE):
                    _fill_middle(bench, groups, group, placement)

            if group and bench.is_free(SeatPosition.RIGHT):
                placement.place(bench, SeatPosition.RIGHT, group.pop_next())
                cursor.advance()
            elif not bench.has_free_edge():
                cursor.advance()
            # otherwise the department ran out with RIGHT still open; the next
            # department resumes on this bench

        logger.info("%s: %d seats taken in this pass", group.department_code,
                    len(placement.seat_map) - seated_before)

    return placement


def _sort_key(student):
    # students with no semester, department or batch sort after the rest
    return (student.semester is None, student.semester or 0,
            student.department_code is None, student.department_code or "",
            student.batch is None, student.batch or 0)


def _global_sort(students, rooms, deadline):
    ordered = sorted(students, key=_sort_key)
    pool = StudentPool(ordered)
    homogeneous = len({s.group_key for s in ordered}) <= 1
    if homogeneous:
        logger.info("homogeneous pool, MIDDLE seats will be skipped")

    cursor = BenchCursor(rooms)
    placement = _Placement()

    for bench in cursor.benches():
        if not pool:
            break
        deadline.check()

        for position in bench.usable:
            if not pool:
                break
            if position is SeatPosition.MIDDLE and homogeneous:
                placement.middle_empty += 1
                continue

            taken = {s.group_key for s in bench.occupants.values()}
            student = pool.take_first(lambda s: s.group_key not in taken)
            if student is None and position is not SeatPosition.MIDDLE:
                # edge seats fall back to the head of the pool rather than stay empty
                student = pool.pop_next()

            if student is None:
                placement.middle_empty += 1
                continue
            placement.place(bench, position, student)
            if position is SeatPosition.MIDDLE:
                placement.middle_filled += 1

    if pool:
        logger.info("rooms exhausted, %d students left unassigned", len(pool))

    return placement


_STRATEGIES = {
    AllocationPolicy.DEPARTMENT_FIRST: _department_first,
    AllocationPolicy.GLOBAL_SORT: _global_sort,
}


def allocate(students: Iterable[Student], rooms: Iterable[Room],
             policy=config.ALLOCATION_POLICY,
             deadline_seconds: Optional[float] = None) -> AllocationResult:
    """
    Seat ``students`` into ``rooms`` (taken in room_id order).

    Repeated student ids are collapsed to their first occurrence. Students
    that do not fit are reported as unassigned in the result.
    """
    policy = AllocationPolicy.parse(policy)
    pool: List[Student] = unique_students(students)
    room_list = sorted(rooms, key=lambda r: r.room_id)

    if not pool:
        return AllocationResult.empty(policy)

    placement = _STRATEGIES[policy](pool, room_list, Deadline(deadline_seconds))

    diagnostics = {
        "rooms_used": len({seat.room_id for seat in placement.seat_map.values()}),
        "total_capacity": sum(max(room.capacity, 0) for room in room_list),
        "middle_seats_filled": placement.middle_filled,
        "middle_seats_empty": placement.middle_empty,
    }

    result = AllocationResult(
        placement.seat_map,
        [s.student_id for s in pool],
        policy,
        diagnostics
    )
    logger.info("allocation complete (%s): %d assigned, %d unassigned",
                policy.value, result.students_assigned, result.unassigned_count)
    return result
