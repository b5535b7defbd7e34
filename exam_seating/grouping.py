"""
Department grouping of the eligible pool.

Groups are working sets owned by a single allocation run: students are
removed from them as they get seated.
"""
import logging
from collections import OrderedDict
from typing import Callable, Iterable, List, Optional

from .models import Student

logger = logging.getLogger(__name__)


class StudentPool:
    """Ordered set of students that supports removal from anywhere."""

    def __init__(self, students: Iterable[Student] = ()):
        self._students = OrderedDict()
        for student in students:
            self._students.setdefault(student.student_id, student)
        self.initial_size = len(self._students)

    def __len__(self):
        return len(self._students)

    def __bool__(self):
        return bool(self._students)

    def __iter__(self):
        return iter(list(self._students.values()))

    def __contains__(self, student_id):
        return student_id in self._students

    def pop_next(self) -> Student:
        _, student = self._students.popitem(last=False)
        return student

    def take_first(self, predicate: Callable[[Student], bool]) -> Optional[Student]:
        for student_id, student in self._students.items():
            if predicate(student):
                del self._students[student_id]
                return student
        return None


class DepartmentGroup(StudentPool):
    def __init__(self, department_id, department_code, department_name, students=()):
        super().__init__(students)
        self.department_id = department_id
        self.department_code = department_code
        self.department_name = department_name

    def add(self, student):
        if student.student_id not in self:
            self._students[student.student_id] = student
            self.initial_size += 1

    def __repr__(self):
        return f"DepartmentGroup({self.department_code}, {len(self)}/{self.initial_size})"


def unique_students(students: Iterable[Student]) -> List[Student]:
    """Drop repeated student ids, keeping the first row of each."""
    seen = set()
    unique = []
    for student in students:
        if student.student_id in seen:
            continue
        seen.add(student.student_id)
        unique.append(student)
    return unique


def group_by_department(students: Iterable[Student]) -> List[DepartmentGroup]:
    """
    Partition students by department, largest department first.

    Ties keep the order in which departments were first seen; students keep
    their input order inside each group.
    """
    groups = OrderedDict()

    for student in unique_students(students):
        group = groups.get(student.department_id)
        if group is None:
            group = DepartmentGroup(
                student.department_id,
                student.department_code,
                student.department_name
            )
            groups[student.department_id] = group
        group.add(student)

    ordered = sorted(groups.values(), key=lambda g: g.initial_size, reverse=True)

    for group in ordered:
        logger.debug("department %s (%s): %d students",
                     group.department_name, group.department_code, group.initial_size)

    return ordered
