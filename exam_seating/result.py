from types import MappingProxyType
from typing import Dict, Iterable, Optional

from .models import Seat, SEAT_ORDER

_POSITION_RANK = {position: rank for rank, position in enumerate(SEAT_ORDER)}


def _seat_sort_key(seat):
    return (seat.room_id, seat.row_number, seat.bench_number, _POSITION_RANK[seat.seat_position])


class AllocationResult:
    """
    Outcome of one allocation run.

    ``seat_map`` maps student_id -> Seat. Every eligible student is either in
    ``assigned_student_ids`` or in ``unassigned_student_ids``, never both.
    The object is read-only once built.
    """

    def __init__(self, seat_map: Dict[str, Seat], eligible_ids: Iterable[str], policy,
                 diagnostics: Optional[dict] = None):
        eligible = list(dict.fromkeys(eligible_ids))

        unknown = set(seat_map) - set(eligible)
        if unknown:
            raise ValueError(f"seated students outside the eligible pool: {sorted(unknown)}")

        seats = list(seat_map.values())
        if len(set(seats)) != len(seats):
            raise ValueError("two students were given the same seat")

        self._seat_map = MappingProxyType(dict(seat_map))
        self._assigned = frozenset(seat_map)
        self._unassigned = frozenset(sid for sid in eligible if sid not in seat_map)
        self._unassigned_order = tuple(sid for sid in eligible if sid not in seat_map)
        self._total = len(eligible)
        self.policy = policy
        self._diagnostics = MappingProxyType(dict(diagnostics or {}))

    @classmethod
    def empty(cls, policy):
        return cls({}, [], policy)

    @property
    def seat_map(self):
        return self._seat_map

    @property
    def assigned_student_ids(self):
        return self._assigned

    @property
    def unassigned_student_ids(self):
        return self._unassigned

    @property
    def unassigned_in_order(self):
        return self._unassigned_order

    @property
    def diagnostics(self):
        return self._diagnostics

    @property
    def students_assigned(self):
        return len(self._assigned)

    @property
    def unassigned_count(self):
        return len(self._unassigned)

    @property
    def total_eligible(self):
        return self._total

    def seat_of(self, student_id) -> Optional[Seat]:
        return self._seat_map.get(student_id)

    def occupied_in_room(self, room_id):
        return sum(1 for seat in self._seat_map.values() if seat.room_id == room_id)

    def ordered_assignments(self):
        """(student_id, Seat) pairs in room, row, bench, seat order."""
        return sorted(self._seat_map.items(), key=lambda item: _seat_sort_key(item[1]))

    def summary(self):
        return {
            "students_assigned": self.students_assigned,
            "unassigned_count": self.unassigned_count,
        }

    def __repr__(self):
        return (f"AllocationResult(assigned={self.students_assigned}, "
                f"unassigned={self.unassigned_count}, policy={self.policy})")
