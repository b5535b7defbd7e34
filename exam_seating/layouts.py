from math import ceil

from .config import BENCHES_PER_ROW, SEATS_PER_BENCH
from .models import Bench, SeatPosition, SEAT_ORDER


def bench_count(capacity):
    if capacity <= 0:
        return 0
    return ceil(capacity / SEATS_PER_BENCH)


def position_of(bench_index):
    """0-based bench index -> (row, bench in row), both 1-based."""
    return bench_index // BENCHES_PER_ROW + 1, bench_index % BENCHES_PER_ROW + 1


def usable_positions(capacity, bench_index):
    # the trailing bench of a room only gets the seats its capacity allows
    remaining = capacity - bench_index * SEATS_PER_BENCH
    if remaining >= SEATS_PER_BENCH:
        return SEAT_ORDER
    if remaining == 2:
        return (SeatPosition.LEFT, SeatPosition.RIGHT)
    if remaining == 1:
        return (SeatPosition.LEFT,)
    return ()


def generate_layout(room):
    benches = []

    for index in range(bench_count(room.capacity)):
        row, number = position_of(index)
        benches.append(
            Bench(
                room_id=room.room_id,
                index=index,
                row_number=row,
                bench_number=number,
                usable=usable_positions(room.capacity, index)
            )
        )

    return benches
