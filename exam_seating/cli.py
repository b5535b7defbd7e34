import argparse
import logging
import sys

from sqlalchemy.orm import sessionmaker

from . import config
from .allocator import AllocationPolicy
from .database import Base, make_engine
from .errors import SeatingError
from .service import build_session_key, run_allocation


def build_parser():
    parser = argparse.ArgumentParser(
        prog="exam-seating",
        description="Allocate exam seats for one session and print the seat plan."
    )
    parser.add_argument("--series", required=True, help="exam series id")
    parser.add_argument("--date", required=True, help="exam date, YYYY-MM-DD")
    parser.add_argument("--time", required=True, help="start time, HH:MM")
    parser.add_argument("--policy", choices=[p.value for p in AllocationPolicy],
                        default=config.ALLOCATION_POLICY)
    parser.add_argument("--database-url", default=config.DATABASE_URL)
    parser.add_argument("--dry-run", action="store_true",
                        help="compute the plan without writing it")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)

    engine = make_engine(args.database_url)
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()

    try:
        session_key = build_session_key(args.series, args.date, args.time)
        result = run_allocation(db, session_key, policy=args.policy, dry_run=args.dry_run)
    except SeatingError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        db.close()
        engine.dispose()

    print("\n--- Seat Allocation ---")
    for student_id, seat in result.ordered_assignments():
        print(
            f"{student_id} -> Room {seat.room_id} | Row {seat.row_number} | "
            f"Bench {seat.bench_number} | {seat.seat_position.value.upper()}"
        )

    print(f"\nAssigned: {result.students_assigned}, unassigned: {result.unassigned_count}")
    if args.dry_run:
        print("(dry run, nothing was saved)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
