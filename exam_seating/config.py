"""Application configuration."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

ENV_PREFIX = "EXAM_SEATING_"


def _env(name, default=None):
    return os.environ.get(ENV_PREFIX + name, default)


DATABASE_URL = _env("DATABASE_URL", "sqlite:///./exam_seating.db")

DEPARTMENT_FIRST = "department-first-immediate-middle"
GLOBAL_SORT = "global-sort-seat-by-seat"
ALLOCATION_POLICY = _env("ALLOCATION_POLICY", DEPARTMENT_FIRST)

# unset means the allocator runs without a time limit
_deadline = _env("ALLOCATION_DEADLINE_SECONDS")
ALLOCATION_DEADLINE_SECONDS = float(_deadline) if _deadline else None

EXPORT_DIR = Path(_env("EXPORT_DIR", str(BASE_DIR / "exports")))

LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

BULK_CHUNK_SIZE = int(_env("BULK_CHUNK_SIZE", "500"))

SEATS_PER_BENCH = 3
BENCHES_PER_ROW = 7

STATUS_ACTIVE = "Active"
STATUS_ASSIGNED = "Assigned"
STATUS_UNASSIGNED = "Unassigned"
ELIGIBLE_STATUSES = (STATUS_ACTIVE, STATUS_UNASSIGNED)
