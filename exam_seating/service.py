"""
One allocation run as a single transaction:
fetch eligible students and rooms, allocate, replace the session's seats.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import config
from .allocator import AllocationPolicy, allocate
from .db_models import AllocationDB, ScheduledExamDB
from .eligibility import EligibilityResolver, RoomCatalog, session_exams
from .errors import InvalidRequest, NoExamsFound, PersistenceFailure, SeatingError
from .models import SessionKey
from .persistence import PersistenceGateway
from .result import AllocationResult

logger = logging.getLogger(__name__)


class SessionLocks:
    """
    Serializes runs of the same session inside this process.

    A session's lock lives only while some caller holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # session key -> [lock, holders and waiters]
        self._locks = {}

    @contextmanager
    def hold(self, session_key):
        with self._guard:
            entry = self._locks.setdefault(session_key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[session_key]

    def __len__(self):
        with self._guard:
            return len(self._locks)


session_locks = SessionLocks()


def _parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def _parse_time(value):
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value).strip())


def build_session_key(series_id, exam_date, start_time) -> SessionKey:
    missing = [name for name, value in (("series_id", series_id),
                                         ("exam_date", exam_date),
                                         ("start_time", start_time))
               if value is None or value == ""]
    if missing:
        raise InvalidRequest(f"series_id, exam_date, and start_time are required (missing: {', '.join(missing)}).")

    try:
        return SessionKey(int(series_id), _parse_date(exam_date), _parse_time(start_time))
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(f"Invalid session parameters: {exc}") from exc


def run_allocation(db: Session, session_key: SessionKey, policy=None,
                   deadline_seconds=config.ALLOCATION_DEADLINE_SECONDS,
                   dry_run=False) -> AllocationResult:
    """
    Allocate seats for ``session_key`` and persist them atomically.

    With ``dry_run`` the result is computed and the transaction rolled back.
    Any failure rolls back every change made by this call.
    """
    try:
        policy = AllocationPolicy.parse(policy or config.ALLOCATION_POLICY)
    except ValueError as exc:
        raise InvalidRequest(str(exc)) from exc

    with session_locks.hold(session_key):
        logger.info("allocation run for session %s (%s)", session_key.label(), policy.value)
        try:
            students, linkage = EligibilityResolver(db).resolve(session_key)
            rooms = RoomCatalog(db).list_rooms()

            result = allocate(students, rooms, policy, deadline_seconds=deadline_seconds)

            if dry_run:
                db.rollback()
                return result

            PersistenceGateway(db).replace_assignments(session_key, result, linkage)
            db.commit()
        except SeatingError as exc:
            db.rollback()
            logger.warning("allocation for %s rolled back: %s", session_key.label(), exc.message)
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("allocation for %s rolled back: %s", session_key.label(), exc)
            raise PersistenceFailure(f"Allocation transaction failed: {exc}") from exc

    logger.info("transaction committed: %d assigned, %d unassigned",
                result.students_assigned, result.unassigned_count)
    return result


def reset_allocations(db: Session):
    try:
        deleted = PersistenceGateway(db).reset_all()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceFailure(f"Reset failed: {exc}") from exc
    return deleted


def delete_session(db: Session, session_key: SessionKey):
    """
    Remove every scheduled exam of a session together with its seats.

    Students who held a seat in the session go back to Active.
    """
    with session_locks.hold(session_key):
        try:
            exams = session_exams(db, session_key)
            if not exams:
                raise NoExamsFound("No exams found for the selected series, date, and time.")
            exam_ids = [e.exam_id for e in exams]

            seated = [
                sid for (sid,) in
                db.query(AllocationDB.student_id)
                .filter(AllocationDB.exam_id.in_(exam_ids))
                .distinct()
                .all()
            ]
            gateway = PersistenceGateway(db)
            cleared = gateway.clear_session(exam_ids)
            gateway.set_status(seated, config.STATUS_ACTIVE)

            deleted = (
                db.query(ScheduledExamDB)
                .filter(ScheduledExamDB.exam_id.in_(exam_ids))
                .delete(synchronize_session=False)
            )
            db.commit()
        except SeatingError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceFailure(f"Deleting session failed: {exc}") from exc

    logger.info("deleted session %s: %d exams, %d allocation rows",
                session_key.label(), deleted, cleared)
    return deleted, cleared
