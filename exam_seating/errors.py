"""
Errors raised by the allocation flow.

Running out of seats is not an error: it is reported through
``AllocationResult.unassigned_count``.
"""


class SeatingError(Exception):
    """Base class for every error the seating service raises."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidRequest(SeatingError):
    """Session-identifying parameters are missing or malformed."""

    status_code = 400


class NotFound(SeatingError):
    status_code = 404


class NoExamsFound(NotFound):
    pass


class NoEligibleStudents(NotFound):
    pass


class NoRoomsAvailable(NotFound):
    pass


class PersistenceFailure(SeatingError):
    """The allocation transaction was aborted and rolled back."""

    status_code = 500


class DuplicateAssignment(PersistenceFailure):
    pass


class AllocationTimeout(SeatingError):
    status_code = 503


class RecordInUse(SeatingError):
    """A row cannot be deleted while other records still reference it."""

    status_code = 400
