"""Domain errors raised by the ledger services.

Each error carries the HTTP status it maps to; ``main.py`` installs a single
handler that renders them, so routers never translate errors by hand.
"""

from starlette import status


class LedgerError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


# ---------------------------
# 400
# ---------------------------
class ValidationError(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidState(ValidationError):
    """Loan is not in the status the transition requires."""


class NotOverdue(ValidationError):
    pass


# ---------------------------
# 403
# ---------------------------
class ForbiddenError(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN


class SelfFundingForbidden(ForbiddenError):
    pass


# ---------------------------
# 404
# ---------------------------
class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND


# ---------------------------
# 409
# ---------------------------
class ConflictError(LedgerError):
    status_code = status.HTTP_409_CONFLICT


class CollateralAlreadyLocked(ConflictError):
    pass


class AlreadyFunded(ConflictError):
    pass
