# app/core/exceptions.py
# Error taxonomy shared by services and endpoints
#
# Every error is an HTTPException so FastAPI renders {"detail": "..."} with the
# right status code. Services raise these directly; endpoints never translate.
#
#   UnauthorizedError     401  no / invalid principal
#   ForbiddenError        403  wrong role or not verified
#   NotFoundError         404  missing, or not owned by the caller
#   ValidationFailedError 400  malformed / out-of-range input
#   ConflictError         409  state-machine or overlap violation, duplicates
#
# Anything else bubbles to the 500 handler in app/main.py.

from typing import Any

from fastapi import HTTPException, status


class UnauthorizedError(HTTPException):
    def __init__(self, detail: Any = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(HTTPException):
    def __init__(self, detail: Any = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: Any = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ValidationFailedError(HTTPException):
    def __init__(self, detail: Any = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: Any = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
