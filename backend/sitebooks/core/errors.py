"""
Service error kinds.

Services raise these; sitebooks.main maps each kind to an HTTP status.
"""
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    VALIDATION = "validation"
    INTERNAL = "internal"


# Access-denied responds exactly like not-found.
STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ACCESS_DENIED: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INTERNAL: 500,
}


class ServiceError(Exception):
    """Base class for errors raised by the service layer"""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class AccessDeniedError(ServiceError):
    kind = ErrorKind.ACCESS_DENIED


class ValidationError(ServiceError):
    kind = ErrorKind.VALIDATION


def kind_for_status(status_code: int) -> ErrorKind:
    """Error kind reported for HTTP errors raised outside the service layer"""
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code in (401, 403):
        return ErrorKind.ACCESS_DENIED
    if 400 <= status_code < 500:
        return ErrorKind.VALIDATION
    return ErrorKind.INTERNAL
