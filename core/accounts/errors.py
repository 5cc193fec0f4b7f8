"""
Typed failures returned by the account services.

Services report expected failures as ``(None, ServiceError)`` instead of
raising, so every precondition check is visible at the call site. Views turn
the error into the JSON error envelope with :meth:`ServiceError.as_response`.
"""

from dataclasses import dataclass
from enum import Enum

from rest_framework import status

from project.exceptions import error_response


class ErrorKind(Enum):
    VALIDATION = status.HTTP_400_BAD_REQUEST
    AUTHENTICATION = status.HTTP_401_UNAUTHORIZED
    AUTHORIZATION = status.HTTP_403_FORBIDDEN
    NOT_FOUND = status.HTTP_404_NOT_FOUND
    CONFLICT = status.HTTP_409_CONFLICT
    THROTTLED = status.HTTP_429_TOO_MANY_REQUESTS
    DEPENDENCY = status.HTTP_500_INTERNAL_SERVER_ERROR


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return self.kind.value

    def as_response(self):
        return error_response(self.message, self.status_code)

    @classmethod
    def validation(cls, message):
        return cls(ErrorKind.VALIDATION, message)

    @classmethod
    def authentication(cls, message):
        return cls(ErrorKind.AUTHENTICATION, message)

    @classmethod
    def authorization(cls, message):
        return cls(ErrorKind.AUTHORIZATION, message)

    @classmethod
    def not_found(cls, message):
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def conflict(cls, message):
        return cls(ErrorKind.CONFLICT, message)

    @classmethod
    def throttled(cls, message):
        return cls(ErrorKind.THROTTLED, message)

    @classmethod
    def dependency(cls, message):
        return cls(ErrorKind.DEPENDENCY, message)
