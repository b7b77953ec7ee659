"""
Tagged result returned by every ApiGateway / coordinator operation.

    Success(value)                     : the call worked
    Error(message, code=None, kind=...): it did not

`code` is the HTTP status when the server answered. `kind` only feeds logs;
callers branch on success vs failure.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    NETWORK = "network"                  # No response at all
    PROTOCOL = "protocol"                # Non-2xx status
    VALIDATION = "validation"            # 2xx with a malformed / incomplete body
    NOT_AUTHENTICATED = "not_authenticated"


@dataclass(frozen=True)
class Success:
    value: Any = None

    @property
    def ok(self):
        return True


@dataclass(frozen=True)
class Error:
    message: str
    code: Optional[int] = None
    kind: ErrorKind = ErrorKind.NETWORK

    @property
    def ok(self):
        return False

    def __str__(self):
        if self.code is not None:
            return f"{self.message} (HTTP {self.code})"
        return self.message


NOT_AUTHENTICATED = "Not authenticated"


def not_authenticated():
    return Error(NOT_AUTHENTICATED, kind=ErrorKind.NOT_AUTHENTICATED)
