"""Error kinds shared by the validation and processing stages."""

from __future__ import annotations

import subprocess
from enum import Enum

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError


class ErrorKind(str, Enum):
    """Category of a job failure."""

    VALIDATION = "validation"
    RECONCILIATION = "reconciliation"
    INFRASTRUCTURE = "infrastructure"
    TOOL = "tool"
    STATE = "state"


class MixcutError(Exception):
    """A job failure tagged with its kind.

    Stages branch on ``kind`` and ``transient`` to decide whether a failure
    is recorded on the job or handed back to the queue for redelivery.
    """

    def __init__(self, kind: ErrorKind, message: str, *, transient: bool = False):
        super().__init__(message)
        self.kind = kind
        self.transient = transient

    @property
    def message(self) -> str:
        return str(self)


class ObjectNotFoundError(MixcutError):
    """Requested object does not exist in the object store."""

    def __init__(self, location: str, key: str):
        super().__init__(ErrorKind.INFRASTRUCTURE, f"Object not found: {location}/{key}")
        self.location = location
        self.key = key


_TRANSIENT_CLIENT_CODES = {
    "Throttling",
    "ThrottlingException",
    "SlowDown",
    "RequestTimeout",
    "RequestTimeoutException",
    "ServiceUnavailable",
    "InternalError",
}


def _client_error_is_transient(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code", "")
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    return code in _TRANSIENT_CLIENT_CODES or status >= 500


def classify_error(exc: BaseException) -> MixcutError:
    """Wrap an arbitrary exception as a ``MixcutError``.

    Already-classified errors are returned unchanged.
    """
    if isinstance(exc, MixcutError):
        return exc

    message = str(exc) or exc.__class__.__name__

    if isinstance(exc, (subprocess.CalledProcessError, subprocess.TimeoutExpired)):
        return MixcutError(ErrorKind.TOOL, message)
    if isinstance(exc, (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)):
        return MixcutError(ErrorKind.INFRASTRUCTURE, message, transient=True)
    if isinstance(exc, ClientError):
        return MixcutError(
            ErrorKind.INFRASTRUCTURE, message, transient=_client_error_is_transient(exc)
        )
    if isinstance(exc, (OperationalError, InterfaceError)):
        return MixcutError(ErrorKind.INFRASTRUCTURE, message, transient=True)
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return MixcutError(ErrorKind.INFRASTRUCTURE, message, transient=True)
    if isinstance(exc, (BotoCoreError, SQLAlchemyError, OSError)):
        return MixcutError(ErrorKind.INFRASTRUCTURE, message)

    return MixcutError(ErrorKind.INFRASTRUCTURE, message)
