"""Metadata mirror failures.

Mirror errors are configuration problems (wrong key, rejected credentials,
unusable endpoint). They propagate out of ``get_connection()`` instead of
being retried.
"""

from enum import Enum
from typing import Optional


class MirrorErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CREDENTIALS = "credentials"
    TRANSPORT = "transport"


class MirrorError(Exception):
    """Base class for fatal metadata mirror errors."""

    kind: MirrorErrorKind = MirrorErrorKind.TRANSPORT

    def __init__(self, message: str, location: Optional[str] = None, cause: Optional[BaseException] = None):
        self.location = location
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class MirrorKeyNotFoundError(MirrorError):
    """The configured object does not exist in the remote store."""

    kind = MirrorErrorKind.NOT_FOUND


class MirrorCredentialsError(MirrorError):
    """The remote store rejected our credentials."""

    kind = MirrorErrorKind.CREDENTIALS


class MirrorTransportError(MirrorError):
    """Any other transport failure the mirror cannot recover from."""

    kind = MirrorErrorKind.TRANSPORT


class AmbiguousTransportError(Exception):
    """The store answered with an error that says nothing about the object (5xx).

    Not a MirrorError: MetadataMirror treats it like "not modified" and keeps
    serving the local copy.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause
