"""
Exceptions and transport failure classification for build uploads.

Exceptions here never leave an upload phase: each phase catches them and
returns an UploadOutcome instead.
"""

import socket
from typing import Iterator, Optional

from urllib3.exceptions import NameResolutionError

from .models import FailureKind


class SendBuildError(Exception):
    """Base upload error."""
    pass


class StreamCancelledError(SendBuildError):
    """Streaming read aborted by an external cancellation signal."""

    def __init__(self, message, **kwargs):
        super().__init__(message)
        self.path = kwargs.get('path')


class RemoteChannelError(SendBuildError):
    """Remote channel could not deliver the requested file."""

    def __init__(self, message, **kwargs):
        super().__init__(message)
        self.path = kwargs.get('path')
        self.returncode = kwargs.get('returncode')


class ConfigurationError(SendBuildError):
    """Upload configuration is incomplete or invalid."""
    pass


DNS_FAILURE_PATTERNS = (
    "name resolution",
    "nodename nor servname provided",
    "getaddrinfo failed",
    "name or service not known",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Walk an exception and everything it wraps"""
    seen = set()
    stack = [exc]
    while stack:
        current = stack.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.append(current.__cause__)
        stack.append(current.__context__)
        # urllib3 MaxRetryError keeps the underlying failure in `reason`
        reason = getattr(current, "reason", None)
        if isinstance(reason, BaseException):
            stack.append(reason)
        for arg in getattr(current, "args", ()):
            if isinstance(arg, BaseException):
                stack.append(arg)


def is_host_resolution_failure(exc: BaseException) -> bool:
    """Detect DNS resolution failures anywhere in the exception chain"""
    for current in _exception_chain(exc):
        if isinstance(current, socket.gaierror):
            return True
        if isinstance(current, NameResolutionError):
            return True
        message = str(current).lower()
        if any(pattern in message for pattern in DNS_FAILURE_PATTERNS):
            return True
    return False


def classify_transport_error(exc: BaseException) -> FailureKind:
    """Map a transport-level exception to a failure kind"""
    if isinstance(exc, StreamCancelledError):
        return FailureKind.STREAM_CANCELLED
    if is_host_resolution_failure(exc):
        return FailureKind.HOST_UNREACHABLE
    return FailureKind.TRANSPORT_FAILURE


def describe_exception(exc: Optional[BaseException]) -> str:
    """Short `Type: detail` description used in failure messages"""
    if exc is None:
        return ""
    detail = str(exc)
    return f"{type(exc).__name__}: {detail}" if detail else type(exc).__name__
