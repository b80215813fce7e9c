"""Custom exception hierarchy for pyresource.

Filesystem failures are not wrapped: they surface as the builtin
:class:`OSError` subclasses raised by the operating system.
"""

from __future__ import annotations

from http import HTTPStatus


class ResourceError(Exception):
    """Base exception for all pyresource errors."""


class ResourceConfigError(ResourceError):
    """Invalid or missing configuration."""


class ResourceTransportError(ResourceError):
    """Network-level failure (connection, DNS, proxy) while sending a request."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        proxy: str = "",
    ) -> None:
        self.url = url
        self.proxy = proxy
        super().__init__(message)


class ResourceBodyReadError(ResourceError):
    """The response status was fine but draining the body failed."""

    def __init__(self, message: str, *, url: str = "") -> None:
        self.url = url
        super().__init__(message)


def _status_line(status_code: int, reason: str) -> str:
    if not reason:
        try:
            reason = HTTPStatus(status_code).phrase
        except ValueError:
            reason = ""
    return f"{status_code} {reason}".strip()


class ResourceHTTPStatusError(ResourceError):
    """Server answered with a status outside 2xx.

    A ``304 Not Modified`` in reply to a conditional request is *not*
    reported through this exception; it is the unchanged-content path.
    The message is the HTTP status line, e.g. ``"404 Not Found"``.
    """

    def __init__(self, status_code: int, reason: str = "", *, url: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        self.url = url
        self.status = _status_line(status_code, reason)
        super().__init__(self.status)
