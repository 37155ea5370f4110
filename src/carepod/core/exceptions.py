"""Custom exceptions for CarePod.

A missing resource (404) is not an exception anywhere in this package; the
resource client reports it as an absent value.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from carepod.governance.models import GrantState


class CarePodException(Exception):
    """Base exception for all CarePod exceptions."""

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code
        """
        super().__init__(message)
        self.code = code


class ConfigurationError(CarePodException):
    """Raised when configuration is invalid or missing."""


class AuthorizationError(CarePodException):
    """Raised when an operation is invoked by the wrong class of identity."""


class TransportError(CarePodException):
    """Raised when the pod cannot be reached."""

    def __init__(self, message: str, code: str = "TRANSPORT_ERROR"):
        """Initialize TransportError."""
        super().__init__(message, code)


class PodRequestError(TransportError):
    """Raised when the pod answers with an unexpected status."""

    def __init__(
        self,
        method: str,
        url: str,
        status_code: int,
        body: str = "",
        code: str = "POD_REQUEST_FAILED",
    ):
        """Initialize PodRequestError.

        Args:
            method: HTTP method of the failed request
            url: Target URL
            status_code: HTTP status returned by the pod
            body: Diagnostic response body, if any could be read
            code: Error code
        """
        message = f"Failed {method} {url}: {status_code}"
        if body:
            message = f"{message}\n{body}"
        super().__init__(message, code)
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body


class ForbiddenError(PodRequestError):
    """Raised on 403. Never retried."""

    def __init__(self, method: str, url: str, body: str = ""):
        """Initialize ForbiddenError."""
        super().__init__(method, url, 403, body, code="FORBIDDEN")


class GovernanceError(CarePodException):
    """Base exception for consent gate failures."""


class NoActiveGrantError(GovernanceError):
    """Raised when no active grant covers the requested read."""

    def __init__(self, message: str = "NO_ACTIVE_GRANT"):
        """Initialize NoActiveGrantError."""
        super().__init__(message, "NO_ACTIVE_GRANT")


class LegalNoticeRequiredError(GovernanceError):
    """Raised when the doctor has not yet accepted the terms for this grant."""

    def __init__(self, notice_text: str, grant: "GrantState"):
        """Initialize LegalNoticeRequiredError.

        Args:
            notice_text: Terms text to present to the doctor
            grant: Grant state the acknowledgement must be written for
        """
        super().__init__("LEGAL_NOTICE_REQUIRED", "LEGAL_NOTICE_REQUIRED")
        self.notice_text = notice_text
        self.grant = grant
