"""
Exceptions raised by the reMarkable Cloud client.

Everything derives from RuntimeError so callers that only catch
RuntimeError keep working.
"""

SETUP_HINT = "Run: rm-client --setup"


class RemarkableError(RuntimeError):
    """Base class for client errors."""


class AuthError(RemarkableError):
    """Token refresh failed or the token was rejected."""


class RegistrationError(AuthError):
    """The one-time code could not be exchanged for a device token."""


class DiscoveryError(RemarkableError):
    """The service manager did not return a storage host."""


class APIError(RemarkableError):
    """A storage API call returned an unexpected status or payload."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class DocumentNotFound(APIError):
    pass


class UploadError(APIError):
    pass


class TokenFileNotFound(RemarkableError):
    pass


class TokenFileInvalid(RemarkableError):
    pass
