"""Failure taxonomy shared by the service and the client.

Each error carries the message shown to the end user and the HTTP status the
service answers with.
"""


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationFailure(MarketplaceError):
    """Bad credentials, signup conflict, or a missing/invalid session."""
    status_code = 401


class AuthorizationFailure(MarketplaceError):
    """A row policy refused the operation."""
    status_code = 403


class ValidationFailure(MarketplaceError):
    status_code = 422


class UploadFailure(MarketplaceError):
    """The object store refused the write."""
    status_code = 502


class NetworkFailure(MarketplaceError):
    """A request to the service never completed."""
    status_code = 503
