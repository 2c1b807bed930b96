from __future__ import annotations


class CuratorServiceError(Exception):
    """Base class for errors the HTTP layer translates into JSON envelopes."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CuratorServiceError):
    status_code = 404


class ValidationFailure(CuratorServiceError):
    status_code = 400


class PersistenceFailure(CuratorServiceError):
    status_code = 500


class RemoteUnavailable(CuratorServiceError):
    # Never reaches a caller; the sync client logs it and degrades to local-only.
    status_code = 503
