from __future__ import annotations


class SyncError(Exception):
    """Base for errors raised before any mutation is applied."""

    status_code = 400


class RecordValidationError(SyncError):
    status_code = 400


class NotFoundError(SyncError):
    status_code = 404


class DuplicateError(SyncError):
    status_code = 409
