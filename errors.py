from __future__ import annotations


class EditorError(Exception):
    """Base error for the document endpoints.

    Subclasses set ``http_status_code``; the message is sent to the client
    as the plain-text response body.
    """

    http_status_code: int = 500

    def __init__(self, message: str, cause: BaseException | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class AccessConflict(EditorError):
    http_status_code = 409

    def __init__(self, seconds_remaining: int):
        self.seconds_remaining = seconds_remaining
        # The client expects only the number of seconds left.
        super().__init__(str(seconds_remaining))


class MalformedForm(EditorError):
    http_status_code = 400


class DuplicateKey(EditorError):
    http_status_code = 400

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Error: record key '{key}' already exists (check for duplicates)")


class StorageError(EditorError):
    http_status_code = 500
