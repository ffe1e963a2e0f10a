"""
Error kinds raised by the resize pipeline.

Every error carries the HTTP status the API should answer with and a message
that is safe to show to the client.
"""

from __future__ import annotations

from typing import Optional


class ResizeServiceError(Exception):
    status_code = 500
    kind = "Error"
    # Server errors only reach the client verbatim when this is set.
    expose_message = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Client errors: raised before any image is processed.


class InvalidParameter(ResizeServiceError):
    status_code = 400
    kind = "InvalidParameter"

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid {field}: {reason}")
        self.field = field
        self.reason = reason


class EmptyBatch(ResizeServiceError):
    status_code = 400
    kind = "EmptyBatch"

    def __init__(self, message: str = "No images uploaded"):
        super().__init__(message)


class UnsupportedFileType(ResizeServiceError):
    status_code = 400
    kind = "UnsupportedFileType"

    def __init__(self, filename: Optional[str] = None):
        message = "Only image files are allowed!"
        if filename:
            message = f"{message} Rejected: {filename}"
        super().__init__(message)
        self.filename = filename


class FileTooLarge(ResizeServiceError):
    status_code = 400
    kind = "FileTooLarge"

    def __init__(self, max_size_mb: int):
        super().__init__(f"File too large. Maximum size is {max_size_mb}MB.")


class TooManyFiles(ResizeServiceError):
    status_code = 400
    kind = "TooManyFiles"

    def __init__(self, max_files: int):
        super().__init__(f"Too many files. Maximum is {max_files} files.")


# Per-item codec errors: contained by the batch runner.


class DecodeError(ResizeServiceError):
    kind = "DecodeError"


class EncodeError(ResizeServiceError):
    kind = "EncodeError"


# Fatal server errors.


class ArchiveError(ResizeServiceError):
    kind = "ArchiveError"


class StorageError(ResizeServiceError):
    kind = "StorageError"


class BatchFailed(ResizeServiceError):
    """Raised when no item in the batch could be transformed."""

    kind = "BatchFailed"
    expose_message = True
