"""Errors raised while building and submitting Zenodo deposits."""

from typing import Any, Optional


class DepositError(Exception):
    """Base class for every deposit failure."""


class ConfigurationError(DepositError, ValueError):
    """The run is misconfigured (missing token, wrong environment)."""


class InputError(DepositError, ValueError):
    """Local content is missing something a deposit needs."""


class ConflictError(DepositError):
    """
    Two articles of the same issue disagree on a shared field.

    Attributes:
        field (str): The reconciled field, e.g. ``venue.title``.
        first (Any): The value seen first.
        second (Any): The disagreeing value.
    """

    def __init__(self, field: str, first: Any, second: Any):
        self.field = field
        self.first = first
        self.second = second
        super().__init__(
            f"Conflicting values for '{field}': '{first}' and '{second}'"
        )


class ZenodoAPIError(DepositError):
    """
    Zenodo answered with a non-2xx status.

    Attributes:
        status_code (int): The HTTP status.
        body (str): The raw response body.
    """

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API Error: {status_code} {body}")


class TransportError(DepositError):
    """No response was received from Zenodo."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Error: {message}")


class UploadError(DepositError):
    """A file upload failed twice in a row."""

    def __init__(self, file_path: str, deposit_id: Optional[int] = None):
        self.file_path = file_path
        self.deposit_id = deposit_id
        super().__init__(
            f"Upload of '{file_path}' to deposit {deposit_id} failed after retry"
        )
