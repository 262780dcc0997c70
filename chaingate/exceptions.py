"""Errors surfaced to API callers."""

from __future__ import annotations


class ChaingateError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidLimit(ChaingateError):
    pass


class MissingDateRange(ChaingateError):
    def __init__(self) -> None:
        super().__init__("At least one of date ranges must be set")


class MalformedDate(ChaingateError):
    def __init__(self, bound: str) -> None:
        super().__init__(f"Failed to parse {bound}: Invalid pattern provided: must be YYYY-MM-DD")
        self.bound = bound


class InvalidDate(ChaingateError):
    def __init__(self, bound: str) -> None:
        super().__init__(f"Failed to parse {bound}: Invalid date value provided")
        self.bound = bound


class RangeInverted(ChaingateError):
    def __init__(self) -> None:
        super().__init__("dateFrom must be lower than dateTo")


class UpstreamRejected(ChaingateError):
    """The provider answered, but refused the request."""


class UpstreamUnavailable(ChaingateError):
    status_code = 522

    def __init__(self, message: str = "API is temporary unavailable") -> None:
        super().__init__(message)


class StorageUnavailable(ChaingateError):
    status_code = 522

    def __init__(self, message: str = "An error occurred while accessing storage.") -> None:
        super().__init__(message)


class MissingData(ChaingateError):
    pass


class FileNotPinned(ChaingateError):
    def __init__(self) -> None:
        super().__init__("No file matching provided hash")


class InvalidAddress(ChaingateError):
    def __init__(self, which: str) -> None:
        super().__init__(f"Invalid {which} address")
        self.which = which


class ProviderError(ChaingateError):
    status_code = 500
