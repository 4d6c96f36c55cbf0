"""Error taxonomy shared by analytics use-cases and the HTTP surface."""

from __future__ import annotations


class AnalyticsValidationError(ValueError):
    """Raised when a window, range, limit or date input is malformed."""

    category = "validation_error"


class UnsupportedFormatError(ValueError):
    """Raised when an export format token is not one of the supported formats."""

    category = "unsupported_format"

    def __init__(self, *, token: str) -> None:
        super().__init__(f"unsupported export format: {token}")
        self.token = token


class AggregationFailedError(RuntimeError):
    """Raised when a store query fails while computing one metric kind."""

    category = "aggregation_failed"

    def __init__(self, *, kind: str) -> None:
        super().__init__(f"aggregation failed for metric: {kind}")
        self.kind = kind


class NoDeliveriesSucceededError(RuntimeError):
    """Raised when every recipient delivery in one fan-out failed."""

    category = "no_deliveries_succeeded"

    def __init__(self, *, attempted: int) -> None:
        super().__init__("no deliveries succeeded")
        self.attempted = attempted
