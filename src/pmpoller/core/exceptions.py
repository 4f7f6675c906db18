"""Exceptions raised by the polling engine."""


class PollerError(Exception):
    """Base class for all pmpoller errors."""


class FetchError(PollerError):
    """A call to the remote metrics API failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidFormat(PollerError, ValueError):
    """A query asked for an unknown target format."""

    def __init__(self, format: object, options: list[str]) -> None:
        self.format = format
        self.options = options
        super().__init__(
            f"Invalid target format '{format}', "
            f"possible options: {', '.join(options)}"
        )


class MalformedSample(PollerError, ValueError):
    """A fetched sample has a missing or unparseable timestamp or value."""

    def __init__(self, message: str, metric: str | None = None) -> None:
        super().__init__(message)
        self.metric = metric
