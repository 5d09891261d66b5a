"""Exceptions raised by collectors and recorded by the aggregator."""


class CollectorFailure(Exception):
    """A source could not produce records: unreachable, timed out or rejected the request."""

    def __init__(self, source: str, message: str):
        super().__init__(message)
        self.source = source
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(CollectorFailure):
    """An enabled source is missing a credential or has no collector registered."""
    pass
