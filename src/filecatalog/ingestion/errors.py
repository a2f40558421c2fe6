"""Errors raised while turning raw entries into records."""


class ExtractionError(Exception):
    """Raised when a single entry's metadata cannot be read.

    The condition is recoverable: the session drops the entry and keeps going.
    """

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"{location}: {reason}")
        self.location = location
        self.reason = reason
