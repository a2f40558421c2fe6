"""Source enumeration errors."""


class SourceError(Exception):
    """Raised when a root cannot be enumerated; fatal for that root's session."""
