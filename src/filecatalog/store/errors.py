"""Catalog store errors."""


class StoreError(Exception):
    """Raised when the catalog database cannot be opened, written or committed."""
