"""Crawl sources and the rule that picks one for a root location."""

from __future__ import annotations

import os
import re
import socket
from typing import Callable, NamedTuple, Optional

from filecatalog.config.models import ObjectStoreSettings
from filecatalog.ingestion.errors import ExtractionError

from .base import CrawlSource
from .errors import SourceError
from .filesystem import FilesystemEntry, FilesystemSource
from .object_store import ClientFactory, ObjectStoreSource, default_client_factory

_OBJECT_STORE_URL = re.compile(
    r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://(?P<bucket>[A-Za-z0-9_-]+)(?P<path>/.*)?$"
)


class ObjectStoreURL(NamedTuple):
    scheme: str
    bucket: str
    path: str


def parse_object_store_url(location: str) -> Optional[ObjectStoreURL]:
    """Parse ``scheme://bucket[/path]``; return ``None`` for anything else.

    Bucket names are limited to ASCII letters, digits, ``-`` and ``_``. A
    missing path defaults to ``/``.
    """
    match = _OBJECT_STORE_URL.match(location)
    if match is None:
        return None
    return ObjectStoreURL(
        scheme=match.group("scheme"),
        bucket=match.group("bucket"),
        path=match.group("path") or "/",
    )


def default_identifier(location: str, *, hostname: Optional[str] = None) -> str:
    """Return ``<hostname>:<absolute path>`` for a filesystem root."""
    host = hostname if hostname is not None else socket.gethostname()
    return f"{host}:{os.path.abspath(os.path.expanduser(location))}"


def resolve_source(
    location: str,
    *,
    identifier: Optional[str] = None,
    object_store: Optional[ObjectStoreSettings] = None,
    hostname: Optional[str] = None,
    client_factory: Optional[ClientFactory] = None,
) -> CrawlSource:
    """Pick the source variant for ``location``.

    Object-store URLs are tried first; anything else is treated as a
    filesystem path. Filesystem paths cannot look like ``scheme://``, so the
    order never misroutes a real path.

    Args:
        location: Filesystem path or ``scheme://bucket[/path]`` URL.
        identifier: Explicit source identifier overriding the derived one.
        object_store: Client settings for object-store roots.
        hostname: Hostname used in derived filesystem identifiers.
        client_factory: Callable building the object-store client.

    Returns:
        CrawlSource: Source ready to crawl.
    """
    url = parse_object_store_url(location)
    if url is not None:
        return ObjectStoreSource(
            location,
            identifier or location,
            scheme=url.scheme,
            bucket=url.bucket,
            path=url.path,
            settings=object_store,
            client_factory=client_factory,
        )
    return FilesystemSource(location, identifier or default_identifier(location, hostname=hostname))


SourceResolver = Callable[..., CrawlSource]

__all__ = [
    "CrawlSource",
    "ExtractionError",
    "FilesystemEntry",
    "FilesystemSource",
    "ObjectStoreSource",
    "ObjectStoreURL",
    "SourceError",
    "SourceResolver",
    "default_client_factory",
    "default_identifier",
    "parse_object_store_url",
    "resolve_source",
]
