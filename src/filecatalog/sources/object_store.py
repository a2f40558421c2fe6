"""Paginated enumeration of S3-compatible buckets."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Mapping, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from filecatalog.config.models import ObjectStoreSettings
from filecatalog.ingestion.extractors import extract_object_entry
from filecatalog.ingestion.models import FileRecord

from .base import CrawlSource
from .errors import SourceError

LOGGER = logging.getLogger(__name__)

ClientFactory = Callable[[ObjectStoreSettings], Any]


def default_client_factory(settings: ObjectStoreSettings) -> Any:
    """Build a boto3 S3 client; credentials come from the usual AWS chain."""
    config = Config(s3={"addressing_style": "path"}) if settings.force_path_style else None
    return boto3.client(
        "s3",
        endpoint_url=settings.endpoint_url,
        region_name=settings.region,
        config=config,
    )


class ObjectStoreSource(CrawlSource):
    """List every object below ``bucket``/``path`` with ``ListObjectsV2``.

    Size and modification time come straight from the listing, so extraction
    needs no further requests.
    """

    kind = "object_store"

    def __init__(
        self,
        location: str,
        identifier: str,
        *,
        scheme: str,
        bucket: str,
        path: str = "/",
        settings: Optional[ObjectStoreSettings] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        super().__init__(location, identifier)
        self.scheme = scheme
        self.bucket = bucket
        self.path = path or "/"
        self.settings = settings or ObjectStoreSettings()
        self._client_factory = client_factory or default_client_factory
        self._client: Any = None

    @property
    def prefix(self) -> str:
        """Listing prefix: the root path without its leading separator."""
        return self.path.lstrip("/")

    async def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = await asyncio.to_thread(self._client_factory, self.settings)
            except (BotoCoreError, ValueError) as exc:
                raise SourceError(
                    f"Cannot create object-store client for {self.location}: {exc}"
                ) from exc
        return self._client

    async def _list_page(self, token: Optional[str]) -> Mapping[str, Any]:
        client = await self._get_client()
        params: Dict[str, Any] = {"Bucket": self.bucket, "Prefix": self.prefix}
        if token:
            params["ContinuationToken"] = token
        try:
            return await asyncio.to_thread(client.list_objects_v2, **params)
        except (BotoCoreError, ClientError, OSError) as exc:
            raise SourceError(f"Listing {self.location} failed: {exc}") from exc

    async def entries(self) -> AsyncIterator[Mapping[str, Any]]:
        token: Optional[str] = None
        page_number = 0
        while True:
            page = await self._list_page(token)
            page_number += 1
            contents = page.get("Contents") or []
            LOGGER.debug(
                "Listed page %d of %s with %d objects", page_number, self.location, len(contents)
            )
            for item in contents:
                yield item
            token = page.get("NextContinuationToken")
            if not page.get("IsTruncated") or not token:
                return

    async def extract(self, entry: Mapping[str, Any]) -> FileRecord:
        return extract_object_entry(entry)


__all__ = ["ObjectStoreSource", "default_client_factory", "ClientFactory"]
