"""Footage fetcher: searches a stock source and downloads the best match."""

import asyncio
import logging
from typing import Optional

import httpx

from models.media import MediaAsset, MediaKind
from services.asset_store import AssetStore
from services.video_sources.base import VideoSource
from services.video_sources.pexels import PexelsVideoSource
from utils.errors import NoFootageFoundError
from utils.key_rotation import KeyRotationExecutor

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class FootageFetcher:
    """Fetches one clip per keyword set.

    Search and download happen under the same key, so a rate-limited key
    is skipped for both.
    """

    def __init__(
        self,
        executor: KeyRotationExecutor,
        source: Optional[VideoSource] = None,
        download_timeout: float = 120.0,
    ):
        self.executor = executor
        self.source = source or PexelsVideoSource()
        self.download_timeout = download_timeout

    async def fetch(
        self, keywords: str, credentials: str, store: AssetStore
    ) -> MediaAsset:
        """Search for ``keywords`` and download the top result.

        Args:
            keywords: Search query
            credentials: Comma-separated footage API keys
            store: Asset store of the current job

        Returns:
            Video MediaAsset holding the fully downloaded file

        Raises:
            NoFootageFoundError: If nothing downloadable was found
        """
        if not keywords or not keywords.strip():
            raise NoFootageFoundError(keywords or "")

        source_name = self.source.get_source_name()

        async def operation(api_key: str) -> MediaAsset:
            results = await self.source.search_videos(keywords, api_key)
            if not results or not results[0].download_url:
                raise NoFootageFoundError(keywords)

            top = results[0]
            path = store.new_path(source_name, ".mp4")
            await self._download(top.download_url, path, self.source.download_headers(api_key))
            logger.info(f"Downloaded {top.video_id} for '{keywords}' ({path.stat().st_size / (1024 * 1024):.1f} MB)")
            return store.adopt(path, MediaKind.VIDEO, mime_type="video/mp4")

        return await self.executor.execute(
            operation, credentials, f"{source_name.title()} video fetch"
        )

    async def _download(self, url: str, path, headers: dict[str, str]) -> None:
        """Stream ``url`` to ``path``; a partial file is removed on failure."""
        try:
            async with httpx.AsyncClient(
                timeout=self.download_timeout, follow_redirects=True
            ) as client:
                async with client.stream("GET", url, headers=headers) as response:
                    response.raise_for_status()
                    with open(path, "wb") as f:
                        async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                            f.write(chunk)
        except (Exception, asyncio.CancelledError):
            path.unlink(missing_ok=True)
            raise
