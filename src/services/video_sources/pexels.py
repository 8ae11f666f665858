"""Pexels video source for professional CC0-licensed stock footage."""

import logging
from typing import Optional

import aiohttp

from models.video import VideoResult
from services.video_sources.base import VideoSource

logger = logging.getLogger(__name__)


class PexelsAPIError(Exception):
    """Error response from the Pexels API."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class PexelsVideoSource(VideoSource):
    """Pexels video source for CC0-licensed stock footage.

    Pexels provides high-quality, royalty-free videos under the Pexels license
    (similar to CC0 - no attribution required for most uses).

    API Documentation: https://www.pexels.com/api/documentation/
    """

    BASE_URL = "https://api.pexels.com/videos/search"

    def __init__(
        self,
        max_results: int = 1,
        max_height: int = 1080,
        timeout_seconds: float = 30.0,
    ):
        """Initialize Pexels video source.

        Args:
            max_results: Maximum number of search results to return (max 80 per page)
            max_height: Tallest rendition to prefer when picking a download link
            timeout_seconds: Request timeout for the search call
        """
        self.max_results = min(max_results, 80)  # Pexels API limit
        self.max_height = max_height
        self.timeout_seconds = timeout_seconds

    def get_source_name(self) -> str:
        """Get the name of this video source."""
        return "pexels"

    def download_headers(self, api_key: str) -> dict[str, str]:
        """Pexels file links accept the API key and expect a referer."""
        return {
            "Authorization": api_key,
            "Referer": "https://www.pexels.com/",
            "Accept": "video/mp4,video/*,*/*",
        }

    async def search_videos(self, phrase: str, api_key: str) -> list[VideoResult]:
        """Search Pexels for videos matching the search phrase.

        Args:
            phrase: Search query string
            api_key: Pexels API key

        Returns:
            List of VideoResult objects, best match first

        Raises:
            PexelsAPIError: On a non-200 response (429 is worded as a rate limit)
        """
        if not phrase.strip():
            return []

        logger.info(f"[Pexels] Searching for: '{phrase}'")

        headers = {"Authorization": api_key}
        params = {
            "query": phrase,
            "per_page": self.max_results,
            "orientation": "landscape",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self.BASE_URL, headers=headers, params=params) as response:
                if response.status == 429:
                    logger.warning("[Pexels] Rate limit exceeded")
                    raise PexelsAPIError("Pexels rate limit exceeded", status=429)

                if response.status != 200:
                    message = await self._error_message(response)
                    logger.warning(f"[Pexels] API returned status {response.status}: {message}")
                    raise PexelsAPIError(
                        f"Failed to fetch video from Pexels ({response.status}): {message}",
                        status=response.status,
                    )

                data = await response.json()

        results = []
        for video in data.get("videos", []):
            result = self._parse_video(video)
            if result:
                results.append(result)

        logger.info(f"[Pexels] Found {len(results)} videos")
        return results

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        try:
            payload = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return response.reason or "unknown error"
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                return str(error.get("message", error))
            if error:
                return str(error)
        return response.reason or "unknown error"

    def _parse_video(self, video: dict) -> Optional[VideoResult]:
        """Parse Pexels API video response into VideoResult.

        Args:
            video: Video dict from Pexels API

        Returns:
            VideoResult or None if parsing fails
        """
        video_id = str(video.get("id", ""))
        if not video_id:
            return None

        video_files = [f for f in video.get("video_files") or [] if f.get("link")]
        if not video_files:
            return None

        # Prefer HD renditions no taller than max_height, tallest first
        video_files_sorted = sorted(
            video_files,
            key=lambda f: (
                (f.get("height") or 0) <= self.max_height,
                f.get("quality") == "hd",
                f.get("height") or 0,
            ),
            reverse=True,
        )
        best_file = video_files_sorted[0]

        # Pexels URLs are like: https://www.pexels.com/video/title-here-12345/
        video_url = video.get("url") or f"https://www.pexels.com/video/{video_id}/"
        url_parts = video_url.rstrip("/").split("/")
        title = url_parts[-1] if url_parts else f"pexels_video_{video_id}"
        if title.endswith(f"-{video_id}"):
            title = title[: -len(f"-{video_id}")]
        title = title.replace("-", " ").title()

        return VideoResult(
            video_id=f"pexels_{video_id}",
            title=title,
            url=video_url,
            duration=video.get("duration", 0),
            description=f"Pexels video by {video.get('user', {}).get('name', 'Unknown')}",
            source="pexels",
            license="Pexels License (CC0-like)",
            download_url=best_file["link"],
            width=best_file.get("width"),
            height=best_file.get("height"),
        )
