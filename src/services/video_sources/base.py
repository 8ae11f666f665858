"""Base abstraction for stock footage sources."""

from abc import ABC, abstractmethod

from models.video import VideoResult


class VideoSource(ABC):
    """Abstract base class for stock footage sources (Pexels, etc.)."""

    @abstractmethod
    async def search_videos(self, phrase: str, api_key: str) -> list[VideoResult]:
        """Search for videos matching the search phrase.

        Args:
            phrase: Search query string
            api_key: API key to authenticate this request with

        Returns:
            List of VideoResult objects, best match first
        """

    @abstractmethod
    def get_source_name(self) -> str:
        """Get the name of this video source.

        Returns:
            Source name (e.g., "pexels")
        """

    def download_headers(self, api_key: str) -> dict[str, str]:
        """Headers to send when downloading a result's file.

        Default implementation sends no extra headers.
        """
        return {}
