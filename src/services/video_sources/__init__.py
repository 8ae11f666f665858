"""Video sources package for stock footage acquisition."""

from services.video_sources.base import VideoSource
from services.video_sources.pexels import PexelsAPIError, PexelsVideoSource

__all__ = ["VideoSource", "PexelsVideoSource", "PexelsAPIError"]
