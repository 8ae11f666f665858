"""Video-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class VideoResult:
    """Represents a stock footage search result.

    The source and license fields track where footage came from and what
    licensing restrictions apply.
    """

    video_id: str
    title: str
    url: str
    duration: int  # in seconds
    description: Optional[str] = None
    source: str = "pexels"
    license: Optional[str] = None
    # Direct download URL of the chosen rendition
    download_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
