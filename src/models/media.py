"""Media asset data models."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class MediaKind(str, Enum):
    """Content kind of a media asset."""

    VIDEO = "video"
    AUDIO = "audio"


@dataclass
class MediaAsset:
    """Reference to media bytes held either on disk or in memory.

    Exactly one of ``path`` and ``data`` is set. File-backed assets are
    what the encoder consumes; memory-backed assets are written to a
    scratch file by the AssetStore when an encoder needs them.
    """

    kind: MediaKind
    name: str
    path: Optional[Path] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    def __post_init__(self):
        if (self.path is None) == (self.data is None):
            raise ValueError("MediaAsset needs exactly one of path or data")

    @property
    def in_memory(self) -> bool:
        return self.data is not None

    @property
    def size(self) -> int:
        """Size in bytes (0 for a missing file)."""
        if self.data is not None:
            return len(self.data)
        if self.path.exists():
            return self.path.stat().st_size
        return 0

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        return self.path.read_bytes()

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "path": str(self.path) if self.path else None,
            "in_memory": self.in_memory,
            "size": self.size,
            "mime_type": self.mime_type,
        }
