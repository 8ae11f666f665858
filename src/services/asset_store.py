"""Per-job storage for intermediate media assets.

Every file a job writes lives in the shared work directory under a name
prefixed with the job id, so concurrent jobs never collide. The store can
keep assets in memory instead; they are then written to scratch files only
while an encoder needs them.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

from models.media import MediaAsset, MediaKind

logger = logging.getLogger(__name__)


class AssetStore:
    """Creates, materializes, and releases the media assets of one job."""

    def __init__(self, work_dir: Path, job_id: str, in_memory: bool = False):
        """Initialize the store.

        Args:
            work_dir: Process-wide temporary directory shared by all jobs
            job_id: Job identifier used to namespace file names
            in_memory: Keep asset bytes in memory rather than on disk
        """
        self.work_dir = Path(work_dir)
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.job_id = job_id
        self.in_memory = in_memory
        self._assets: list[MediaAsset] = []
        self._scratch: dict[int, Path] = {}

    def new_path(self, label: str, suffix: str) -> Path:
        """Reserve a unique file path for this job."""
        return self.work_dir / f"{self.job_id}_{label}_{uuid.uuid4().hex[:8]}{suffix}"

    def put_bytes(
        self,
        data: bytes,
        kind: MediaKind,
        label: str,
        suffix: str,
        mime_type: Optional[str] = None,
    ) -> MediaAsset:
        """Store raw bytes as a new asset."""
        name = f"{label}{suffix}"
        if self.in_memory:
            asset = MediaAsset(kind=kind, name=name, data=data, mime_type=mime_type)
        else:
            path = self.new_path(label, suffix)
            path.write_bytes(data)
            asset = MediaAsset(kind=kind, name=name, path=path, mime_type=mime_type)
        self._assets.append(asset)
        return asset

    def adopt(
        self, path: Path, kind: MediaKind, mime_type: Optional[str] = None
    ) -> MediaAsset:
        """Register a file produced by this job (a download or an encoder output).

        In memory mode the file is read back and removed from disk.
        """
        path = Path(path)
        if self.in_memory:
            asset = MediaAsset(
                kind=kind, name=path.name, data=path.read_bytes(), mime_type=mime_type
            )
            path.unlink(missing_ok=True)
        else:
            asset = MediaAsset(kind=kind, name=path.name, path=path, mime_type=mime_type)
        self._assets.append(asset)
        return asset

    def materialize(self, asset: MediaAsset) -> Path:
        """Return a file path holding the asset's bytes."""
        if asset.path is not None:
            return asset.path

        key = id(asset)
        scratch = self._scratch.get(key)
        if scratch is None or not scratch.exists():
            suffix = Path(asset.name).suffix or ".bin"
            scratch = self.new_path("scratch", suffix)
            scratch.write_bytes(asset.data)
            self._scratch[key] = scratch
        return scratch

    def release(self, asset: MediaAsset) -> None:
        """Delete an asset that is no longer needed."""
        scratch = self._scratch.pop(id(asset), None)
        if scratch is not None:
            scratch.unlink(missing_ok=True)

        if asset.path is not None:
            try:
                asset.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove {asset.path}: {e}")
        else:
            asset.data = b""

        self._assets = [tracked for tracked in self._assets if tracked is not asset]

    def release_all(self, keep: Optional[MediaAsset] = None) -> int:
        """Release every tracked asset except ``keep``.

        Returns:
            Number of assets released
        """
        released = 0
        for asset in list(self._assets):
            if asset is keep:
                continue
            self.release(asset)
            released += 1

        for key, scratch in list(self._scratch.items()):
            if keep is not None and key == id(keep):
                continue
            scratch.unlink(missing_ok=True)
            del self._scratch[key]

        if released:
            logger.debug(f"Released {released} intermediate assets for job {self.job_id}")
        return released

    def tracked(self) -> list[MediaAsset]:
        return list(self._assets)
