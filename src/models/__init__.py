# Data models for promptreel
from .video import VideoResult
from .media import MediaAsset, MediaKind
from .scene import Scene, ScenePlan
from .job import (
    GenerationConfig,
    GenerationJob,
    JobStage,
    JobStatus,
    ProgressEvent,
    Severity,
)

__all__ = [
    "VideoResult",
    "MediaAsset",
    "MediaKind",
    "Scene",
    "ScenePlan",
    # Jobs
    "GenerationConfig",
    "GenerationJob",
    "JobStage",
    "JobStatus",
    "ProgressEvent",
    "Severity",
]
