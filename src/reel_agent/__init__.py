"""Reel Agent - prompt to narrated stock-footage video pipeline."""

from .filter_graph import CrossfadeGraph, NormalizeStep, XfadeStep
from .video_assembler import ProgressTracker, VideoAssembler
from .orchestrator import PipelineOrchestrator, validate_generation_config
from .job_manager import JobManager

__all__ = [
    "CrossfadeGraph",
    "NormalizeStep",
    "XfadeStep",
    "ProgressTracker",
    "VideoAssembler",
    "PipelineOrchestrator",
    "validate_generation_config",
    "JobManager",
]
