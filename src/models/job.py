"""Generation job data models."""

import itertools
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from models.media import MediaAsset


class Severity(str, Enum):
    """Severity of a progress event."""

    INFO = "info"
    SUCCESS = "success"
    PROCESSING = "processing"
    WARNING = "warning"


class JobStage(str, Enum):
    """Stages of a generation job, in the order they are entered."""

    VALIDATING = "validating"
    PLANNING_SCRIPT = "planning_script"
    TRANSLATING = "translating"
    SYNTHESIZING = "synthesizing"
    FETCHING_FOOTAGE = "fetching_footage"
    CONCATENATING = "concatenating"
    MUXING = "muxing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStage.COMPLETED, JobStage.FAILED)


STAGE_ORDER = [stage for stage in JobStage if stage is not JobStage.FAILED]


@dataclass
class ProgressEvent:
    """A timestamped, severity-tagged status message."""

    id: int
    message: str
    timestamp: str
    severity: Severity = Severity.INFO

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "timestamp": self.timestamp,
            "severity": self.severity.value,
        }


@dataclass
class GenerationConfig:
    """User-supplied settings for one generation run."""

    project_title: str
    main_prompt: str
    languages: list[str]
    google_api_keys: str
    pexels_api_keys: str
    text_model: Optional[str] = None
    voice_model: Optional[str] = None

    # Host payloads use camelCase field names
    _ALIASES = {
        "projectTitle": "project_title",
        "mainPrompt": "main_prompt",
        "googleApiKeys": "google_api_keys",
        "pexelsApiKeys": "pexels_api_keys",
        "textModel": "text_model",
        "voiceModel": "voice_model",
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenerationConfig":
        """Build a config from a request payload (camelCase or snake_case)."""
        values = {cls._ALIASES.get(key, key): value for key, value in data.items()}
        languages = values.get("languages") or []
        if isinstance(languages, str):
            languages = [languages]
        return cls(
            project_title=values.get("project_title") or "",
            main_prompt=values.get("main_prompt") or "",
            languages=list(languages),
            google_api_keys=values.get("google_api_keys") or "",
            pexels_api_keys=values.get("pexels_api_keys") or "",
            text_model=values.get("text_model"),
            voice_model=values.get("voice_model"),
        )


@dataclass
class GenerationJob:
    """The unit of work for one run, owning its progress log.

    Stages only move forward; ``advance`` refuses re-entry so a job cannot
    run a stage twice.
    """

    id: str
    config: GenerationConfig
    stage: JobStage = JobStage.VALIDATING
    events: list[ProgressEvent] = field(default_factory=list)
    result: Optional[MediaAsset] = None
    result_ref: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    _event_ids: Any = field(default_factory=lambda: itertools.count(1), repr=False)

    def log(self, message: str, severity: Severity = Severity.INFO) -> ProgressEvent:
        """Append a progress event and return it."""
        event = ProgressEvent(
            id=next(self._event_ids),
            message=message,
            timestamp=datetime.now().strftime("%H:%M:%S"),
            severity=severity,
        )
        self.events.append(event)
        return event

    def advance(self, stage: JobStage) -> None:
        """Move to a later stage.

        Raises:
            RuntimeError: If the job is finished or the stage is not ahead
        """
        if self.stage.is_terminal:
            raise RuntimeError(f"Job {self.id} already {self.stage.value}")
        if stage is JobStage.FAILED:
            self.stage = stage
            self.finished_at = datetime.now()
            return
        if STAGE_ORDER.index(stage) <= STAGE_ORDER.index(self.stage):
            raise RuntimeError(
                f"Job {self.id} cannot move from {self.stage.value} to {stage.value}"
            )
        self.stage = stage
        if stage is JobStage.COMPLETED:
            self.finished_at = datetime.now()

    def fail(self, message: str) -> None:
        self.error = message
        self.advance(JobStage.FAILED)

    @property
    def is_complete(self) -> bool:
        return self.stage is JobStage.COMPLETED

    @property
    def is_error(self) -> bool:
        return self.stage is JobStage.FAILED

    def events_since(self, since_id: int = 0) -> Sequence[ProgressEvent]:
        return [event for event in self.events if event.id > since_id]


@dataclass
class JobStatus:
    """Pollable view of a job."""

    job_id: str
    stage: JobStage
    progress_events: list[ProgressEvent]
    is_complete: bool
    is_error: bool
    error: Optional[str] = None
    result_ref: Optional[str] = None

    @classmethod
    def from_job(cls, job: GenerationJob, since_id: int = 0) -> "JobStatus":
        return cls(
            job_id=job.id,
            stage=job.stage,
            progress_events=list(job.events_since(since_id)),
            is_complete=job.is_complete,
            is_error=job.is_error,
            error=job.error,
            result_ref=job.result_ref,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "job_id": self.job_id,
            "stage": self.stage.value,
            "progress_events": [event.to_dict() for event in self.progress_events],
            "is_complete": self.is_complete,
            "is_error": self.is_error,
            "error": self.error,
            "result_ref": self.result_ref,
        }
