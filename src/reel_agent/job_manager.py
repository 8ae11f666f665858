"""Job manager - the host-facing interface of the pipeline.

Jobs run as background asyncio tasks and are observed by polling
``get_status`` with the id of the last event already seen. Finished videos
are moved to the output directory and purged after the retention window.
"""

import asyncio
import logging
import re
import shutil
import time
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from models.job import GenerationConfig, GenerationJob, JobStatus
from models.media import MediaAsset, MediaKind
from reel_agent.orchestrator import CANCELLED_MESSAGE, PipelineOrchestrator, ResultPublisher
from utils.config import load_config
from utils.errors import JobNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 3600

OrchestratorFactory = Callable[[ResultPublisher], PipelineOrchestrator]


def sanitize_title(title: str) -> str:
    """Make a project title safe for use in a file name."""
    return re.sub(r"[^a-zA-Z0-9]", "_", title)


class JobManager:
    """Starts generation jobs and serves their status.

    Jobs share nothing but the work directory, where every file name is
    prefixed with the job id.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        orchestrator_factory: Optional[OrchestratorFactory] = None,
    ):
        """Initialize the manager.

        Args:
            config: Application config from ``load_config``
            orchestrator_factory: Builds a fresh orchestrator per job given
                the result publisher; defaults to a fully wired one
        """
        self.config = config if config is not None else load_config()
        self.output_dir = Path(self.config["output_dir"])
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.retention_seconds = self.config.get(
            "result_retention_seconds", DEFAULT_RETENTION_SECONDS
        )
        self.public_base_url = self.config.get("public_base_url")
        self._orchestrator_factory = orchestrator_factory or (
            lambda publisher: PipelineOrchestrator(self.config, publisher=publisher)
        )
        self._jobs: dict[str, GenerationJob] = {}
        self._results: dict[str, Path] = {}
        self._background_tasks: set[asyncio.Task] = set()

    def _create_job(self, config: GenerationConfig | dict[str, Any]) -> GenerationJob:
        if isinstance(config, dict):
            config = GenerationConfig.from_dict(config)
        job = GenerationJob(id=str(uuid.uuid4()), config=config)
        self._jobs[job.id] = job
        logger.info(f"Created job {job.id}: {config.project_title!r}")
        return job

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    def start_job(self, config: GenerationConfig | dict[str, Any]) -> str:
        """Start a job in the background and return its id.

        Must be called from within a running event loop.
        """
        job = self._create_job(config)
        self._spawn(self._run(job))
        return job.id

    async def run_to_completion(
        self, config: GenerationConfig | dict[str, Any]
    ) -> JobStatus:
        """Run a job and return its final status with every event."""
        job = self._create_job(config)
        await self._run(job)
        return JobStatus.from_job(job)

    def get_status(self, job_id: str, since_id: int = 0) -> JobStatus:
        """Return the job status with events newer than ``since_id``.

        Raises:
            JobNotFoundError: If the job is unknown or already purged
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return JobStatus.from_job(job, since_id)

    async def _run(self, job: GenerationJob) -> None:
        orchestrator = self._orchestrator_factory(self.publish_result)
        await orchestrator.run(job)
        self._spawn(self._expire_after(job.id, self.retention_seconds))

    async def publish_result(self, job: GenerationJob, asset: MediaAsset) -> str:
        """Move the final video to the output directory.

        Returns:
            Public URL when a base URL is configured, otherwise the file path
        """
        filename = f"{sanitize_title(job.config.project_title)}_{int(time.time() * 1000)}.mp4"
        destination = self.output_dir / filename
        if destination.exists():
            filename = f"{destination.stem}_{job.id[:8]}.mp4"
            destination = self.output_dir / filename

        if asset.path is not None:
            await asyncio.to_thread(shutil.move, str(asset.path), destination)
        else:
            await asyncio.to_thread(destination.write_bytes, asset.data)

        job.result = MediaAsset(
            kind=MediaKind.VIDEO, name=filename, path=destination, mime_type="video/mp4"
        )
        self._results[job.id] = destination
        logger.info(f"Published {destination}")

        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{filename}"
        return str(destination)

    async def _expire_after(self, job_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._expire(job_id)

    def _expire(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        result = self._results.pop(job_id, None)
        if result is not None:
            result.unlink(missing_ok=True)
            logger.info(f"Deleted expired result {result}")

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete jobs and results that finished longer ago than the retention window.

        Returns:
            Number of jobs purged
        """
        now = now or datetime.now()
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.finished_at is not None
            and (now - job.finished_at).total_seconds() >= self.retention_seconds
        ]
        for job_id in expired:
            self._expire(job_id)
        return len(expired)

    async def shutdown(self) -> None:
        """Cancel running jobs and pending expiry timers.

        Jobs that had not finished are marked failed.
        """
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        for job in self._jobs.values():
            if not job.stage.is_terminal:
                job.fail(CANCELLED_MESSAGE)
