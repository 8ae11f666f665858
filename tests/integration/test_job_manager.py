"""Integration tests for JobManager: background jobs, polling, retention."""

import asyncio
from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from models.job import JobStage
from models.media import MediaKind
from reel_agent.job_manager import JobManager, sanitize_title
from reel_agent.orchestrator import CANCELLED_MESSAGE, PipelineOrchestrator
from utils.errors import JobNotFoundError


@pytest.fixture
def factory(sample_config, sample_scene_plan, mock_assembler):
    """Orchestrator factory wired to mocked services."""

    def build(publisher):
        planner = Mock()
        planner.plan = AsyncMock(return_value=sample_scene_plan)
        translator = Mock()
        translator.translate = AsyncMock(side_effect=lambda script, *args, **kwargs: script)
        translator.last_error = None

        async def synthesize(text, voice_model, credentials, store):
            return store.put_bytes(b"audio", MediaKind.AUDIO, "tts", ".wav")

        async def fetch(keywords, credentials, store):
            await asyncio.sleep(0)
            return store.put_bytes(b"clip", MediaKind.VIDEO, "pexels", ".mp4")

        tts = Mock()
        tts.synthesize = AsyncMock(side_effect=synthesize)
        fetcher = Mock()
        fetcher.fetch = AsyncMock(side_effect=fetch)

        return PipelineOrchestrator(
            sample_config,
            planner=planner,
            translator=translator,
            tts=tts,
            fetcher=fetcher,
            assembler=mock_assembler,
            publisher=publisher,
        )

    return build


@pytest_asyncio.fixture
async def manager(sample_config, factory):
    manager = JobManager(sample_config, orchestrator_factory=factory)
    yield manager
    await manager.shutdown()


async def _wait_until_finished(manager, job_id, timeout=5.0):
    async def poll():
        while True:
            status = manager.get_status(job_id)
            if status.is_complete or status.is_error:
                return status
            await asyncio.sleep(0.01)

    return await asyncio.wait_for(poll(), timeout)


def test_sanitize_title():
    assert sanitize_title("My Demo: Part #1") == "My_Demo__Part__1"


@pytest.mark.integration
class TestRunToCompletion:
    """Synchronous mode."""

    @pytest.mark.asyncio
    async def test_result_is_published(self, manager, generation_payload, sample_config):
        status = await manager.run_to_completion(generation_payload)

        assert status.is_complete
        assert status.stage is JobStage.COMPLETED
        result = Path(status.result_ref)
        assert result.parent == Path(sample_config["output_dir"])
        assert result.name.startswith("Demo_")
        assert result.suffix == ".mp4"
        assert result.read_bytes() == b"final"
        assert status.progress_events[0].id == 1
        assert status.progress_events[-1].message == "Video for English is ready!"
        assert list(Path(sample_config["work_dir"]).iterdir()) == []

    @pytest.mark.asyncio
    async def test_public_base_url(self, sample_config, factory, generation_payload):
        sample_config["public_base_url"] = "https://videos.example.com/"
        manager = JobManager(sample_config, orchestrator_factory=factory)
        try:
            status = await manager.run_to_completion(generation_payload)
        finally:
            await manager.shutdown()

        assert status.result_ref.startswith("https://videos.example.com/Demo_")
        assert status.result_ref.endswith(".mp4")

    @pytest.mark.asyncio
    async def test_validation_failure(self, manager, generation_payload):
        status = await manager.run_to_completion({**generation_payload, "mainPrompt": ""})

        assert status.is_error
        assert "main prompt" in status.error
        assert status.result_ref is None


@pytest.mark.integration
class TestPolling:
    """Background jobs observed through get_status."""

    @pytest.mark.asyncio
    async def test_start_job_and_poll_deltas(self, manager, generation_payload):
        job_id = manager.start_job(generation_payload)

        seen = []
        last_id = 0
        while True:
            status = manager.get_status(job_id, since_id=last_id)
            for event in status.progress_events:
                seen.append(event.id)
                last_id = event.id
            if status.is_complete or status.is_error:
                break
            await asyncio.sleep(0)

        assert status.is_complete
        assert seen == list(range(1, len(seen) + 1))
        assert manager.get_status(job_id, since_id=last_id).progress_events == []

    @pytest.mark.asyncio
    async def test_unknown_job(self, manager):
        with pytest.raises(JobNotFoundError):
            manager.get_status("missing")

    @pytest.mark.asyncio
    async def test_concurrent_jobs_are_isolated(self, manager, generation_payload):
        first = manager.start_job(generation_payload)
        second = manager.start_job({**generation_payload, "projectTitle": "Other"})

        status_one = await _wait_until_finished(manager, first)
        status_two = await _wait_until_finished(manager, second)

        assert status_one.is_complete and status_two.is_complete
        assert status_one.result_ref != status_two.result_ref
        assert Path(status_two.result_ref).name.startswith("Other_")

    @pytest.mark.asyncio
    async def test_shutdown_fails_unfinished_jobs(self, manager, generation_payload, sample_config):
        running = manager.start_job(generation_payload)
        await asyncio.sleep(0)
        queued = manager.start_job({**generation_payload, "projectTitle": "Queued"})

        await manager.shutdown()

        for job_id in (running, queued):
            status = manager.get_status(job_id)
            assert status.is_error
            assert status.error == CANCELLED_MESSAGE
        assert list(Path(sample_config["work_dir"]).iterdir()) == []


@pytest.mark.integration
class TestRetention:
    """Result expiry."""

    @pytest.mark.asyncio
    async def test_purge_expired(self, manager, generation_payload):
        job_id = manager.start_job(generation_payload)
        status = await _wait_until_finished(manager, job_id)
        result = Path(status.result_ref)
        finished_at = manager._jobs[job_id].finished_at

        assert manager.purge_expired(now=finished_at + timedelta(seconds=10)) == 0
        assert result.exists()

        assert manager.purge_expired(now=finished_at + timedelta(seconds=3600)) == 1
        assert not result.exists()
        with pytest.raises(JobNotFoundError):
            manager.get_status(job_id)

    @pytest.mark.asyncio
    async def test_expiry_timer(self, sample_config, factory, generation_payload):
        sample_config["result_retention_seconds"] = 0.05
        manager = JobManager(sample_config, orchestrator_factory=factory)
        try:
            job_id = manager.start_job(generation_payload)
            status = await _wait_until_finished(manager, job_id)
            result = Path(status.result_ref)
            assert result.exists()

            await asyncio.sleep(0.2)

            assert not result.exists()
            with pytest.raises(JobNotFoundError):
                manager.get_status(job_id)
        finally:
            await manager.shutdown()
