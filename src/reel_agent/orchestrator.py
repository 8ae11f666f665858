"""Pipeline orchestrator - runs one generation job end to end.

prompt -> scene plan -> translation -> voiceover -> footage -> crossfade -> mux

Every stage is awaited in order and reports progress on the job's own event
log. The orchestrator is the only place where errors become job failures.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional

from models.job import GenerationConfig, GenerationJob, JobStage, Severity
from models.media import MediaAsset
from models.scene import Scene, ScenePlan
from reel_agent.video_assembler import VideoAssembler
from services.ai_service import AIService
from services.asset_store import AssetStore
from services.footage_fetcher import FootageFetcher
from services.scene_planner import ScenePlanner
from services.translator import Translator
from services.tts_service import TTSService
from services.video_sources.pexels import PexelsVideoSource
from utils.config import frame_from_config, load_config
from utils.errors import PipelineError, ValidationError
from utils.key_rotation import KeyRotationExecutor
from utils.logging import clear_job_context, set_job_context

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Video generation failed due to an unknown error"
CANCELLED_MESSAGE = "Video generation was cancelled"

# Called with the finished job and final asset, returns the result reference
ResultPublisher = Callable[[GenerationJob, MediaAsset], Awaitable[str]]


def validate_generation_config(config: GenerationConfig) -> None:
    """Reject a config with missing required fields.

    Raises:
        ValidationError: Naming every missing field
    """
    missing = []
    if not (config.project_title or "").strip():
        missing.append("project title")
    if not (config.main_prompt or "").strip():
        missing.append("main prompt")
    if not (config.google_api_keys or "").strip():
        missing.append("Google API keys")
    if not (config.pexels_api_keys or "").strip():
        missing.append("Pexels API keys")
    if not [lang for lang in config.languages if lang and lang.strip()]:
        missing.append("at least one language")

    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


class PipelineOrchestrator:
    """Drives a GenerationJob through every stage.

    Build one orchestrator per job: the key rotation history and the asset
    store belong to a single run. Collaborators can be passed in; anything
    left out is built from ``config``.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        executor: Optional[KeyRotationExecutor] = None,
        planner: Optional[ScenePlanner] = None,
        translator: Optional[Translator] = None,
        tts: Optional[TTSService] = None,
        fetcher: Optional[FootageFetcher] = None,
        assembler: Optional[VideoAssembler] = None,
        publisher: Optional[ResultPublisher] = None,
    ):
        self.config = config if config is not None else load_config()
        self.executor = executor or KeyRotationExecutor()

        ai_service = None
        if planner is None or translator is None:
            ai_service = AIService(
                model_name=self.config.get("text_model", "gemini-2.5-flash"),
                timeout_seconds=self.config.get("ai_timeout_seconds", 120.0),
            )

        self.planner = planner or ScenePlanner(ai_service, self.executor)
        self.translator = translator or Translator(ai_service, self.executor)
        self.tts = tts or TTSService(
            self.executor,
            voice_name=self.config.get("tts_voice_name", "Kore"),
        )
        self.fetcher = fetcher or FootageFetcher(
            self.executor,
            source=PexelsVideoSource(
                timeout_seconds=self.config.get("http_timeout_seconds", 30.0)
            ),
            download_timeout=self.config.get("download_timeout_seconds", 120.0),
        )
        self.assembler = assembler or VideoAssembler(
            ffmpeg_binary=self.config.get("ffmpeg_binary", "ffmpeg"),
            ffprobe_binary=self.config.get("ffprobe_binary", "ffprobe"),
            timeout_seconds=self.config.get("ffmpeg_timeout_seconds", 600),
            frame=frame_from_config(self.config),
        )
        self.publisher = publisher

    def _new_store(self, job: GenerationJob) -> AssetStore:
        return AssetStore(
            Path(self.config["work_dir"]),
            job.id,
            in_memory=self.config.get("in_memory_assets", False),
        )

    async def run(self, job: GenerationJob) -> GenerationJob:
        """Run ``job`` to completion or failure.

        Never raises for pipeline errors: they end up on ``job.error`` with a
        warning event. The job is returned for convenience. Cancellation
        fails the job and is re-raised.
        """
        set_job_context(job.id)
        store: Optional[AssetStore] = None
        try:
            job.log("Validating inputs...", Severity.INFO)
            validate_generation_config(job.config)
            job.log("Inputs validated", Severity.SUCCESS)

            store = self._new_store(job)
            await self._run_stages(job, store)
        except asyncio.CancelledError:
            logger.warning(f"Job {job.id} cancelled at {job.stage.value}")
            if not job.stage.is_terminal:
                job.log(f"Error: {CANCELLED_MESSAGE}", Severity.WARNING)
                job.fail(CANCELLED_MESSAGE)
            raise
        except Exception as e:
            if isinstance(e, PipelineError):
                message = e.message
            else:
                logger.exception(f"Unexpected error in job {job.id}")
                message = str(e)
            message = message or UNKNOWN_ERROR_MESSAGE

            logger.error(f"Job {job.id} failed at {job.stage.value}: {message}")
            job.log(f"Error: {message}", Severity.WARNING)
            job.fail(message)
        finally:
            if store is not None and not job.is_complete:
                store.release_all()
            clear_job_context()

        return job

    async def _run_stages(self, job: GenerationJob, store: AssetStore) -> None:
        config = job.config
        language = config.languages[0]
        skipped = config.languages[1:]
        if skipped:
            job.log(
                f"Only one language is processed per job; skipping {', '.join(skipped)}",
                Severity.WARNING,
            )

        # Scene plan
        job.advance(JobStage.PLANNING_SCRIPT)
        job.log("Generating scene plan with Gemini...", Severity.PROCESSING)
        plan = await self.planner.plan(
            config.main_prompt, config.google_api_keys, model=config.text_model
        )
        job.log(
            f"Scene plan ready: {len(plan.scenes)} scenes, {plan.total_duration:g}s",
            Severity.SUCCESS,
        )

        # Translation (never fatal)
        job.advance(JobStage.TRANSLATING)
        job.log(f"Translating script to {language}...", Severity.PROCESSING)
        script = await self.translator.translate(
            plan.script, language, config.google_api_keys, model=config.text_model
        )
        if self.translator.last_error:
            job.log(
                f"Translation to {language} failed, using the original script",
                Severity.WARNING,
            )
        else:
            job.log(f"Script translated to {language}", Severity.SUCCESS)

        # Voiceover
        job.advance(JobStage.SYNTHESIZING)
        job.log(f"Generating voiceover for {language}...", Severity.PROCESSING)
        audio = await self.tts.synthesize(
            script, config.voice_model, config.google_api_keys, store
        )
        job.log("Voiceover generated", Severity.SUCCESS)

        # Footage, one scene at a time
        job.advance(JobStage.FETCHING_FOOTAGE)
        clips = await self._fetch_footage(job, plan, store)

        # Crossfade
        job.advance(JobStage.CONCATENATING)
        job.log("Stitching videos with crossfade transitions...", Severity.PROCESSING)
        silent_video = await self.assembler.concatenate(
            clips, store, on_progress=lambda message: job.log(message, Severity.INFO)
        )
        for clip in clips:
            if clip is not silent_video:
                store.release(clip)
        job.log("Videos stitched", Severity.SUCCESS)

        # Mux
        job.advance(JobStage.MUXING)
        job.log("Merging video with voiceover...", Severity.PROCESSING)
        final = await self.assembler.mux(
            silent_video,
            audio,
            store,
            on_progress=lambda message: job.log(message, Severity.INFO),
        )
        store.release(silent_video)
        store.release(audio)
        job.log("Voiceover merged", Severity.SUCCESS)

        job.result = final
        if self.publisher is not None:
            job.result_ref = await self.publisher(job, final)
        else:
            job.result_ref = str(final.path) if final.path is not None else final.name
        store.release_all(keep=final)

        job.advance(JobStage.COMPLETED)
        job.log(f"Video for {language} is ready!", Severity.SUCCESS)
        logger.info(f"Job {job.id} completed: {job.result_ref}")

    async def _fetch_footage(
        self, job: GenerationJob, plan: ScenePlan, store: AssetStore
    ) -> list[MediaAsset]:
        job.log("Fetching video footage from Pexels...", Severity.PROCESSING)

        clips = []
        total = len(plan.scenes)
        for index, scene in enumerate(plan.scenes, start=1):
            job.log(
                f"Fetching video {index}/{total}: {scene.search_keywords}",
                Severity.PROCESSING,
            )
            clips.append(await self._fetch_scene(job, scene, store))

        job.log(f"Fetched {len(clips)} video clips", Severity.SUCCESS)
        return clips

    async def _fetch_scene(
        self, job: GenerationJob, scene: Scene, store: AssetStore
    ) -> MediaAsset:
        """Fetch a clip for ``scene``, retrying once with the main prompt."""
        credentials = job.config.pexels_api_keys
        try:
            return await self.fetcher.fetch(scene.search_keywords, credentials, store)
        except PipelineError as e:
            logger.warning(f"Footage fetch for '{scene.search_keywords}' failed: {e}")
            job.log(
                "Scene-specific video not found, using main prompt...", Severity.WARNING
            )

        return await self.fetcher.fetch(job.config.main_prompt, credentials, store)
