"""FFmpeg-based video assembly for the generation pipeline.

Two operations:
1. concatenate: crossfade an ordered list of clips into one silent video
2. mux: put the narration track under the video, shortest stream wins

Commands are built as argument lists from a CrossfadeGraph and run as
subprocesses. Progress comes from FFmpeg's ``-progress pipe:1`` output.
"""

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Optional

from models.media import MediaAsset, MediaKind
from reel_agent.filter_graph import (
    DEFAULT_CLIP_DURATION,
    DEFAULT_TRANSITION_DURATION,
    CrossfadeGraph,
)
from services.asset_store import AssetStore
from utils.errors import EncodeError, NoClipsError

logger = logging.getLogger(__name__)

# Encoding defaults for the concatenated video
ENCODE_CODEC = "libx264"
ENCODE_PRESET = "fast"
ENCODE_CRF = 23

# Audio settings for the muxed output
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "192k"

DEFAULT_FFMPEG_TIMEOUT = 600
PROBE_TIMEOUT = 30

PROGRESS_MILESTONES = (25, 50, 75, 100)

ProgressCallback = Callable[[str], None]


class ProgressTracker:
    """Turns FFmpeg ``-progress`` key=value lines into milestone messages.

    With a known expected duration it reports 25/50/75/100 percent, each
    once. Without one it falls back to the phases preparing, encoding and
    finalizing.
    """

    def __init__(
        self,
        label: str,
        expected_duration: float = 0.0,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.label = label
        self.expected_duration = expected_duration
        self.on_progress = on_progress
        self.reported: list[int] = []

    @property
    def has_percent(self) -> bool:
        return self.expected_duration > 0

    def _emit(self, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(message)

    def phase(self, name: str) -> None:
        if not self.has_percent:
            self._emit(f"{self.label}: {name}")

    def report_percent(self, percent: float) -> None:
        for milestone in PROGRESS_MILESTONES:
            if percent >= milestone and milestone not in self.reported:
                self.reported.append(milestone)
                self._emit(f"{self.label}: {milestone}% complete")

    def feed(self, line: str) -> None:
        """Consume one line of FFmpeg progress output."""
        key, _, value = line.strip().partition("=")
        if not self.has_percent:
            return
        # out_time_ms is also in microseconds (historic FFmpeg naming)
        if key in ("out_time_us", "out_time_ms"):
            try:
                seconds = int(value) / 1_000_000
            except ValueError:
                return
            self.report_percent(min(100.0, seconds / self.expected_duration * 100))
        elif key == "progress" and value == "end":
            self.report_percent(100)

    def finish(self) -> None:
        if self.has_percent:
            self.report_percent(100)
        else:
            self.phase("finalizing")


class VideoAssembler:
    """Builds and runs FFmpeg commands for concatenation and muxing."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT,
        clip_duration: float = DEFAULT_CLIP_DURATION,
        transition_duration: float = DEFAULT_TRANSITION_DURATION,
        frame: Optional[tuple[int, int, int]] = (1280, 720, 30),
    ):
        """Initialize the assembler.

        Args:
            ffmpeg_binary: FFmpeg executable
            ffprobe_binary: FFprobe executable
            timeout_seconds: Upper bound on a single FFmpeg run
            clip_duration: Nominal per-clip duration used for xfade offsets
            transition_duration: Crossfade length in seconds
            frame: (width, height, fps) to normalize inputs to, or None to
                feed raw clips straight into the xfade chain
        """
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.timeout_seconds = timeout_seconds
        self.clip_duration = clip_duration
        self.transition_duration = transition_duration
        self.frame = frame

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def concatenate(
        self,
        clips: Sequence[MediaAsset],
        store: AssetStore,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MediaAsset:
        """Crossfade ``clips`` into one silent video.

        A single clip is returned unchanged without re-encoding.

        Raises:
            NoClipsError: If ``clips`` is empty
            EncodeError: If FFmpeg fails
        """
        if not clips:
            raise NoClipsError()

        if len(clips) == 1:
            logger.info("Single clip, skipping concatenation")
            return clips[0]

        graph = self.build_graph(len(clips))
        inputs = [store.materialize(clip) for clip in clips]
        output = store.new_path("concatenated", ".mp4")

        expected = await self._expected_concat_duration(graph, inputs[-1])
        cmd = self.build_concat_command(inputs, graph, output)
        await self._encode(
            cmd,
            output,
            f"xfade {len(clips)} clips at {', '.join(f'{o:g}s' for o in graph.offsets)}",
            label="Stitching",
            expected_duration=expected,
            on_progress=on_progress,
        )
        return store.adopt(output, MediaKind.VIDEO, mime_type="video/mp4")

    async def mux(
        self,
        video: MediaAsset,
        audio: MediaAsset,
        store: AssetStore,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MediaAsset:
        """Combine ``video`` and ``audio``, truncated to the shorter stream.

        Raises:
            EncodeError: If FFmpeg fails
        """
        video_path = store.materialize(video)
        audio_path = store.materialize(audio)
        output = store.new_path("final", ".mp4")

        durations = [
            await self.probe_duration(video_path),
            await self.probe_duration(audio_path),
        ]
        expected = min(durations) if all(d > 0 for d in durations) else 0.0

        cmd = self.build_mux_command(video_path, audio_path, output)
        await self._encode(
            cmd,
            output,
            "add audio track",
            label="Finalizing",
            expected_duration=expected,
            on_progress=on_progress,
        )
        return store.adopt(output, MediaKind.VIDEO, mime_type="video/mp4")

    # ------------------------------------------------------------------
    # Command construction
    # ------------------------------------------------------------------

    def build_graph(self, clip_count: int) -> CrossfadeGraph:
        return CrossfadeGraph.build(
            clip_count,
            clip_duration=self.clip_duration,
            transition_duration=self.transition_duration,
            frame=self.frame,
        )

    def build_concat_command(
        self, inputs: Sequence[Path], graph: CrossfadeGraph, output: Path
    ) -> list[str]:
        cmd = [self.ffmpeg_binary, "-y"]
        for path in inputs:
            cmd.extend(["-i", str(path)])
        cmd.extend([
            "-filter_complex", graph.render(),
            "-map", f"[{graph.output_label}]",
            "-c:v", ENCODE_CODEC,
            "-preset", ENCODE_PRESET,
            "-crf", str(ENCODE_CRF),
            "-pix_fmt", "yuv420p",
            "-an",
            str(output),
        ])
        return cmd

    def build_mux_command(self, video: Path, audio: Path, output: Path) -> list[str]:
        return [
            self.ffmpeg_binary, "-y",
            "-i", str(video),
            "-i", str(audio),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", AUDIO_CODEC,
            "-b:a", AUDIO_BITRATE,
            "-shortest",
            str(output),
        ]

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    async def _expected_concat_duration(
        self, graph: CrossfadeGraph, last_clip: Path
    ) -> float:
        """Output length: the last transition starts at its offset, then the last clip plays out."""
        last_duration = await self.probe_duration(last_clip)
        if last_duration <= 0:
            return graph.nominal_duration
        return graph.steps[-1].offset + last_duration

    async def probe_duration(self, path: Path) -> float:
        """Get the duration of a media file using ffprobe.

        Returns duration in seconds. Falls back to 0.0 on error.
        """
        cmd = [
            self.ffprobe_binary,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "json",
            str(path),
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
            )
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=PROBE_TIMEOUT)
            if proc.returncode == 0:
                data = json.loads(stdout)
                return float(data["format"]["duration"])
        except (OSError, asyncio.TimeoutError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"ffprobe failed for {path}: {e}")
        return 0.0

    async def _encode(
        self,
        cmd: list[str],
        output: Path,
        description: str,
        label: str,
        expected_duration: float = 0.0,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Run FFmpeg into ``output``, removing the partial file if it does not finish."""
        try:
            await self._run_ffmpeg(
                cmd,
                description,
                label=label,
                expected_duration=expected_duration,
                on_progress=on_progress,
            )
        except (EncodeError, asyncio.CancelledError):
            output.unlink(missing_ok=True)
            raise

    async def _run_ffmpeg(
        self,
        cmd: list[str],
        description: str,
        label: str,
        expected_duration: float = 0.0,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Run FFmpeg, streaming progress milestones to ``on_progress``.

        Raises:
            EncodeError: On a missing binary, timeout, or non-zero exit code
        """
        tracker = ProgressTracker(label, expected_duration, on_progress)
        tracker.phase("preparing")

        full_cmd = [cmd[0], "-hide_banner", "-nostats", "-progress", "pipe:1", *cmd[1:]]
        logger.info(f"FFmpeg: {description}")
        logger.debug(f"Command: {' '.join(full_cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *full_cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncodeError(f"FFmpeg could not be started ({description}): {e}") from e

        tracker.phase("encoding")

        async def read_progress() -> None:
            while True:
                line = await proc.stdout.readline()
                if not line:
                    break
                tracker.feed(line.decode(errors="replace"))

        try:
            _, stderr = await asyncio.wait_for(
                asyncio.gather(read_progress(), proc.stderr.read()),
                timeout=self.timeout_seconds,
            )
            returncode = await proc.wait()
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise EncodeError(
                f"FFmpeg timed out after {self.timeout_seconds:g}s ({description})"
            ) from e
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        diagnostics = stderr.decode(errors="replace") if stderr else ""
        if returncode != 0:
            logger.error(f"FFmpeg stderr: {diagnostics[-1000:]}")
            raise EncodeError(
                f"FFmpeg processing failed ({description}): {diagnostics[-500:].strip()}",
                diagnostics=diagnostics,
            )

        tracker.finish()
