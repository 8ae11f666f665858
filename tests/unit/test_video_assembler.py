"""Unit tests for VideoAssembler concatenation, muxing and progress.

All tests mock asyncio.create_subprocess_exec so no actual FFmpeg
execution occurs.
"""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest

from models.media import MediaKind
from reel_agent.video_assembler import ProgressTracker, VideoAssembler
from utils.errors import EncodeError, NoClipsError

SUBPROCESS = "reel_agent.video_assembler.asyncio.create_subprocess_exec"


def _ffmpeg_process(returncode=0, progress_lines=(), stderr=b""):
    proc = MagicMock()
    proc.stdout.readline = AsyncMock(side_effect=[*progress_lines, b""])
    proc.stderr.read = AsyncMock(return_value=stderr)
    proc.wait = AsyncMock(return_value=returncode)
    proc.kill = Mock()
    proc.returncode = returncode
    return proc


def _probe_process(duration=5.0, returncode=0):
    proc = MagicMock()
    stdout = json.dumps({"format": {"duration": str(duration)}}).encode()
    proc.communicate = AsyncMock(return_value=(stdout, b""))
    proc.returncode = returncode
    return proc


class FakeSubprocess:
    """Dispatches ffprobe and ffmpeg invocations to canned processes."""

    def __init__(self, ffmpeg_proc, probe_duration=5.0, partial_output=None):
        self.ffmpeg_proc = ffmpeg_proc
        self.probe_duration = probe_duration
        self.partial_output = partial_output
        self.calls = []

    async def create(self, *args, **kwargs):
        self.calls.append(list(args))
        if args[0] == "ffprobe":
            return _probe_process(self.probe_duration)
        if self.partial_output is not None:
            Path(args[-1]).write_bytes(self.partial_output)
        return self.ffmpeg_proc

    @property
    def ffmpeg_calls(self):
        return [c for c in self.calls if c[0] == "ffmpeg"]


@pytest.fixture
def assembler():
    return VideoAssembler(frame=None)


@pytest.fixture
def clips(asset_store):
    return [
        asset_store.put_bytes(f"clip{i}".encode(), MediaKind.VIDEO, f"clip{i}", ".mp4")
        for i in range(3)
    ]


class TestProgressTracker:
    """Tests for ProgressTracker milestone reporting."""

    def test_percent_milestones_reported_once(self):
        messages = []
        tracker = ProgressTracker("Stitching", 10.0, messages.append)

        tracker.feed("frame=10")
        tracker.feed("out_time_us=2600000")
        tracker.feed("out_time_us=2700000")
        tracker.feed("out_time_ms=8000000")
        tracker.finish()

        assert messages == [
            "Stitching: 25% complete",
            "Stitching: 50% complete",
            "Stitching: 75% complete",
            "Stitching: 100% complete",
        ]

    def test_progress_end_completes(self):
        messages = []
        tracker = ProgressTracker("Finalizing", 4.0, messages.append)

        tracker.feed("progress=end")

        assert messages[-1] == "Finalizing: 100% complete"

    def test_phase_mode_without_duration(self):
        messages = []
        tracker = ProgressTracker("Finalizing", 0.0, messages.append)

        tracker.phase("preparing")
        tracker.feed("out_time_us=1000000")
        tracker.phase("encoding")
        tracker.finish()

        assert messages == [
            "Finalizing: preparing",
            "Finalizing: encoding",
            "Finalizing: finalizing",
        ]

    def test_ignores_unparseable_values(self):
        messages = []
        tracker = ProgressTracker("Stitching", 10.0, messages.append)
        tracker.feed("out_time_us=N/A")
        assert messages == []


class TestCommandBuilders:
    """Tests for the pure command builders."""

    def test_concat_command(self, assembler):
        graph = assembler.build_graph(3)
        cmd = assembler.build_concat_command(
            [Path("a.mp4"), Path("b.mp4"), Path("c.mp4")], graph, Path("out.mp4")
        )

        assert cmd[:8] == ["ffmpeg", "-y", "-i", "a.mp4", "-i", "b.mp4", "-i", "c.mp4"]
        assert cmd[cmd.index("-filter_complex") + 1] == graph.render()
        assert cmd[cmd.index("-map") + 1] == "[v2]"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-preset") + 1] == "fast"
        assert cmd[cmd.index("-crf") + 1] == "23"
        assert cmd[-1] == "out.mp4"

    def test_mux_command(self, assembler):
        cmd = assembler.build_mux_command(Path("v.mp4"), Path("a.wav"), Path("final.mp4"))

        assert cmd == [
            "ffmpeg", "-y",
            "-i", "v.mp4",
            "-i", "a.wav",
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", "aac",
            "-b:a", "192k",
            "-shortest",
            "final.mp4",
        ]

    def test_normalized_graph_by_default(self):
        graph = VideoAssembler().build_graph(2)
        assert len(graph.normalize) == 2
        assert graph.offsets == [4.5]


@pytest.mark.unit
class TestConcatenate:
    """Tests for VideoAssembler.concatenate()."""

    @pytest.mark.asyncio
    async def test_no_clips(self, assembler, asset_store):
        with pytest.raises(NoClipsError, match="No video files provided"):
            await assembler.concatenate([], asset_store)

    @pytest.mark.asyncio
    async def test_single_clip_is_returned_unchanged(self, assembler, asset_store, clips):
        with patch(SUBPROCESS) as create:
            result = await assembler.concatenate(clips[:1], asset_store)

        assert result is clips[0]
        create.assert_not_called()

    @pytest.mark.asyncio
    async def test_three_clips(self, assembler, asset_store, clips):
        fake = FakeSubprocess(
            _ffmpeg_process(progress_lines=[b"out_time_us=7250000\n", b"progress=end\n"])
        )
        messages = []

        with patch(SUBPROCESS, side_effect=fake.create):
            result = await assembler.concatenate(clips, asset_store, on_progress=messages.append)

        assert result.kind is MediaKind.VIDEO
        assert result.path.name.startswith("job123_concatenated_")

        (cmd,) = fake.ffmpeg_calls
        assert cmd[1:6] == ["-hide_banner", "-nostats", "-progress", "pipe:1", "-y"]
        graph = cmd[cmd.index("-filter_complex") + 1]
        assert "offset=4.5[v1]" in graph
        assert "offset=9.5[v2]" in graph
        assert [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-i"] == [
            str(clip.path) for clip in clips
        ]
        # expected duration = last offset 9.5 + probed 5.0
        assert messages == [
            "Stitching: 25% complete",
            "Stitching: 50% complete",
            "Stitching: 75% complete",
            "Stitching: 100% complete",
        ]

    @pytest.mark.asyncio
    async def test_encoder_failure_carries_diagnostics(self, assembler, asset_store, clips):
        fake = FakeSubprocess(
            _ffmpeg_process(returncode=1, stderr=b"Error initializing filter 'xfade'")
        )

        with patch(SUBPROCESS, side_effect=fake.create):
            with pytest.raises(EncodeError) as exc_info:
                await assembler.concatenate(clips, asset_store)

        assert "xfade" in str(exc_info.value)
        assert "Error initializing filter" in exc_info.value.diagnostics

    @pytest.mark.asyncio
    async def test_missing_binary(self, asset_store, clips):
        assembler = VideoAssembler(ffmpeg_binary="/nonexistent/ffmpeg", frame=None)

        async def create(*args, **kwargs):
            raise FileNotFoundError(args[0])

        with patch(SUBPROCESS, side_effect=create):
            with pytest.raises(EncodeError, match="could not be started"):
                await assembler.concatenate(clips, asset_store)

    @pytest.mark.asyncio
    async def test_timeout(self, asset_store, clips):
        assembler = VideoAssembler(timeout_seconds=0.05, frame=None)
        proc = _ffmpeg_process()

        async def hang():
            await asyncio.sleep(5)

        proc.stderr.read = AsyncMock(side_effect=hang)
        fake = FakeSubprocess(proc)

        with patch(SUBPROCESS, side_effect=fake.create):
            with pytest.raises(EncodeError, match="timed out"):
                await assembler.concatenate(clips, asset_store)

        proc.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_phase_progress_when_probe_fails(self, assembler, asset_store, clips):
        fake = FakeSubprocess(_ffmpeg_process(), probe_duration="N/A")
        messages = []

        with patch(SUBPROCESS, side_effect=fake.create):
            await assembler.concatenate(clips, asset_store, on_progress=messages.append)

        # falls back to the nominal duration computed from the graph
        assert messages[-1] == "Stitching: 100% complete"

    @pytest.mark.asyncio
    async def test_failed_encode_removes_partial_output(self, assembler, asset_store, clips, temp_dir):
        fake = FakeSubprocess(
            _ffmpeg_process(returncode=1, stderr=b"boom"), partial_output=b"half"
        )

        with patch(SUBPROCESS, side_effect=fake.create):
            with pytest.raises(EncodeError, match="boom"):
                await assembler.concatenate(clips, asset_store)

        (cmd,) = fake.ffmpeg_calls
        assert not Path(cmd[-1]).exists()
        assert sorted(p.name for p in (temp_dir / "work").iterdir()) == sorted(
            clip.path.name for clip in clips
        )

    @pytest.mark.asyncio
    async def test_timeout_removes_partial_output(self, asset_store, clips):
        assembler = VideoAssembler(timeout_seconds=0.05, frame=None)
        proc = _ffmpeg_process()

        async def hang():
            await asyncio.sleep(5)

        proc.stderr.read = AsyncMock(side_effect=hang)
        fake = FakeSubprocess(proc, partial_output=b"half")

        with patch(SUBPROCESS, side_effect=fake.create):
            with pytest.raises(EncodeError, match="timed out"):
                await assembler.concatenate(clips, asset_store)

        assert not Path(fake.ffmpeg_calls[0][-1]).exists()

    @pytest.mark.asyncio
    async def test_cancel_kills_ffmpeg_and_removes_output(self, assembler, asset_store, clips):
        proc = _ffmpeg_process()
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(5)

        proc.stderr.read = AsyncMock(side_effect=hang)
        fake = FakeSubprocess(proc, partial_output=b"half")

        with patch(SUBPROCESS, side_effect=fake.create):
            task = asyncio.create_task(assembler.concatenate(clips, asset_store))
            await asyncio.wait_for(started.wait(), timeout=1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        proc.kill.assert_called_once()
        assert not Path(fake.ffmpeg_calls[0][-1]).exists()


@pytest.mark.unit
class TestMux:
    """Tests for VideoAssembler.mux()."""

    @pytest.mark.asyncio
    async def test_mux(self, assembler, asset_store):
        video = asset_store.put_bytes(b"v", MediaKind.VIDEO, "concatenated", ".mp4")
        audio = asset_store.put_bytes(b"a", MediaKind.AUDIO, "tts", ".wav")
        fake = FakeSubprocess(_ffmpeg_process(progress_lines=[b"progress=end\n"]), 12.0)
        messages = []

        with patch(SUBPROCESS, side_effect=fake.create):
            result = await assembler.mux(video, audio, asset_store, on_progress=messages.append)

        assert result.path.name.startswith("job123_final_")
        (cmd,) = fake.ffmpeg_calls
        assert "-shortest" in cmd
        assert cmd[cmd.index("-c:v") + 1] == "copy"
        assert str(video.path) in cmd and str(audio.path) in cmd
        assert messages[-1] == "Finalizing: 100% complete"

    @pytest.mark.asyncio
    async def test_mux_phase_progress_without_durations(self, assembler, asset_store):
        video = asset_store.put_bytes(b"v", MediaKind.VIDEO, "concatenated", ".mp4")
        audio = asset_store.put_bytes(b"a", MediaKind.AUDIO, "tts", ".wav")
        fake = FakeSubprocess(_ffmpeg_process(), probe_duration="N/A")
        messages = []

        with patch(SUBPROCESS, side_effect=fake.create):
            await assembler.mux(video, audio, asset_store, on_progress=messages.append)

        assert messages == [
            "Finalizing: preparing",
            "Finalizing: encoding",
            "Finalizing: finalizing",
        ]

    @pytest.mark.asyncio
    async def test_mux_failure_removes_partial_output(self, assembler, asset_store):
        video = asset_store.put_bytes(b"v", MediaKind.VIDEO, "concatenated", ".mp4")
        audio = asset_store.put_bytes(b"a", MediaKind.AUDIO, "tts", ".wav")
        fake = FakeSubprocess(
            _ffmpeg_process(returncode=1, stderr=b"Invalid data"), 4.0, partial_output=b"half"
        )

        with patch(SUBPROCESS, side_effect=fake.create):
            with pytest.raises(EncodeError, match="add audio track"):
                await assembler.mux(video, audio, asset_store)

        (cmd,) = fake.ffmpeg_calls
        assert not Path(cmd[-1]).exists()
        assert video.path.exists() and audio.path.exists()

    @pytest.mark.asyncio
    async def test_mux_in_memory_assets_are_materialized(self, assembler, temp_dir):
        from services.asset_store import AssetStore

        store = AssetStore(temp_dir, "memjob", in_memory=True)
        video = store.put_bytes(b"v", MediaKind.VIDEO, "concatenated", ".mp4")
        audio = store.put_bytes(b"a", MediaKind.AUDIO, "tts", ".wav")
        proc = _ffmpeg_process()
        fake = FakeSubprocess(proc, 3.0)

        async def create(*args, **kwargs):
            result = await fake.create(*args, **kwargs)
            if args[0] == "ffmpeg":
                Path(args[-1]).write_bytes(b"muxed")
            return result

        with patch(SUBPROCESS, side_effect=create):
            result = await assembler.mux(video, audio, store)

        assert result.in_memory
        assert result.data == b"muxed"
        inputs = [cmd for cmd in fake.ffmpeg_calls][0]
        assert any("memjob_scratch_" in arg for arg in inputs)
