"""Shared pytest fixtures for promptreel tests."""

import sys
import tempfile
from pathlib import Path
from typing import Dict, Generator
from unittest.mock import AsyncMock, Mock

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir) -> Dict:
    """Sample configuration for testing."""
    return {
        "gemini_api_keys": "gkey_one,gkey_two",
        "pexels_api_keys": "pkey_one",
        "text_model": "gemini-2.5-flash",
        "voice_model": "gemini-2.5-flash-preview-tts",
        "tts_voice_name": "Kore",
        "work_dir": str(temp_dir / "work"),
        "output_dir": str(temp_dir / "output"),
        "public_base_url": None,
        "result_retention_seconds": 3600,
        "in_memory_assets": False,
        "http_timeout_seconds": 30.0,
        "download_timeout_seconds": 120.0,
        "ai_timeout_seconds": 120.0,
        "ffmpeg_binary": "ffmpeg",
        "ffprobe_binary": "ffprobe",
        "ffmpeg_timeout_seconds": 600.0,
        "normalize_clips": True,
        "video_width": 1280,
        "video_height": 720,
        "video_fps": 30,
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def generation_payload() -> Dict:
    """Host payload for a single-language job, camelCase like the web client."""
    return {
        "projectTitle": "Demo",
        "mainPrompt": "black holes",
        "languages": ["English"],
        "googleApiKeys": "gkey_one",
        "pexelsApiKeys": "pkey_one",
        "textModel": "gemini-2.5-flash",
        "voiceModel": "gemini-2.5-flash-preview-tts",
    }


@pytest.fixture
def sample_scene_plan():
    """Six five-second scenes, like the planner produces."""
    from models.scene import Scene, ScenePlan

    keywords = [
        "black hole space",
        "galaxy stars",
        "telescope observatory",
        "nebula colorful",
        "astronaut orbit",
        "night sky timelapse",
    ]
    return ScenePlan(
        scenes=tuple(
            Scene(description=f"Scene about {kw}.", search_keywords=kw) for kw in keywords
        ),
        total_duration=30,
    )


@pytest.fixture
def sample_plan_json() -> str:
    """Raw planner reply body."""
    return (
        '{"scenes": ['
        '{"description": "A swirling black hole.", "searchKeywords": "black hole", "duration": 5},'
        '{"description": "Stars bend around it.", "searchKeywords": "galaxy stars", "duration": 5}'
        '], "totalDuration": 10}'
    )


@pytest.fixture
def asset_store(temp_dir):
    """File-backed asset store for a fixed job id."""
    from services.asset_store import AssetStore

    return AssetStore(temp_dir / "work", "job123")


@pytest.fixture
def mock_assembler():
    """VideoAssembler double whose outputs are real files in the store."""
    from models.media import MediaKind

    mock = Mock()

    async def concatenate(clips, store, on_progress=None):
        if len(clips) == 1:
            return clips[0]
        if on_progress:
            on_progress("Stitching: 100% complete")
        return store.put_bytes(b"silent", MediaKind.VIDEO, "concatenated", ".mp4")

    async def mux(video, audio, store, on_progress=None):
        if on_progress:
            on_progress("Finalizing: 100% complete")
        return store.put_bytes(b"final", MediaKind.VIDEO, "final", ".mp4")

    mock.concatenate = AsyncMock(side_effect=concatenate)
    mock.mux = AsyncMock(side_effect=mux)
    return mock
