"""Configuration loading and validation for promptreel."""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default: str) -> str:
        if not path:
            return default
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Comma-separated key lists, rotated on quota errors
        "gemini_api_keys": os.getenv("GEMINI_API_KEYS") or os.getenv("GEMINI_API_KEY", ""),
        "pexels_api_keys": os.getenv("PEXELS_API_KEYS") or os.getenv("PEXELS_API_KEY", ""),
        # Model configurations
        "text_model": os.getenv("TEXT_MODEL", "gemini-2.5-flash"),
        "voice_model": os.getenv("VOICE_MODEL", "gemini-2.5-flash-preview-tts"),
        "tts_voice_name": os.getenv("TTS_VOICE_NAME", "Kore"),
        # Storage: intermediates are shared across jobs, results are retained
        "work_dir": resolve_path(
            os.getenv("WORK_DIR"), str(Path(tempfile.gettempdir()) / "promptreel")
        ),
        "output_dir": resolve_path(os.getenv("OUTPUT_DIR"), str(PROJECT_ROOT / "output")),
        "public_base_url": os.getenv("PUBLIC_BASE_URL"),
        "result_retention_seconds": int(os.getenv("RESULT_RETENTION_SECONDS", "3600")),
        "in_memory_assets": _flag("IN_MEMORY_ASSETS", "false"),
        # External call timeouts
        "http_timeout_seconds": float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
        "download_timeout_seconds": float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "120")),
        "ai_timeout_seconds": float(os.getenv("AI_TIMEOUT_SECONDS", "120")),
        # Encoder
        "ffmpeg_binary": os.getenv("FFMPEG_BINARY", "ffmpeg"),
        "ffprobe_binary": os.getenv("FFPROBE_BINARY", "ffprobe"),
        "ffmpeg_timeout_seconds": float(os.getenv("FFMPEG_TIMEOUT_SECONDS", "600")),
        "normalize_clips": _flag("NORMALIZE_CLIPS", "true"),
        "video_width": int(os.getenv("VIDEO_WIDTH", "1280")),
        "video_height": int(os.getenv("VIDEO_HEIGHT", "720")),
        "video_fps": int(os.getenv("VIDEO_FPS", "30")),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _flag("LOG_JSON", "false"),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors.

    API keys are not checked here; they can also arrive per job.
    """
    errors = []

    for key in ("result_retention_seconds", "video_width", "video_height", "video_fps"):
        if config.get(key, 0) <= 0:
            errors.append(f"{key.upper()} must be positive")

    for key in ("http_timeout_seconds", "download_timeout_seconds",
                "ai_timeout_seconds", "ffmpeg_timeout_seconds"):
        if config.get(key, 0) <= 0:
            errors.append(f"{key.upper()} must be positive")

    for key in ("work_dir", "output_dir"):
        try:
            Path(config[key]).mkdir(parents=True, exist_ok=True)
        except (KeyError, OSError) as e:
            errors.append(f"Cannot create {key}: {e}")

    if config.get("log_level", "INFO").upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        errors.append(f"LOG_LEVEL must be DEBUG, INFO, WARNING or ERROR, got {config['log_level']}")

    return errors


def frame_from_config(config: dict) -> tuple[int, int, int] | None:
    """Return the (width, height, fps) clips are normalized to, or None."""
    if not config.get("normalize_clips", True):
        return None
    return (
        config.get("video_width", 1280),
        config.get("video_height", 720),
        config.get("video_fps", 30),
    )
