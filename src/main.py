"""Main application entry point for promptreel."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from tqdm import tqdm

from models.job import STAGE_ORDER, GenerationConfig, JobStage, JobStatus
from reel_agent.job_manager import JobManager
from services.ai_service import AIService
from utils.config import load_config, validate_config
from utils.errors import PipelineError
from utils.key_rotation import KeyRotationExecutor
from utils.logging import setup_logging

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5


class StageProgressBar:
    """Progress bar over the pipeline stages, fed from polled job status."""

    def __init__(self):
        self.bar: Optional[tqdm] = None

    def update(self, status: JobStatus) -> None:
        if self.bar is None:
            self.bar = tqdm(
                total=len(STAGE_ORDER) - 1,
                desc="Generating",
                unit="stage",
                leave=True,
            )
        if status.stage is not JobStage.FAILED:
            self.bar.n = STAGE_ORDER.index(status.stage)
        self.bar.set_description(status.stage.value.replace("_", " ").title())
        self.bar.refresh()

    def write(self, message: str) -> None:
        if self.bar is None:
            print(message)
        else:
            self.bar.write(message)

    def close(self):
        if self.bar:
            self.bar.close()


class PromptReelApp:
    """Runs a single generation job from the command line."""

    def __init__(self, args: argparse.Namespace, config: dict):
        self.args = args
        self.config = config
        self.console = Console()

    def build_generation_config(self) -> GenerationConfig:
        return GenerationConfig(
            project_title=self.args.title,
            main_prompt=self.args.prompt,
            languages=self.args.language or ["English"],
            google_api_keys=self.args.google_keys or self.config["gemini_api_keys"],
            pexels_api_keys=self.args.pexels_keys or self.config["pexels_api_keys"],
            text_model=self.args.text_model or self.config["text_model"],
            voice_model=self.args.voice_model or self.config["voice_model"],
        )

    async def run(self) -> int:
        """Start the job, stream its events, and return the exit code."""
        generation_config = self.build_generation_config()
        self.console.print(
            Panel(
                f"[bold]{generation_config.project_title}[/bold]\n{generation_config.main_prompt}",
                title="promptreel",
                border_style="cyan",
            )
        )

        manager = JobManager(self.config)
        job_id = manager.start_job(generation_config)
        progress = StageProgressBar()
        last_event_id = 0

        try:
            while True:
                status = manager.get_status(job_id, since_id=last_event_id)
                for event in status.progress_events:
                    progress.write(f"[{event.timestamp}] {event.message}")
                    last_event_id = event.id
                progress.update(status)

                if status.is_complete or status.is_error:
                    break
                await asyncio.sleep(POLL_INTERVAL_SECONDS)
        finally:
            progress.close()
            await manager.shutdown()

        if status.is_error:
            self.console.print(f"[red]Generation failed:[/red] {status.error}")
            return 1

        self.console.print(
            Panel(f"[green]{status.result_ref}[/green]", title="Video ready", border_style="green")
        )
        return 0

    async def list_models(self) -> int:
        """Print the text and voice models the Gemini keys can use."""
        service = AIService(
            model_name=self.config["text_model"],
            timeout_seconds=self.config["ai_timeout_seconds"],
        )
        credentials = self.args.google_keys or self.config["gemini_api_keys"]
        try:
            models = await service.discover_models(credentials, KeyRotationExecutor())
        except PipelineError as e:
            self.console.print(f"[red]Could not list models:[/red] {e.message}")
            return 1

        table = Table(show_header=True, box=None, padding=(0, 2))
        table.add_column("Kind", style="cyan", no_wrap=True)
        table.add_column("Model", style="white")
        for name in models["text_models"]:
            table.add_row("text", name)
        for name in models["voice_models"]:
            table.add_row("voice", name)
        self.console.print(table)
        return 0


def main():
    """Main entry point."""
    config = load_config()

    parser = argparse.ArgumentParser(
        description="Generate a narrated stock-footage video from a prompt",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  promptreel --title "Demo" --prompt "black holes"
  promptreel --title "Ocean" --prompt "coral reefs" --language Spanish
  promptreel --list-models
        """
    )
    parser.add_argument("--title", help="Project title")
    parser.add_argument("--prompt", help="What the video is about")
    parser.add_argument(
        "--language",
        action="append",
        help="Narration language (repeatable; only the first is produced)",
    )
    parser.add_argument("--text-model", help=f"Gemini text model (default: {config['text_model']})")
    parser.add_argument("--voice-model", help=f"Gemini TTS model (default: {config['voice_model']})")
    parser.add_argument("--google-keys", help="Comma-separated Gemini API keys (default: GEMINI_API_KEYS)")
    parser.add_argument("--pexels-keys", help="Comma-separated Pexels API keys (default: PEXELS_API_KEYS)")
    parser.add_argument("--log-level", default=config["log_level"], help="Logging level")
    parser.add_argument("--json-logs", action="store_true", default=config["log_json"],
                        help="Emit JSON log lines")
    parser.add_argument("--list-models", action="store_true",
                        help="List the available Gemini models and exit")

    args = parser.parse_args()
    if not args.list_models and not (args.title and args.prompt):
        parser.error("--title and --prompt are required")
    config["log_level"] = args.log_level

    setup_logging(args.log_level, json_output=args.json_logs)

    errors = validate_config(config)
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        sys.exit(2)

    app = PromptReelApp(args, config)

    try:
        sys.exit(asyncio.run(app.list_models() if args.list_models else app.run()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
