#!/usr/bin/env python3
"""Command line entry point for reelsmith.

Usage:
    # Generate a video from a prompt
    python main.py generate "a calm forest at dawn" --duration 30 --orientation landscape

    # Download every background music track
    python main.py prefetch-music

    # Add a clip to the media library
    python main.py media-add clip.mp4 --title "Forest sunrise"
"""

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from models.generation import GenerationOptions, Orientation
from pipeline.generator import GenerationError, VideoGenerator
from services.ai_service import AIService
from services.media_library import MediaLibraryError, MediaLibraryService
from services.music_service import MOOD_TRACKS, MusicService
from services.record_store import RecordStore
from utils.config import load_config, validate_config
from utils.logging import setup_logging
from utils.progress import GenerationStage, ProgressChannel, ProgressEvent

logger = logging.getLogger(__name__)

console = Console()


async def run_generate(args: argparse.Namespace, config: dict) -> int:
    """Generate one video with a live progress bar."""
    errors = validate_config(config, needs_script=True, needs_speech=not args.no_speech)
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        return 1

    options = GenerationOptions(
        prompt=args.prompt,
        duration=args.duration,
        orientation=Orientation(args.orientation),
        visual_style=args.style,
        music_mood=None if args.no_music else args.mood,
        music_volume=args.music_volume,
        include_speech=not args.no_speech,
        language=args.language,
    )

    record_store = RecordStore(config["database_path"])
    await record_store.connect()
    generator = VideoGenerator.from_config(config, record_store)
    channel = ProgressChannel()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=100)

            def on_event(event: ProgressEvent) -> None:
                if event.stage is GenerationStage.RENDERING and event.percent is not None:
                    progress.update(task, description=event.message, completed=event.percent)
                else:
                    progress.update(task, description=event.message)
                    progress.console.print(f"[dim]{event.stage.value}[/dim] {event.message}")

            channel.subscribe(on_event)
            output = await generator.generate(options, channel=channel)

    except GenerationError as e:
        console.print(f"[red]✗ Generation failed: {e}[/red]")
        for notice in e.notices:
            console.print(f"[yellow]  ⚠ {notice}[/yellow]")
        return 1
    finally:
        await generator.close()
        await record_store.close()

    console.print(f"[green]✓ Video saved to {output}[/green]")
    final = channel.last_event
    for notice in final.data.get("notices", []) if final else []:
        console.print(f"[yellow]  ⚠ {notice}[/yellow]")
    return 0


async def run_prefetch_music(config: dict) -> int:
    """Download every mood track into the music cache."""
    service = MusicService(config["music_dir"])
    try:
        results = await service.prefetch_all()
    finally:
        await service.close()

    table = Table(title="Background music")
    table.add_column("Mood", style="cyan")
    table.add_column("Status")
    for mood in MOOD_TRACKS:
        ok = results.get(mood, False)
        table.add_row(mood, "[green]cached[/green]" if ok else "[red]failed[/red]")
    console.print(table)
    return 0 if all(results.values()) else 1


async def run_media_add(args: argparse.Namespace, config: dict) -> int:
    """Copy a local clip into the media library."""
    source = Path(args.file)
    if not source.is_file():
        console.print(f"[red]✗ File not found: {source}[/red]")
        return 1

    record_store = RecordStore(config["database_path"])
    await record_store.connect()
    ai_service = None
    if config.get("gemini_api_key"):
        ai_service = AIService(config["gemini_api_key"], config["gemini_model"])
    else:
        console.print("[yellow]⚠ GEMINI_API_KEY not set, using generic metadata[/yellow]")
    library = MediaLibraryService(record_store, config["media_dir"], ai_service=ai_service)

    try:
        # Ingest moves its input, so hand it a copy
        staged = Path(config["media_dir"]) / f".staging_{source.name}"
        await asyncio.to_thread(_copy_file, source, staged)
        with console.status(f"Analyzing {source.name}..."):
            item = await library.ingest(staged, original_name=source.name, title=args.title)
    except MediaLibraryError as e:
        staged.unlink(missing_ok=True)
        console.print(f"[red]✗ {e}[/red]")
        return 1
    finally:
        await record_store.close()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("ID", str(item.id))
    table.add_row("Title", item.title)
    table.add_row("Orientation", item.orientation.value)
    table.add_row("Duration", f"{item.duration:.1f}s")
    table.add_row("Tags", ", ".join(item.tags))
    console.print(table)
    return 0


def _copy_file(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, dest)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="reelsmith: prompt-to-short-video generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a video from a prompt")
    generate.add_argument("prompt", help="What the video is about")
    generate.add_argument("--duration", type=float, default=30, help="Target length in seconds (5-180)")
    generate.add_argument(
        "--orientation",
        choices=[o.value for o in Orientation],
        default=Orientation.LANDSCAPE.value,
    )
    generate.add_argument("--style", default="default", help="Visual style tag")
    generate.add_argument("--mood", default="ambient", help="Music mood tag")
    generate.add_argument("--music-volume", type=float, default=0.05)
    generate.add_argument("--language", choices=["en", "id"], default="en")
    generate.add_argument("--no-speech", action="store_true", help="Skip narration")
    generate.add_argument("--no-music", action="store_true", help="Skip background music")

    subparsers.add_parser("prefetch-music", help="Download all background music tracks")

    media_add = subparsers.add_parser("media-add", help="Add a clip to the media library")
    media_add.add_argument("file", help="Video file to add")
    media_add.add_argument("--title", help="Title hint for the analysis")

    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    config = load_config()
    setup_logging(config["log_level"], json_output=config["log_json"])

    if args.command == "generate":
        coro = run_generate(args, config)
    elif args.command == "prefetch-music":
        coro = run_prefetch_music(config)
    else:
        coro = run_media_add(args, config)

    try:
        sys.exit(asyncio.run(coro))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
