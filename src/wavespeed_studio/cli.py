from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from .config import AppConfig, load_config
from .encoder import load_input_image
from .errors import WaveSpeedError
from .jobs.engine import GenerationEngine
from .jobs.progress import ProgressBoard, ProgressEvent
from .output.store import ArtifactStore
from .tools import (
    KLING,
    KLING_DURATIONS,
    SEEDREAM,
    ToolPreset,
    build_kling_request,
    build_seedream_request,
)
from .types import Artifact, GenerationRequest


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run WaveSpeed image and video generation tools."
    )
    parser.add_argument(
        "--dotenv",
        type=Path,
        default=None,
        help="Optional path to a .env file containing the WaveSpeed API key.",
    )
    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="WaveSpeed API key (overrides WAVESPEED_API_KEY).",
    )
    parser.add_argument(
        "--batch-name",
        type=str,
        default=None,
        help="Output subdirectory name (defaults to the tool name plus a timestamp).",
    )
    parser.add_argument(
        "--estimate-only",
        action="store_true",
        help="Print the projected cost and exit without submitting.",
    )
    parser.add_argument(
        "--max-attempts",
        type=_positive_int,
        default=None,
        help="Status queries per job before giving up (overrides WAVESPEED_MAX_POLL_ATTEMPTS and the tool default).",
    )
    parser.add_argument(
        "--show-json",
        action="store_true",
        help="Print the last raw status payload of every job.",
    )
    subparsers = parser.add_subparsers(dest="tool", required=True)

    seedream = subparsers.add_parser("seedream", help=SEEDREAM.title)
    seedream.add_argument("prompt", help="Edit instruction.")
    seedream.add_argument(
        "--image",
        dest="images",
        type=Path,
        action="append",
        required=True,
        help="Input image; repeat for multiple references.",
    )
    seedream.add_argument("--width", type=int, default=1024)
    seedream.add_argument("--height", type=int, default=1024)
    seedream.add_argument(
        "--max-images",
        type=int,
        default=1,
        help="Number of independent variants to generate (1-4).",
    )

    kling = subparsers.add_parser("kling", help=KLING.title)
    kling.add_argument("prompt", help="Motion description.")
    kling.add_argument("--image", type=Path, required=True, help="Start frame image.")
    kling.add_argument("--negative-prompt", type=str, default="")
    kling.add_argument("--duration", type=int, choices=KLING_DURATIONS, default=5)
    kling.add_argument("--guidance-scale", type=float, default=0.5)

    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> tuple[ToolPreset, GenerationRequest, dict[str, Any]]:
    """Turn parsed arguments into a validated request plus its pricing parameters."""
    if args.tool == "seedream":
        images = [load_input_image(path) for path in args.images]
        request = build_seedream_request(
            args.prompt,
            images,
            width=args.width,
            height=args.height,
            max_images=args.max_images,
        )
        return SEEDREAM, request, {"artifact_count": args.max_images}

    request = build_kling_request(
        args.prompt,
        load_input_image(args.image),
        negative_prompt=args.negative_prompt,
        duration=args.duration,
        guidance_scale=args.guidance_scale,
    )
    return KLING, request, {"duration": args.duration}


def resolve_max_attempts(args: argparse.Namespace, config: AppConfig, preset: ToolPreset) -> int:
    """Command-line flag, then an explicitly configured budget, then the tool's own."""
    if args.max_attempts is not None:
        return args.max_attempts
    if "max_poll_attempts" in config.wavespeed.model_fields_set:
        return config.wavespeed.max_poll_attempts
    return preset.max_poll_attempts


async def run_generation(
    config: AppConfig,
    preset: ToolPreset,
    request: GenerationRequest,
    credential: str | None,
    board: ProgressBoard,
    console: Console,
    max_attempts: int,
) -> list[Artifact]:
    with Progress(
        SpinnerColumn(),
        TextColumn(f"[bold]{preset.title}[/bold]"),
        TextColumn("{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        rows: dict[int, TaskID] = {}

        def on_progress(event: ProgressEvent) -> None:
            board(event)
            row = rows.get(event.index)
            if row is None:
                row = rows[event.index] = progress.add_task("queued", total=None)
            description = f"#{event.index + 1} {event.phase.value}"
            if event.cost is not None:
                description += f" (${event.cost})"
            progress.update(row, description=description)

        async with GenerationEngine(config.wavespeed) as engine:
            result = await engine.submit_and_await(
                request,
                credential,
                on_progress=on_progress,
                max_attempts=max_attempts,
            )

    return result if isinstance(result, list) else [result]


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    console = Console()

    try:
        config = load_config(args.dotenv)
    except RuntimeError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    board = ProgressBoard()
    try:
        preset, request, pricing = build_request(args)
        console.print(f"Your request will cost [bold]${preset.estimate(pricing)}[/bold] per run.")
        if args.estimate_only:
            return

        artifacts = asyncio.run(
            run_generation(
                config,
                preset,
                request,
                args.api_key,
                board,
                console,
                resolve_max_attempts(args, config, preset),
            )
        )

        batch_name = args.batch_name or f"{preset.name}-{datetime.now():%Y%m%d-%H%M%S}"
        with ArtifactStore(config.output.root_dir, batch_name) as store:
            for index, artifact in enumerate(artifacts):
                latest = board.latest(index)
                path = store.save(
                    artifact,
                    tool=preset.name,
                    index=index,
                    metadata={
                        "endpoint": request.endpoint,
                        "job_id": latest.job_id if latest else None,
                        "elapsed_ms": latest.elapsed_ms if latest else None,
                        "prompt": request.prompt,
                        **request.params,
                    },
                    include_metadata=config.output.include_metadata,
                )
                console.print(f"[green]Saved[/green] {path}")
    except WaveSpeedError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled; pending jobs were abandoned.[/yellow]")
        raise SystemExit(130)
    finally:
        if args.show_json:
            for event in board.events():
                console.rule(f"Job {event.index + 1}")
                console.print_json(data=event.raw or {}, default=str)

    reported = board.reported_cost()
    if reported is not None:
        console.print(f"Reported cost: [bold]${reported}[/bold]")


if __name__ == "__main__":
    main()
