from __future__ import annotations

import json
import logging
import sys
from enum import StrEnum
from pathlib import Path
from typing import Any

import click
import mutagen
from rich.table import Table

from trackmeta.audiofile import open_audio_file, read_beatgrid, read_metadata
from trackmeta.config import Config
from trackmeta.console import get_console
from trackmeta.log import configure_logging
from trackmeta.model import TrackMetadata
from trackmeta.policy import format_bpm, format_replay_gain_peak, format_replay_gain_ratio


class OutputFormat(StrEnum):
    """Output format for CLI commands."""

    TEXT = "text"
    JSON = "json"


class ExitCode:
    """Standard exit codes for CLI commands."""

    SUCCESS = 0
    ERROR = 1
    NO_RESULTS = 2


def _metadata_to_dict(metadata: TrackMetadata) -> dict[str, Any]:
    result: dict[str, Any] = {
        "title": metadata.title,
        "artist": metadata.artist,
        "album": metadata.album,
        "album_artist": metadata.album_artist,
        "genre": metadata.genre,
        "comment": metadata.comment,
        "composer": metadata.composer,
        "grouping": metadata.grouping,
        "year": metadata.year,
        "track_number": metadata.track_number,
        "track_total": metadata.track_total,
        "bpm": format_bpm(metadata.bpm),
        "replay_gain": format_replay_gain_ratio(metadata.replay_gain),
        "replay_gain_peak": format_replay_gain_peak(metadata.replay_gain),
        "key": metadata.key,
        "channels": metadata.channels,
        "sample_rate": metadata.sample_rate,
        "bitrate": metadata.bitrate,
        "duration": metadata.duration.total_seconds(),
        "cover_art": None,
    }
    if cover_art := metadata.cover_art:
        width, height = cover_art.size or (0, 0)
        result["cover_art"] = {
            "mime_type": cover_art.mime_type,
            "bytes": len(cover_art.data),
            "width": width,
            "height": height,
        }
    return result


@click.group()
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration TOML file",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v for INFO, -vv for DEBUG)")
@click.pass_context
def trackmeta(ctx: click.Context, config: Path | None, output: str, verbose: int) -> None:
    """
    trackmeta: read audio file metadata across tag formats.

    Reconciles ID3v2, APEv2, Vorbis comments, MP4 atoms and RIFF INFO
    into one view, and decodes Serato beatgrids.
    """
    cfg = Config.load(config)

    # CLI flag takes precedence over the config file
    if verbose >= 2:
        log_level: int | str = logging.DEBUG
    elif verbose == 1:
        log_level = logging.INFO
    else:
        log_level = getattr(logging, cfg.logging.level.upper(), logging.WARNING)

    configure_logging(
        level=log_level,
        format_string=cfg.logging.format,
        hash_paths=cfg.logging.hash_paths,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg
    ctx.obj["output"] = OutputFormat(output)


@trackmeta.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path), required=True)
@click.pass_context
def show(ctx: click.Context, paths: tuple[Path, ...]) -> None:
    """
    Show the metadata of audio files.

    Imports every tag format the container carries, later formats
    overriding earlier ones.
    """
    logger = logging.getLogger(__name__)
    cfg: Config = ctx.obj["config"]
    output_format = ctx.obj["output"]
    console = get_console()

    results: list[dict[str, Any]] = []
    failed = False
    for path in paths:
        try:
            audio_file = open_audio_file(path)
        except (mutagen.MutagenError, OSError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            results.append({"file": str(path), "error": str(e)})
            failed = True
            continue

        metadata = read_metadata(
            audio_file,
            max_bpm=cfg.bpm.max_value,
            with_cover_art=cfg.cover_art.enabled,
        )
        result = {
            "file": str(path),
            "container": str(audio_file.family),
            "tag_formats": [str(tag_format) for tag_format in audio_file.tags],
            "metadata": _metadata_to_dict(metadata),
        }
        results.append(result)

        if output_format == OutputFormat.TEXT:
            table = Table(title=str(path), show_header=False)
            table.add_column("Field", style="bold")
            table.add_column("Value")
            table.add_row("container", result["container"])
            table.add_row("tags", ", ".join(result["tag_formats"]) or "(none)")
            for name, value in result["metadata"].items():
                if value not in ("", None, 0, 0.0):
                    table.add_row(name, str(value))
            console.print(table)

    if output_format == OutputFormat.JSON:
        click.echo(json.dumps(results, indent=2))
    elif failed:
        for result in results:
            if "error" in result:
                console.print(f"[red]✘ {result['file']}: {result['error']}[/red]")

    if failed:
        sys.exit(ExitCode.ERROR)
    sys.exit(ExitCode.SUCCESS if results else ExitCode.NO_RESULTS)


@trackmeta.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--beats", is_flag=True, help="Also list the beat positions")
@click.pass_context
def beatgrid(ctx: click.Context, path: Path, beats: bool) -> None:
    """Show the Serato beatgrid markers of an audio file."""
    output_format = ctx.obj["output"]
    console = get_console()

    try:
        audio_file = open_audio_file(path)
    except (mutagen.MutagenError, OSError) as e:
        click.echo(f"✘ {path}: {e}", err=True)
        sys.exit(ExitCode.ERROR)

    grid = read_beatgrid(audio_file)
    if grid is None or grid.is_empty():
        if output_format == OutputFormat.JSON:
            click.echo(json.dumps({"file": str(path), "markers": []}, indent=2))
        else:
            console.print(f"No beatgrid in {path}")
        sys.exit(ExitCode.NO_RESULTS)

    markers: list[dict[str, Any]] = [
        {"position": marker.position, "beats_till_next_marker": marker.beats_till_next_marker}
        for marker in grid.non_terminal_markers
    ]
    if grid.terminal_marker is not None:
        markers.append(
            {"position": grid.terminal_marker.position, "bpm": grid.terminal_marker.bpm}
        )
    positions: list[float] = []
    if beats:
        length = audio_file.info.length if audio_file.info is not None else 0.0
        positions = grid.beat_positions(length)

    if output_format == OutputFormat.JSON:
        result: dict[str, Any] = {"file": str(path), "markers": markers, "footer": grid.footer}
        if beats:
            result["beats"] = positions
        click.echo(json.dumps(result, indent=2))
    else:
        table = Table(title=str(path))
        table.add_column("#", justify="right")
        table.add_column("Position (s)", justify="right")
        table.add_column("Beats / BPM", justify="right")
        for index, marker in enumerate(markers, start=1):
            tempo = marker.get("bpm", marker.get("beats_till_next_marker"))
            table.add_row(str(index), f"{marker['position']:.3f}", f"{tempo:g}")
        console.print(table)
        if beats:
            console.print(f"{len(positions)} beats")

    sys.exit(ExitCode.SUCCESS)


def main() -> None:
    trackmeta()


if __name__ == "__main__":
    main()
