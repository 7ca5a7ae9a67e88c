#!/usr/bin/env python3
"""
Rendiff HLS CLI - package a video into an HLS adaptive bitrate ladder

Website: https://rendiff.dev
GitHub: https://github.com/rendiffdev/ffmpeg-api
Contact: dev@rendiff.dev
"""
import asyncio
import shlex
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from hls_packager.config import get_settings
from hls_packager.errors import PackagingError
from hls_packager.models import RenditionLadder
from hls_packager.processors.streaming import HLSPackager
from hls_packager.utils.ffmpeg import scaled_dimensions
from hls_packager.utils.logger import setup_logging

console = Console()


def _load_ladder(ladder_file: Optional[str], audio_bitrate: Optional[int]) -> Optional[RenditionLadder]:
    if not ladder_file:
        return None
    ladder = RenditionLadder.from_file(ladder_file)
    if audio_bitrate is not None:
        ladder = ladder.with_audio_bitrate(audio_bitrate)
    return ladder


def _fail(ctx: click.Context, error: PackagingError) -> None:
    console.print(f"[red]✗ {error.code}: {error.message}[/red]")
    ctx.exit(1)


ladder_option = click.option('--ladder', 'ladder_file', type=click.Path(exists=True, dir_okay=False),
                             help='YAML or JSON rendition ladder')
audio_option = click.option('--audio-bitrate', type=click.IntRange(min=1),
                            help='Shared audio bitrate in kbit/s')


@click.group()
@click.option('--quiet', is_flag=True, help='Do not echo FFmpeg output')
@click.pass_context
def cli(ctx, quiet):
    """Rendiff HLS packaging tool."""
    settings = get_settings()
    if quiet:
        settings = settings.model_copy(update={"FORWARD_ENGINE_OUTPUT": False})
    setup_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj['packager'] = HLSPackager(settings)


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.argument('output_dir', type=click.Path(file_okay=False))
@ladder_option
@audio_option
@click.option('--timeout', type=click.FloatRange(min=0, min_open=True),
              help='Terminate FFmpeg after this many seconds')
@click.pass_context
def package(ctx, input_path, output_dir, ladder_file, audio_bitrate, timeout):
    """Transcode INPUT_PATH into an HLS package in OUTPUT_DIR."""
    packager: HLSPackager = ctx.obj['packager']
    try:
        ladder = _load_ladder(ladder_file, audio_bitrate)
        result = asyncio.run(packager.package(
            input_path, output_dir,
            ladder=ladder,
            audio_bitrate_kbps=audio_bitrate,
            timeout=timeout,
        ))
    except PackagingError as e:
        _fail(ctx, e)
        return

    table = Table(title=f"HLS package: {result.base_name}")
    table.add_column("Rendition", style="cyan")
    table.add_column("Resolution")
    table.add_column("Bandwidth", justify="right")
    table.add_column("Playlist")
    for rendition in result.renditions:
        table.add_row(rendition.label, rendition.resolution, str(rendition.bandwidth),
                      rendition.playlist.name)
    console.print(table)
    console.print(f"[green]✓ Master playlist: {result.master_playlist}[/green]")


@cli.command()
@click.argument('input_path', type=click.Path(dir_okay=False))
@click.argument('output_dir', type=click.Path(file_okay=False))
@ladder_option
@audio_option
@click.option('--probe', is_flag=True, help='Probe the source to show output dimensions')
@click.pass_context
def plan(ctx, input_path, output_dir, ladder_file, audio_bitrate, probe):
    """Print the FFmpeg command without running it."""
    packager: HLSPackager = ctx.obj['packager']
    try:
        ladder = _load_ladder(ladder_file, audio_bitrate)
        job = packager.create_job(input_path, output_dir, ladder=ladder, audio_bitrate_kbps=audio_bitrate)
        cmd = packager.plan(job)
        source_size = None
        if probe:
            source_size = packager.prober.video_size(asyncio.run(packager.prober.probe(input_path)))
    except PackagingError as e:
        _fail(ctx, e)
        return

    table = Table(title=f"Rendition ladder: {job.base_name}")
    table.add_column("Rendition", style="cyan")
    table.add_column("Target")
    if source_size:
        table.add_column("Output")
    table.add_column("Video", justify="right")
    table.add_column("Bandwidth", justify="right")
    for rendition in job.renditions:
        row = [rendition.label, rendition.resolution]
        if source_size:
            width, height = scaled_dimensions(*source_size, rendition.width, rendition.height)
            row.append(f"{width}x{height}")
        row.extend([f"{rendition.video_bitrate_kbps}k", str(rendition.bandwidth(job.audio_bitrate_kbps))])
        table.add_row(*row)
    console.print(table)
    console.print(shlex.join(cmd), soft_wrap=True, markup=False, highlight=False)


@cli.command()
@click.argument('input_path', type=click.Path(dir_okay=False))
@click.argument('output_dir', type=click.Path(exists=True, file_okay=False))
@ladder_option
@audio_option
@click.pass_context
def manifest(ctx, input_path, output_dir, ladder_file, audio_bitrate):
    """Rewrite only the master playlist of an encoded package."""
    packager: HLSPackager = ctx.obj['packager']
    try:
        ladder = _load_ladder(ladder_file, audio_bitrate)
        job = packager.create_job(input_path, output_dir, ladder=ladder, audio_bitrate_kbps=audio_bitrate)
        report = packager.validate_package(job)
        missing = [p for p in report['missing_files'] if p != str(job.master_playlist_path)]
        if missing:
            console.print("[yellow]Rendition playlists missing, not writing master:[/yellow]")
            for path in missing:
                console.print(f"  {path}")
            ctx.exit(1)
        path = asyncio.run(packager.write_manifest(job))
    except PackagingError as e:
        _fail(ctx, e)
        return

    console.print(f"[green]✓ Master playlist: {path}[/green]")


@cli.command()
@click.argument('input_path', type=click.Path(dir_okay=False))
@click.argument('output_dir', type=click.Path(file_okay=False))
@ladder_option
@click.pass_context
def validate(ctx, input_path, output_dir, ladder_file):
    """Check that a package is complete."""
    packager: HLSPackager = ctx.obj['packager']
    try:
        ladder = _load_ladder(ladder_file, None)
        job = packager.create_job(input_path, output_dir, ladder=ladder)
    except PackagingError as e:
        _fail(ctx, e)
        return

    report = packager.validate_package(job)
    console.print(f"Playlists found: {len(report['playlists_found'])}/{len(job.renditions)}")
    console.print(f"Segments found: {len(report['segments'])}")
    for path in report['missing_files']:
        console.print(f"[red]  missing: {path}[/red]")

    if report['valid']:
        console.print("[green]✓ Package is complete[/green]")
    else:
        console.print("[red]✗ Package is incomplete[/red]")
        ctx.exit(1)


def main():
    """Main entry point for Rendiff HLS CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
