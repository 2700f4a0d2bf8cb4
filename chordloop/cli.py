"""Command-line interface for chordloop.

Provides commands for:
- chords: Show the pitch classes of a progression
- tap: Calibrate a loop from tap timestamps
- onsets: Calibrate a loop from onset times
- listen: Calibrate a loop by listening to a recorded backing track
- position: Show the active chord at given elapsed times
"""

import typer
from pathlib import Path
from typing import List, Optional
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="chordloop",
    help="Keep a chord indicator in sync with a looping backing track",
    rich_markup_mode="markdown",
)
console = Console()


def _parse_times(text: str) -> List[float]:
    """Parse a comma- or space-separated list of milliseconds."""
    values = []
    for part in text.replace(",", " ").split():
        try:
            values.append(float(part))
        except ValueError:
            console.print(f"[red]Error: Not a number: {part!r}[/red]")
            raise typer.Exit(1)
    return values


def _chord_tokens(progression: str) -> List[str]:
    from .inference import parse_chord_sequence

    tokens = parse_chord_sequence(progression)
    if not tokens:
        console.print("[red]Error: Progression has no chords[/red]")
        raise typer.Exit(1)
    return tokens


def _save_model(model, store_path: Optional[Path], key: Optional[str], title: str) -> None:
    from .output import LoopSyncConfig, LoopSyncStore

    if store_path is None:
        return
    if not key:
        console.print("[red]Error: --key is required with --store[/red]")
        raise typer.Exit(1)
    store = LoopSyncStore(store_path)
    store.put(LoopSyncConfig(progression_key=key, model=model, progression_title=title))
    console.print(f"[green]Saved[/green] {key} -> {store_path}")


def _report_model(model, tokens: List[str], json_output: bool, extra: Optional[dict] = None) -> None:
    if json_output:
        result = {"chords": tokens, **model.to_dict()}
        if extra:
            result.update(extra)
        console.print_json(data=result)
        return

    console.print(f"  Loop duration: {model.loop_duration_ms / 1000:.3f}s")
    _show_offsets_table(tokens, model)


@app.command()
def chords(
    progression: str = typer.Argument(..., help='Progression text, e.g. "C Am | F G"'),
):
    """Show chord tokens and their pitch classes."""
    from .inference import parse_chord_symbol, InvalidChordSymbol
    from .core import PITCH_NAMES

    tokens = _chord_tokens(progression)

    table = Table(title="Progression")
    table.add_column("#", style="dim")
    table.add_column("Chord", style="cyan")
    table.add_column("Pitch classes", style="green")
    table.add_column("Notes", style="yellow")

    for i, token in enumerate(tokens, start=1):
        try:
            pcs = parse_chord_symbol(token).pitch_classes
        except InvalidChordSymbol:
            table.add_row(str(i), token, "[red]unknown[/red]", "")
            continue
        table.add_row(
            str(i),
            token,
            " ".join(str(pc) for pc in pcs),
            " ".join(PITCH_NAMES[pc] for pc in pcs),
        )

    console.print(table)


@app.command()
def tap(
    progression: str = typer.Argument(..., help="Progression text"),
    taps: str = typer.Option(
        ..., "--taps", help="Tap times in ms; the first tap starts the capture"
    ),
    late_start: bool = typer.Option(
        False, "--late-start", help="The loop does not begin on chord 1 (one extra leading tap)"
    ),
    store: Optional[Path] = typer.Option(None, "--store", help="Save to this JSON store"),
    key: Optional[str] = typer.Option(None, "--key", help="Store key for the progression"),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
):
    """Calibrate a loop from tap timestamps.

    **Examples:**

        chordloop tap "C Am F G" --taps 0,1000,2000,3000,4000
    """
    from .capture import ManualCaptureSession

    tokens = _chord_tokens(progression)
    times = _parse_times(taps)
    if not times:
        console.print("[red]Error: No taps given[/red]")
        raise typer.Exit(1)

    session = ManualCaptureSession(len(tokens), started_with_first_chord=not late_start)
    session.start(times[0])
    for t in times[1:]:
        session.tap(t)

    if session.model is None:
        console.print(
            f"[yellow]Capture incomplete: {len(session.fenceposts)}/"
            f"{session.required_taps} taps[/yellow]"
        )
        raise typer.Exit(1)

    _report_model(session.model, tokens, json_output)
    _save_model(session.model, store, key, progression)


@app.command()
def onsets(
    progression: str = typer.Argument(..., help="Progression text"),
    onset_times: str = typer.Option(..., "--onsets", help="Onset times in ms"),
    late_start: bool = typer.Option(
        False, "--late-start", help="The loop does not begin on chord 1"
    ),
    store: Optional[Path] = typer.Option(None, "--store", help="Save to this JSON store"),
    key: Optional[str] = typer.Option(None, "--key", help="Store key for the progression"),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
):
    """Calibrate a loop from onset times (one onset per chord change)."""
    from .inference import detect_loop_sync_from_onsets

    tokens = _chord_tokens(progression)
    result = detect_loop_sync_from_onsets(
        _parse_times(onset_times), len(tokens), started_with_first_chord=not late_start
    )
    if result is None:
        console.print("[yellow]Not enough usable onsets to calibrate the loop[/yellow]")
        raise typer.Exit(1)

    model = result.to_model(started_with_first_chord=not late_start)
    _report_model(model, tokens, json_output, {"onset_count": result.onset_count})
    _save_model(model, store, key, progression)


@app.command()
def listen(
    audio_file: Path = typer.Argument(..., help="Recorded backing track (WAV, MP3, ...)"),
    progression: str = typer.Argument(..., help="Progression text"),
    guide_ms: float = typer.Option(
        0.0, "--guide-ms", help="Loop length from rhythmic taps, ms (0 = unknown)"
    ),
    guide_taps: Optional[str] = typer.Option(
        None, "--guide-taps", help="Two tap times in ms, at the loop start and at its restart"
    ),
    full: bool = typer.Option(
        False, "--full", help="Listen to the whole file instead of stopping once calibrated"
    ),
    store: Optional[Path] = typer.Option(None, "--store", help="Save to this JSON store"),
    key: Optional[str] = typer.Option(None, "--key", help="Store key for the progression"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show state events"),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
):
    """Calibrate a loop by listening to a recorded backing track."""
    from .inference import resolve_pitch_classes
    from .capture import AutoSyncSession, AudioAcquisitionError, LoopMeasurement
    from .input import FileAudioSource

    tokens = _chord_tokens(progression)
    if guide_taps is not None:
        times = _parse_times(guide_taps)
        if len(times) != 2:
            console.print("[red]Error: --guide-taps needs exactly two tap times[/red]")
            raise typer.Exit(1)
        measurement = LoopMeasurement()
        measurement.start(times[0])
        guide_ms = measurement.stop(times[1])
        if not json_output:
            console.print(f"  Guide loop: {guide_ms / 1000:.3f}s")
    if not json_output:
        console.print(f"[blue]Listening:[/blue] {audio_file}")

    session = AutoSyncSession(
        [resolve_pitch_classes(t) for t in tokens],
        source=FileAudioSource(audio_file),
        guide_loop_duration_ms=guide_ms if guide_ms > 0 else None,
    )

    try:
        model = session.run(stop_when_ready=not full)
    except AudioAcquisitionError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if verbose and not json_output:
        _show_events_table(session.events, tokens)

    diagnostics = session.diagnostics()
    if model is None:
        console.print(f"[yellow]{diagnostics.message}[/yellow]")
        raise typer.Exit(1)

    _report_model(
        model,
        tokens,
        json_output,
        {"state_events": diagnostics.state_events, "onset_count": diagnostics.onset_count},
    )
    _save_model(model, store, key, progression)


@app.command()
def position(
    progression: str = typer.Argument(..., help="Progression text"),
    store: Path = typer.Option(..., "--store", help="JSON store holding the calibration"),
    key: str = typer.Option(..., "--key", help="Store key for the progression"),
    at: str = typer.Option(..., "--at", help="Elapsed playback times in ms"),
):
    """Show the active chord at elapsed playback times."""
    from .output import LoopSyncStore
    from .playback import PlaybackTransport

    tokens = _chord_tokens(progression)
    config = LoopSyncStore(store).get(key)
    if config is None:
        console.print(f"[red]Error: No calibration stored for {key!r}[/red]")
        raise typer.Exit(1)
    if config.model.chord_count != len(tokens):
        console.print(
            f"[yellow]Warning: calibration has {config.model.chord_count} chords, "
            f"progression has {len(tokens)}[/yellow]"
        )

    transport = PlaybackTransport(config.model)
    transport.play(now_ms=0.0)

    table = Table(title=f"Playback: {config.label or key}")
    table.add_column("Elapsed (ms)", style="yellow")
    table.add_column("Chord", style="cyan")
    table.add_column("Progress", style="magenta")

    for t in _parse_times(at):
        pos = transport.position(now_ms=t)
        chord = tokens[pos.chord_index] if pos.chord_index < len(tokens) else "?"
        table.add_row(f"{t:.0f}", chord, f"{pos.progress:.3f}")

    console.print(table)


def _show_offsets_table(tokens, model):
    """Display chord offsets in a table."""
    table = Table(title="Chord Offsets")
    table.add_column("Chord", style="cyan")
    table.add_column("Offset (ms)", style="green")
    table.add_column("Length (ms)", style="yellow")

    offsets = list(model.chord_offsets_ms)
    ends = offsets[1:] + [offsets[0] + model.loop_duration_ms]
    for i, (start, end) in enumerate(zip(offsets, ends)):
        chord = tokens[i] if i < len(tokens) else "?"
        table.add_row(chord, f"{start:.0f}", f"{end - start:.0f}")

    console.print(table)


def _show_events_table(events, tokens):
    """Display committed chord-state events in a table."""
    table = Table(title="Chord Changes")
    table.add_column("Time (s)", style="yellow")
    table.add_column("Chord", style="cyan")
    table.add_column("Confidence", style="magenta")

    for event in events:
        table.add_row(
            f"{event.time_ms / 1000:.2f}",
            tokens[event.state_index],
            f"{event.confidence:.2f}",
        )

    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
