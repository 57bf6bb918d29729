"""StrokeRoutines CLI — the main entry point for all operations.

Usage:
    stroke-routines serve       — Start the HTTP/WebSocket server
    stroke-routines list        — List stored routines
    stroke-routines show        — Show one routine
    stroke-routines delete      — Delete a routine
    stroke-routines toggle      — Enable/disable a routine
    stroke-routines run         — Run a routine's commands now
    stroke-routines recognize   — Recognize a stroke from a JSON file
    stroke-routines validate    — Check a stroke against registered gestures
    stroke-routines blocks      — List predefined command blocks
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from stroke_routines.blocks import blocks_by_category
from stroke_routines.config import DEFAULT_CONFIG_PATH, EngineConfig, load_config
from stroke_routines.runtime import Runtime

app = typer.Typer(
    name="stroke-routines",
    help="✏️  Draw a shape, run a routine.",
    add_completion=False,
)


def _runtime(config_path: Optional[str], routines: Optional[str]) -> Runtime:
    config = load_config(config_path or DEFAULT_CONFIG_PATH)
    if routines:
        config.routines_file = routines
    return Runtime.build(config)


def _load_stroke(path: str) -> list:
    stroke_path = Path(path)
    if not stroke_path.exists():
        typer.echo(f"❌ Stroke file not found: {path}", err=True)
        raise typer.Exit(1)
    data = json.loads(stroke_path.read_text())
    # Either a bare point list or {"points": [...]}
    return data["points"] if isinstance(data, dict) else data


ConfigOption = typer.Option(None, "--config", help="Path to config JSON")
RoutinesOption = typer.Option(None, "--routines", help="Path to routines YAML")


@app.callback()
def main_options(
    log_level: str = typer.Option("warning", help="Log level"),
):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """Start the HTTP/WebSocket server."""
    import uvicorn
    from stroke_routines.server import app as fastapi_app, state

    runtime = _runtime(config_path, routines)
    state.configure(runtime)
    config: EngineConfig = runtime.config

    typer.echo(f"📦 Loaded {len(runtime.store)} routines from {config.routines_file}")
    typer.echo(f"🚀 Starting StrokeRoutines server on {host or config.host}:{port or config.port}")
    uvicorn.run(
        fastapi_app,
        host=host or config.host,
        port=port or config.port,
        log_level=config.log_level,
    )


@app.command("list")
def list_routines(
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """List stored routines."""
    runtime = _runtime(config_path, routines)
    if not len(runtime.store):
        typer.echo("No routines defined.")
        return
    for routine in runtime.store.get_all().values():
        status = "✅" if routine.is_enabled else "⏸️ "
        typer.echo(
            f"{status} {routine.name:20s} {len(routine.commands)} commands, "
            f"{len(routine.samples)} samples, delay {routine.delay_ms}ms"
        )


@app.command()
def show(
    name: str = typer.Argument(..., help="Routine name"),
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """Show a routine's commands."""
    runtime = _runtime(config_path, routines)
    routine = runtime.store.get(name)
    if routine is None:
        typer.echo(f"❌ Routine not found: {name}", err=True)
        raise typer.Exit(1)
    typer.echo(f"{routine.name} ({'enabled' if routine.is_enabled else 'disabled'})")
    for i, command in enumerate(routine.commands, 1):
        typer.echo(f"   {i}. [{command.type.value}] {command.display_label}")


@app.command()
def delete(
    name: str = typer.Argument(..., help="Routine name"),
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """Delete a routine."""
    runtime = _runtime(config_path, routines)
    if not runtime.store.delete(name):
        typer.echo(f"❌ Routine not found: {name}", err=True)
        raise typer.Exit(1)
    typer.echo(f"🗑️  Deleted {name}")


@app.command()
def toggle(
    name: str = typer.Argument(..., help="Routine name"),
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """Enable or disable a routine."""
    runtime = _runtime(config_path, routines)
    if not runtime.store.toggle(name):
        typer.echo(f"❌ Routine not found: {name}", err=True)
        raise typer.Exit(1)
    enabled = runtime.store.get(name).is_enabled
    typer.echo(f"{name} is now {'enabled' if enabled else 'disabled'}")


async def _run_and_close(runtime: Runtime, coro):
    try:
        return await coro
    finally:
        close = getattr(runtime.executor.shell, "close", None)
        if close is not None:
            await close()


@app.command()
def run(
    name: str = typer.Argument(..., help="Routine name"),
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """Run a routine's commands immediately."""
    runtime = _runtime(config_path, routines)
    routine = runtime.store.get(name)
    if routine is None:
        typer.echo(f"❌ Routine not found: {name}", err=True)
        raise typer.Exit(1)

    report = asyncio.run(_run_and_close(runtime, runtime.executor.execute_routine(routine)))
    typer.echo(f"▶️  {name}: {report.success_count} ok, {report.failed_count} failed")
    for failure in report.failures:
        typer.echo(f"   ✗ {failure.label}: {failure.error}")
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def recognize(
    stroke_file: str = typer.Argument(..., help="JSON file with the stroke points"),
    execute: bool = typer.Option(False, help="Run the matched routine"),
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """Recognize a stroke against the enabled routines."""
    runtime = _runtime(config_path, routines)
    points = _load_stroke(stroke_file)

    if execute:
        result = asyncio.run(_run_and_close(runtime, runtime.engine.recognize_and_execute(points)))
    else:
        result = runtime.engine.recognize(points)

    if result.recognized:
        typer.echo(f"✅ {result.matched_name} ({result.score:.0%})")
    else:
        closest = f" — closest: {result.matched_name}" if result.matched_name else ""
        typer.echo(f"❌ Not recognized ({result.score:.0%}){closest}")
        raise typer.Exit(1)


@app.command()
def validate(
    stroke_file: str = typer.Argument(..., help="JSON file with the stroke points"),
    exclude: Optional[str] = typer.Option(None, help="Routine being edited"),
    config_path: Optional[str] = ConfigOption,
    routines: Optional[str] = RoutinesOption,
):
    """Check whether a stroke may be registered as a new gesture."""
    runtime = _runtime(config_path, routines)
    points = _load_stroke(stroke_file)
    result = runtime.validator.validate(points, runtime.store.get_all_gestures(), exclude)
    if result.accepted:
        typer.echo(f"✅ OK ({result.score:.0%} closest similarity)")
    else:
        typer.echo(f"❌ {result.message}")
        raise typer.Exit(1)


@app.command()
def blocks():
    """List predefined command blocks by category."""
    for category, entries in blocks_by_category().items():
        typer.echo(f"\n📂 {category}")
        for block in entries:
            typer.echo(f"   {block.id:16s} {block.label:22s} {block.command}")


def main():
    app()


if __name__ == "__main__":
    main()
