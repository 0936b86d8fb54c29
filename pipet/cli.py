"""CLI application — Click commands for looking after the pet locally.

Each command loads the saved state, does its one thing, and saves it back.
A state file that exists but cannot be read is fatal; a missing one means a
brand-new pet.
"""

from __future__ import annotations

import asyncio
import functools
import json as json_mod
from dataclasses import asdict
from typing import Any, Callable

import click
from rich.console import Console
from rich.table import Table

from pipet.api.provider import ProviderError
from pipet.brain import create_brain
from pipet.config import PipetConfig
from pipet.heartbeat import create_autosave
from pipet.main import configure_logging
from pipet.pet.mood import distress_reason
from pipet.pet.state import PersistenceError, PetSnapshot, PetState


def async_cmd(func):
    """Decorator to run an async Click command via asyncio.run()."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(func(*args, **kwargs))

    return wrapper


def _console(ctx: click.Context) -> Console:
    return Console(no_color=ctx.obj.get("no_color", False))


def _load_state(config: PipetConfig) -> PetState:
    try:
        return PetState.load(config.pet.state_path)
    except PersistenceError as e:
        raise click.ClickException(str(e)) from e


def _save_state(state: PetState, config: PipetConfig) -> None:
    try:
        state.save(config.pet.state_path)
    except PersistenceError as e:
        raise click.ClickException(str(e)) from e


def _render_status(console: Console, snap: PetSnapshot) -> None:
    title = f"{snap.name or 'Unnamed pet'} the {snap.species_id or 'creature'}"
    table = Table(title=title, show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("Mood", snap.mood.value)
    table.add_row("Alive", "yes" if snap.is_alive else "no")
    table.add_row("Age", f"{snap.age_days:.1f} days")
    for label, value in (
        ("Hunger", snap.hunger),
        ("Happiness", snap.happiness),
        ("Energy", snap.energy),
        ("Cleanliness", snap.cleanliness),
        ("Bond", snap.bond),
    ):
        table.add_row(label, f"{value:.0f}/100")
    table.add_row("CPU", f"{snap.cpu_percent:.1f}%")
    table.add_row("Memory", f"{snap.mem_percent:.1f}%")
    table.add_row("Disk", f"{snap.disk_percent:.1f}%")
    table.add_row("Temperature", f"{snap.temp_c:.1f}°C")
    table.add_row("Uptime", f"{snap.uptime_days:.1f} days")
    console.print(table)

    reason = distress_reason(snap)
    if reason and snap.is_alive:
        console.print(f"[bold red]{reason}[/bold red]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, no_color: bool) -> None:
    """Pipet - a companion pet that lives in your machine."""
    configure_logging(verbose=verbose)
    ctx.ensure_object(dict)
    ctx.obj["no_color"] = no_color
    ctx.obj.setdefault("config", PipetConfig())


@cli.command("status")
@click.option("--json", "json_output", is_flag=True, help="JSON output")
@click.pass_context
def status_cmd(ctx: click.Context, json_output: bool) -> None:
    """Show the pet's vitals, mood and host metrics."""
    snap = _load_state(ctx.obj["config"]).snapshot()
    if json_output:
        data = asdict(snap)
        data["mood"] = snap.mood.value
        click.echo(json_mod.dumps(data, indent=2))
        return
    _render_status(_console(ctx), snap)


def _interaction(name: str, help_text: str, action: Callable[[PetState], None]) -> click.Command:
    @click.pass_context
    def command(ctx: click.Context) -> None:
        config = ctx.obj["config"]
        state = _load_state(config)
        action(state)
        _save_state(state, config)
        snap = state.snapshot()
        _console(ctx).print(f"{snap.name or 'Your pet'} is now [bold]{snap.mood.value}[/bold].")

    return click.command(name, help=help_text)(command)


cli.add_command(_interaction("feed", "Feed the pet.", PetState.feed))
cli.add_command(_interaction("play", "Play with the pet.", PetState.play))
cli.add_command(_interaction("pet", "Give the pet some affection.", PetState.pet))
cli.add_command(_interaction("revive", "Bring the pet back to life.", PetState.revive))
cli.add_command(_interaction("kill", "End the pet's life.", PetState.kill))


@cli.command("name")
@click.argument("name")
@click.argument("species", default="octopus")
@click.pass_context
def name_cmd(ctx: click.Context, name: str, species: str) -> None:
    """Name the pet and start its life over."""
    config = ctx.obj["config"]
    state = _load_state(config)
    state.set_identity(name, species)
    _save_state(state, config)
    _console(ctx).print(f"Say hello to [bold]{name}[/bold] the {species}!")


@cli.command("ask")
@click.argument("message", nargs=-1, required=True)
@click.pass_context
@async_cmd
async def ask_cmd(ctx: click.Context, message: tuple[str, ...]) -> None:
    """Talk to the pet. It may run shell commands to answer."""
    config = ctx.obj["config"]
    state = _load_state(config)
    brain = create_brain(config, state)
    if brain is None:
        raise click.ClickException(
            "No AI provider configured. Set ANTHROPIC_API_KEY or GOOGLE_API_KEY."
        )

    state.touch_interaction()
    autosave = create_autosave(config, state)
    await autosave.start()
    try:
        reply = await brain.ask(" ".join(message))
    except ProviderError as e:
        raise click.ClickException(f"The pet couldn't think: {e}") from e
    finally:
        if not await autosave.stop():
            raise click.ClickException(f"Could not save the pet to {config.pet.state_path}")

    _console(ctx).print(reply)
