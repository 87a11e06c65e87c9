"""
make2manage Command-Line Interface.

Runs sessions headless, checks level files and inspects saved sessions.
"""

import sys
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from make2manage import __version__
from make2manage.config.schema import EngineConfig, apply_difficulty, get_default_config
from make2manage.engine.dispatch import POLICY_DESCRIPTIONS, POLICY_INSIGHTS
from make2manage.engine.errors import SimulationError
from make2manage.engine.performance import PerformanceEngine
from make2manage.engine.simulation import Simulation
from make2manage.engine.validation import validate_schedule
from make2manage.io import (
    LevelFormatError,
    LoadError,
    SaveError,
    autosave,
    list_saves,
    load_level,
    load_session,
    save_session,
)
from make2manage.logging_conf import configure_logging
from make2manage.models.departments import DispatchPolicy
from make2manage.models.game import GameState, SessionStatus
from make2manage.models.orders import MS_PER_MINUTE
from make2manage.models.settings import (
    ComplexityLevel,
    Difficulty,
    GameSettings,
    GenerationRate,
    OverflowPolicy,
)

console = Console()


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="make2manage")
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
def cli(log_level: str) -> None:
    """
    make2manage - Make-to-Order Shop Floor Simulation

    Release orders, pick dispatch rules and keep customers happy.
    """
    configure_logging(log_level)


# =============================================================================
# Session Commands
# =============================================================================


def _parse_policies(values: tuple[str, ...]) -> dict[int, DispatchPolicy]:
    policies = {}
    for value in values:
        station, sep, rule = value.partition("=")
        try:
            if not sep:
                raise ValueError(value)
            policies[int(station)] = DispatchPolicy(rule.strip().upper())
        except ValueError:
            raise click.BadParameter(
                f"Expected DEPT=RULE with RULE one of FIFO, EDD, SPT, got {value!r}",
                param_hint="--policy",
            )
    return policies


@cli.command()
@click.option("--duration", type=click.Choice(["15", "30", "60"]), default="30", help="Session minutes")
@click.option(
    "--rate",
    type=click.Choice([r.value for r in GenerationRate]),
    default=GenerationRate.MEDIUM.value,
    help="Order generation rate",
)
@click.option(
    "--complexity",
    type=click.Choice([c.value for c in ComplexityLevel]),
    default=ComplexityLevel.INTERMEDIATE.value,
    help="Route complexity",
)
@click.option(
    "--difficulty",
    type=click.Choice([d.value for d in Difficulty]),
    default=None,
    help="Difficulty preset (overrides rate, complexity and events)",
)
@click.option("--seed", "-s", default=None, help="Random seed (integer or short token)")
@click.option("--speed", type=click.Choice(["1", "2", "4", "8"]), default="1", help="Game speed")
@click.option("--events/--no-events", default=False, help="Random shop-floor events")
@click.option(
    "--overflow",
    type=click.Choice([p.value for p in OverflowPolicy]),
    default=OverflowPolicy.BLOCK.value,
    help="What happens when the next station is full",
)
@click.option("--policy", "-p", multiple=True, help="Dispatch rule per station, e.g. 2=EDD")
@click.option("--level", type=click.Path(exists=True, dir_okay=False), help="Level file to play")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Engine config file")
@click.option("--tick", default=1000, show_default=True, help="Real milliseconds per tick")
@click.option("--save", "save_slot", type=int, default=None, help="Save the final state to this slot")
@click.option("--autosave/--no-autosave", "autosave_enabled", default=False, help="Write the autosave file")
def run(
    duration: str,
    rate: str,
    complexity: str,
    difficulty: Optional[str],
    seed: Optional[str],
    speed: str,
    events: bool,
    overflow: str,
    policy: tuple[str, ...],
    level: Optional[str],
    config_path: Optional[str],
    tick: int,
    save_slot: Optional[int],
    autosave_enabled: bool,
) -> None:
    """Run a session headless from start to finish."""
    if tick <= 0:
        raise click.BadParameter("Tick must be positive", param_hint="--tick")

    config = EngineConfig.from_file(config_path) if config_path else get_default_config()

    settings = GameSettings(
        session_duration=int(duration),
        order_generation_rate=GenerationRate(rate),
        complexity_level=ComplexityLevel(complexity),
        random_seed=seed,
        game_speed=int(speed),
        enable_events=events,
        overflow_policy=OverflowPolicy(overflow),
        dispatch_policies=_parse_policies(policy),
    )
    if difficulty:
        settings = apply_difficulty(settings, difficulty)

    if level:
        try:
            parsed = load_level(level, session_duration=settings.session_duration)
        except LevelFormatError as e:
            console.print(f"[red]Invalid level: {e}[/red]")
            sys.exit(1)
        settings = settings.model_copy(
            update={
                "use_predetermined_orders": True,
                "predetermined_schedule": parsed.scheduled_orders,
            }
        )
        console.print(f"[green]Loaded level:[/green] {parsed.name} ({parsed.order_count} orders)")

    simulation = Simulation(settings, config)
    try:
        simulation.start()
        with console.status("[bold blue]Simulating...[/bold blue]"):
            while simulation.status != SessionStatus.COMPLETED:
                simulation.tick(tick)
    except SimulationError as e:
        console.print(f"[red]Simulation error: {e}[/red]")
        sys.exit(1)

    state = simulation.snapshot()
    _display_summary(state, config)

    try:
        if save_slot:
            path = save_session(state, save_slot, config=config)
            console.print(f"[green]Session saved to slot {save_slot}[/green] ({path})")
        if autosave_enabled:
            autosave(state, config=config)
            console.print("[dim]Autosaved[/dim]")
    except SaveError as e:
        console.print(f"[red]Failed to save: {e}[/red]")
        sys.exit(1)


@cli.command("validate-level")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--duration", type=click.Choice(["15", "30", "60"]), default=None, help="Session minutes")
def validate_level(path: str, duration: Optional[str]) -> None:
    """Check a level file for errors and warnings."""
    try:
        parsed = load_level(path, session_duration=int(duration) if duration else None)
    except LevelFormatError as e:
        console.print(f"[red]Invalid level: {e}[/red]")
        sys.exit(1)

    result = validate_schedule(parsed.scheduled_orders, get_default_config(), parsed.session_duration)
    console.print(
        f"[bold]{parsed.name}[/bold]: {parsed.order_count} orders over "
        f"{parsed.session_duration} minutes"
    )
    for message in result.messages():
        color = "red" if message.startswith("[ERROR]") else "yellow"
        console.print(f"[{color}]{escape(message)}[/{color}]", highlight=False)

    if not result.valid:
        sys.exit(1)
    console.print("[green]Level is valid[/green]")


@cli.command()
def saves() -> None:
    """List all saved sessions."""
    _show_saves()


@cli.command()
@click.argument("slot", type=int)
def show(slot: int) -> None:
    """Show a saved session. SLOT 0 is the autosave."""
    try:
        saved = load_session(slot)
    except LoadError as e:
        console.print(f"[red]Error loading session: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]{saved.metadata.save_name}[/green]")
    _display_summary(saved.game_state, saved.config or get_default_config())


@cli.command()
def rules() -> None:
    """Explain the dispatch rules."""
    for policy in DispatchPolicy:
        insights = POLICY_INSIGHTS[policy]
        body = [POLICY_DESCRIPTIONS[policy], ""]
        body += [f"[green]+[/green] {b}" for b in insights.benefits]
        body += [f"[red]-[/red] {d}" for d in insights.drawbacks]
        body += ["", f"[dim]Best for: {insights.best_for}[/dim]"]
        console.print(Panel.fit("\n".join(body), title=policy.value, border_style="cyan"))


# =============================================================================
# Display
# =============================================================================


def _display_summary(state: GameState, config: EngineConfig) -> None:
    """Print session, department and performance tables."""
    session = state.session
    console.print()
    console.print(Panel.fit(
        f"Session [bold]{session.session_id}[/bold] - {session.status.value}\n"
        f"Seed {session.seed}, {state.now_ms / MS_PER_MINUTE:.1f} of "
        f"{session.settings.session_duration} minutes",
        border_style="blue",
    ))

    table = Table(title="Departments", box=None)
    table.add_column("Station")
    table.add_column("Rule")
    table.add_column("Queue", justify="right")
    table.add_column("In Process", justify="right")
    table.add_column("Processed", justify="right")
    table.add_column("Utilization", justify="right")
    table.add_column("Status")

    for dept in state.departments:
        table.add_row(
            f"{dept.id} {dept.name}",
            dept.dispatch_policy.value,
            str(len(dept.queue)),
            str(len(dept.in_process)),
            str(dept.total_processed),
            f"{dept.utilization:.1f}%",
            dept.status.value,
        )
    console.print(table)

    perf = state.performance
    metrics = PerformanceEngine(config)
    console.print()
    table = Table(title="Performance", box=None)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Orders completed", str(perf.orders_completed))
    table.add_row("On time / late", f"{perf.orders_on_time} / {perf.orders_late}")
    table.add_row("Rejected / failed", f"{perf.orders_rejected} / {perf.orders_failed}")
    target = "[green]met[/green]" if metrics.meets_on_time_target(perf) else "[yellow]missed[/yellow]"
    table.add_row("On-time rate", f"{perf.on_time_rate:.1f}% ({target})")
    table.add_row("Average lead time", f"{perf.average_lead_time_minutes:.2f} min")
    table.add_row("Value delivered", f"${perf.total_value_delivered:,.0f}")
    table.add_row("Work in progress", str(perf.work_in_progress))
    bottleneck = state.get_department(state.forecast.bottleneck_department or 0)
    table.add_row("Bottleneck", bottleneck.name if bottleneck else "-")
    table.add_row("[bold]Score[/bold]", f"[bold]{state.score:,.0f}[/bold]")
    console.print(table)


def _show_saves() -> None:
    """Display list of saved sessions."""
    found = list_saves()

    if not found:
        console.print("[yellow]No saved sessions found.[/yellow]")
        return

    table = Table(title="Saved Sessions", box=None)
    table.add_column("Slot", justify="right")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Minutes", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Updated")

    for save in found:
        slot_str = str(save.save_slot) if save.save_slot > 0 else "Auto"
        table.add_row(
            slot_str,
            save.save_name,
            save.status.value,
            f"{save.elapsed_minutes:.1f}",
            f"{save.score:,.0f}",
            save.updated_at[:16].replace("T", " "),
        )

    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


if __name__ == "__main__":
    cli()
