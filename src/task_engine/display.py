# display.py
# All terminal output for a run.
#
# This module owns presentation entirely. The agent never formats strings,
# it emits events and consume() renders them here. Swap this file to change
# the entire UI.
#
# Colour language:
#   cyan   : scaffolding / state updates
#   blue   : model replies
#   yellow : storages and waits
#   green  : success / completion
#   red    : failures and halts
#   magenta: action executions

import json

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from task_engine.events import (
    ActionExecuted,
    ActionExecuting,
    ActionTimeout,
    EmptyResponse,
    Event,
    EventChannel,
    InvalidAction,
    InvalidResponse,
    MetricsUpdate,
    Sleeping,
    StateUpdate,
    StorageUpdate,
    TaskComplete,
    Thinking,
)
from task_engine.models import Invocation, Metrics

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    value = value.replace("\n", " ")
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def _invocation(invocation: Invocation) -> str:
    attrs = json.dumps(invocation.attributes) if invocation.attributes else ""
    payload = _mono(invocation.payload, 80) if invocation.payload else ""
    return f"[bold white]{invocation.action}[/bold white] [dim]{attrs}[/dim] {payload}".rstrip()


# ---------------------------------------------------------------------------
# Run entry
# ---------------------------------------------------------------------------


def banner(generator: str, native_tools: bool) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Task Engine[/bold cyan]\n"
            "[dim]Step loop over registered actions[/dim]\n\n"
            f"[dim]Generator    :[/dim] [white]{generator}[/white]\n"
            f"[dim]Native tools :[/dim] [white]{'yes' if native_tools else 'no'}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def task_received(prompt: str, namespaces: list[str]) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{prompt.strip()}[/white]",
            title=_label("TASK", "cyan"),
            subtitle=f"[dim]namespaces: {', '.join(namespaces)}[/dim]",
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def state_update(event: StateUpdate) -> None:
    console.print()
    console.print(Rule(f"[cyan]STEP {event.step}[/cyan]", style="cyan"))


def thinking(event: Thinking) -> None:
    console.print(f"  [blue]Thinking[/blue]  [dim white]{_mono(event.thought, 200)}[/dim white]")


def storage_update(event: StorageUpdate) -> None:
    if event.new is None and event.prev is None:
        console.print(f"  [yellow]{event.storage}[/yellow] [dim]cleared[/dim]")
    elif event.new is None:
        console.print(f"  [yellow]{event.storage}[/yellow] [dim]-{event.key}[/dim]")
    else:
        console.print(
            f"  [yellow]{event.storage}[/yellow] [dim]{event.key}[/dim] = {_mono(event.new, 80)}"
        )


def sleeping(event: Sleeping) -> None:
    console.print(f"  [yellow]Sleeping[/yellow] [dim]{event.seconds}s…[/dim]")


def empty_response(event: EmptyResponse) -> None:
    console.print("  [red]Empty response from the model.[/red]")


def invalid_response(event: InvalidResponse) -> None:
    console.print(
        f"  [red]Unparsed response[/red] [dim]{_mono(event.response, 100)}[/dim]\n"
        f"  [red]↳ {event.error}[/red]"
    )


def invalid_action(event: InvalidAction) -> None:
    console.print(f"  [red]Invalid action[/red] {_invocation(event.invocation)}")
    if event.error:
        console.print(f"  [red]↳ {event.error}[/red]")


def action_executing(event: ActionExecuting) -> None:
    console.print(f"  [magenta]Action[/magenta]   {_invocation(event.invocation)}")


def action_timeout(event: ActionTimeout) -> None:
    console.print(
        f"  [bold red]Timeout[/bold red]  [white]{event.invocation.action}[/white]"
        f"  [dim]after {event.elapsed:.2f}s[/dim]"
    )


def action_executed(event: ActionExecuted) -> None:
    if event.error is not None:
        console.print(f"  [red]Error[/red]    [white]{_mono(event.error, 140)}[/white]")
        return
    result = _mono(event.result, 140) if event.result else "[dim]executed[/dim]"
    console.print(f"  [green]Result[/green]   [white]{result}[/white]  [dim]({event.elapsed:.2f}s)[/dim]")


def task_complete(event: TaskComplete) -> None:
    console.print()
    if event.impossible:
        title, color, text = "TASK IMPOSSIBLE", "red", "The task could not be completed."
    else:
        title, color, text = "TASK COMPLETE", "green", "The task has been completed."
    if event.reason:
        text += f"\n\n[white]{event.reason}[/white]"
    console.print(
        Panel(
            f"[bold {color}]{text}[/bold {color}]",
            title=_label(title, color),
            border_style=color,
            padding=(0, 2),
        )
    )


def metrics_update(event: MetricsUpdate) -> None:
    metrics = event.metrics
    budget = metrics.max_steps if metrics.max_steps > 0 else "∞"
    console.print(f"  [dim]step {metrics.current_step}/{budget}[/dim]")


_RENDERERS = {
    StateUpdate: state_update,
    Thinking: thinking,
    StorageUpdate: storage_update,
    Sleeping: sleeping,
    EmptyResponse: empty_response,
    InvalidResponse: invalid_response,
    InvalidAction: invalid_action,
    ActionExecuting: action_executing,
    ActionTimeout: action_timeout,
    ActionExecuted: action_executed,
    TaskComplete: task_complete,
    MetricsUpdate: metrics_update,
}


def render(event: Event) -> None:
    renderer = _RENDERERS.get(type(event))
    if renderer is not None:
        renderer(event)


async def consume(channel: EventChannel) -> None:
    """Render events until the channel is closed and drained."""
    async for event in channel:
        render(event)


# ---------------------------------------------------------------------------
# Final summary
# ---------------------------------------------------------------------------


def metrics_summary(metrics: Metrics) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Metric", width=20)
    table.add_column("Value", justify="right", width=8)

    for name, value in metrics.model_dump().items():
        table.add_row(name.replace("_", " "), str(value))

    console.print(
        Panel(
            table,
            title="[dim]RUN SUMMARY[/dim]",
            border_style="dim",
            padding=(0, 1),
        )
    )


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{reason}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
