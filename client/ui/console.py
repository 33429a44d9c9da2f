#!/usr/bin/env python
# Console UI utilities
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from client.battery.store import BatterySnapshot
from client.battery.sync import Notifier

# Initialize Rich console
console = Console()


def show_error(message: str):
    """Display an error message"""
    console.print(f"[bold red]Error:[/bold red] {message}")


def render_battery(snapshot: Optional[BatterySnapshot]) -> Panel:
    """Render the cached battery state with the trailing usage history"""
    if snapshot is None:
        return Panel(Text("Battery not loaded yet", style="dim"), title="Battery", expand=False)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Date")
    table.add_column("Used", justify="right", style="cyan")
    table.add_column("Messages", justify="right")
    table.add_column("Top models")
    for day in snapshot.usage_history:
        models = ", ".join(f"{m['model']} ({m['count']})" for m in day.get("models", []))
        table.add_row(
            str(day.get("date", "")),
            str(day.get("totalBatteryUsed", 0)),
            str(day.get("totalMessages", 0)),
            models,
        )

    header = Text()
    header.append(f"{snapshot.total_balance} BU", style="bold green")
    header.append(f"  daily +{snapshot.daily_allowance}  today -{snapshot.today_usage}")
    if snapshot.last_updated:
        header.append(f"\nupdated {snapshot.last_updated:%H:%M:%S}", style="dim")

    return Panel(_stack(header, table), title="Battery", expand=False)


def _stack(*renderables) -> Table:
    grid = Table.grid()
    for renderable in renderables:
        grid.add_row(renderable)
    return grid


def show_battery(snapshot: Optional[BatterySnapshot]):
    console.print(render_battery(snapshot))


class ConsoleNotifier(Notifier):
    """Blocking insufficient-balance notice printed to the terminal"""

    def insufficient_balance(self, detail: str):
        console.print(Panel(
            Text(f"{detail}\nTop up or upgrade your plan to keep chatting.", style="yellow"),
            title="Battery empty",
            border_style="red",
            expand=False,
        ))
