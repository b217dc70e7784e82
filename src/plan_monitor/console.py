"""Terminal rendering of a synchronized session with rich."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .constants import MSG_START_APOLOGY
from .errors import StartFailure, SyncError
from .models import ExecutionStatus, JobSnapshot, PlanLayout, Task
from .synchronizer import SessionState, SyncListener


_STATUS_STYLE = {
    ExecutionStatus.PENDING: "[dim]pending[/dim]",
    ExecutionStatus.IN_PROGRESS: "[yellow]in progress[/yellow]",
    ExecutionStatus.COMPLETED: "[green]✓ completed[/green]",
    ExecutionStatus.FAILED: "[red]✗ failed[/red]",
}


def _status_cell(task: Task) -> str:
    cell = _STATUS_STYLE[task.execution_status]
    if task.execution_status is ExecutionStatus.IN_PROGRESS and task.progress_percentage is not None:
        cell += f" {task.progress_percentage:g}%"
    return cell


def render_layout_table(plan_layout: PlanLayout, title: str = "Task Plan") -> Table:
    """Build a table of positioned tasks, one block of rows per level."""
    table = Table(title=title, show_header=True)
    table.add_column("Level", justify="right", style="bold")
    table.add_column("Task", style="cyan")
    table.add_column("Description")
    table.add_column("Type", style="magenta")
    table.add_column("Status")
    table.add_column("Depends on", style="dim")
    table.add_column("x,y", justify="right", style="dim")

    for level, row in enumerate(plan_layout.by_level()):
        for index, node in enumerate(row):
            task = node.task
            table.add_row(
                str(level) if index == 0 else "",
                task.task_id,
                task.task_description[:60],
                task.task_type,
                _status_cell(task),
                ", ".join(task.dependencies),
                f"{node.x:g},{node.y:g}",
                end_section=index == len(row) - 1,
            )
    return table


def render_dependency_tree(tasks: Sequence[Task], title: str = "Task Dependency Tree") -> Tree:
    """Build a tree from root tasks down to their dependents."""
    known = {task.task_id for task in tasks}
    tree = Tree(f"[bold]{title}[/bold]")

    def add_dependents(parent_node: Tree, task_id: str, visited: set[str]) -> None:
        if task_id in visited:
            return
        visited.add(task_id)
        for dependent in tasks:
            if task_id in dependent.dependencies and dependent.task_id != task_id:
                branch = parent_node.add(f"[cyan]{dependent.task_id}[/cyan] {dependent.task_description}")
                add_dependents(branch, dependent.task_id, visited)

    visited: set[str] = set()
    for task in tasks:
        if any(dep in known and dep != task.task_id for dep in task.dependencies):
            continue
        branch = tree.add(f"[green]{task.task_id}[/green] {task.task_description}")
        add_dependents(branch, task.task_id, visited)

    # cyclic leftovers have no root to hang from
    for task in tasks:
        if task.task_id not in visited:
            branch = tree.add(f"[red]{task.task_id}[/red] {task.task_description} [dim](cycle)[/dim]")
            add_dependents(branch, task.task_id, visited)
    return tree


class PlanConsole(SyncListener):
    """Print synchronizer notifications, results and errors to a rich console."""

    def __init__(self, console: Optional[Console] = None, *, show_updates: bool = True) -> None:
        self.console = console or Console()
        self.show_updates = show_updates

    def on_notification(self, message: str) -> None:
        self.console.print(f"[bold blue]•[/bold blue] {message}")

    def on_result_message(self, text: str) -> None:
        self.console.print(Panel(text, title="Response", border_style="green"))

    def on_error(self, error: SyncError) -> None:
        self.console.print(f"[bold red]{error.user_message}[/bold red]")
        if isinstance(error, StartFailure):
            self.console.print(f"[red]{MSG_START_APOLOGY}[/red]")

    def on_state_changed(self, state: SessionState) -> None:
        self.console.print(f"[dim]session {state.value}[/dim]")

    def on_snapshot_changed(self, snapshot: JobSnapshot) -> None:
        if not self.show_updates:
            return
        plan = snapshot.plan
        if plan is None:
            self.console.print(f"[dim]{snapshot.status.value}: no plan yet[/dim]")
            return
        progress = plan.progress
        self.console.print(
            f"[bold]{snapshot.status.value}[/bold] "
            f"{progress.completed_tasks}/{progress.total_tasks} tasks "
            f"({progress.percent_complete()}%)"
        )

    def print_layout(self, plan_layout: PlanLayout) -> None:
        if not plan_layout.nodes:
            self.console.print("[dim]No tasks to lay out[/dim]")
            return
        self.console.print(render_layout_table(plan_layout))
        self.console.print(
            f"[dim]{len(plan_layout.nodes)} task(s), {plan_layout.level_count} level(s), "
            f"{len(plan_layout.edges)} edge(s), canvas {plan_layout.width:g}x{plan_layout.height:g}[/dim]"
        )

    def print_tree(self, tasks: Sequence[Task]) -> None:
        self.console.print(render_dependency_tree(tasks))
