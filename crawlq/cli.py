import json
import logging
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import scraping
from .config import default_db_path, load_settings, normalize_key, set_setting
from .errors import QueueError, UnknownTaskKind
from .models import Task, TaskStatus
from .queue import CommandQueue
from .storage import Store

app = typer.Typer(help="crawlq - durable command queue for crawl-style scraping jobs.")

# Sub-app so the CLI supports `crawlq config set max-retries 5`
config_app = typer.Typer(help="Read and write queue settings.")
app.add_typer(config_app, name="config")

DbOption = typer.Option(None, "--db", help="SQLite file (default: $CRAWLQ_HOME/queue.db)")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _open_queue(db: Optional[str]) -> CommandQueue:
    store = Store.open(db or default_db_path())
    return CommandQueue(store, scraping.build_registry(), fetch=scraping.http_fetch)


def _parse_params(pairs: List[str]) -> dict:
    params = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}")
        try:
            params[key] = json.loads(value)
        except json.JSONDecodeError:
            params[key] = value
    return params


# -----------------------------
# Producing work
# -----------------------------
@app.command()
def seed(db: Optional[str] = DbOption):
    """Enqueue the genre index task, unless work is already pending."""
    queue = _open_queue(db)
    if not queue.is_empty():
        print("[yellow]Queue already has pending tasks; not seeding.[/yellow]")
        return
    task_id = queue.enqueue(Task(kind="genre_list"))
    print(f"[green]Seeded[/green] task [bold]{task_id}[/bold] (genre_list)")


@app.command()
def enqueue(
    kind: str = typer.Argument(..., help="Task kind, e.g. genre_page"),
    param: List[str] = typer.Option([], "--param", "-p", help="key=value, repeatable"),
    db: Optional[str] = DbOption,
):
    """Add a single task to the queue."""
    queue = _open_queue(db)
    try:
        task_id = queue.enqueue(Task(kind=kind, params=_parse_params(param)))
    except UnknownTaskKind as e:
        print(f"[red]Rejected:[/red] {e}; known kinds: {', '.join(queue.registry.kinds())}")
        raise typer.Exit(1)
    except (QueueError, ValueError) as e:
        print(f"[red]Rejected:[/red] {e}")
        raise typer.Exit(1)
    print(f"[green]Enqueued[/green] task [bold]{task_id}[/bold] ({kind})")


# -----------------------------
# Running work
# -----------------------------
@app.command()
def work(
    db: Optional[str] = DbOption,
    reset_shutdown: bool = typer.Option(True, help="Set shutdown=false before start"),
):
    """Drain the queue. Ctrl+C leaves the current task pending."""
    queue = _open_queue(db)
    if reset_shutdown:
        queue.store.config_set("shutdown", "false")
    try:
        report = queue.drain()
    except KeyboardInterrupt:
        queue.store.config_set("shutdown", "true")
        print("[yellow]Interrupted; set shutdown=true. Unfinished tasks stay pending.[/yellow]")
        raise typer.Exit(130)
    except QueueError as e:
        print(f"[red]Drain halted:[/red] {e}")
        raise typer.Exit(1)
    summary = ", ".join(f"{k}={v}" for k, v in sorted(report.outcomes.items())) or "nothing to do"
    print(f"Drained: {summary}; left for retry: {report.retried}")
    if report.cancelled:
        print("[yellow]Stopped early by shutdown request.[/yellow]")


@app.command()
def stop(db: Optional[str] = DbOption):
    """Ask a running `work` to stop after its current task."""
    Store.open(db or default_db_path()).config_set("shutdown", "true")
    print("[yellow]Set shutdown=true. The drain stops after the current task.[/yellow]")


# -----------------------------
# Status & listing
# -----------------------------
@app.command()
def status(db: Optional[str] = DbOption):
    """Show task counts per status."""
    queue = _open_queue(db)
    tbl = Table(title="Tasks")
    tbl.add_column("Status")
    tbl.add_column("Count")
    for name, count in queue.counts().items():
        tbl.add_row(name, str(count))
    Console().print(tbl)


@app.command("list")
def list_tasks(
    status: Optional[TaskStatus] = typer.Option(None, "--status", help="Filter by status"),
    db: Optional[str] = DbOption,
):
    """List tasks, optionally by status."""
    queue = _open_queue(db)
    t = Table(title=f"Tasks{'' if not status else f' ({status.value})'}")
    for c in ["id", "kind", "status", "attempts", "updated_at", "params", "last_error"]:
        t.add_column(c)
    for task in queue.list(status):
        t.add_row(
            str(task.id),
            task.kind,
            task.status.value,
            str(task.attempts),
            task.updated_at or "",
            json.dumps(task.params),
            (task.last_error or "")[:80],
        )
    Console().print(t)


# -----------------------------
# Config
# -----------------------------
@config_app.command("set")
def config_set_cmd(
    key: str = typer.Argument(..., help="Config key"),
    value: str = typer.Argument(..., help="Value"),
    db: Optional[str] = DbOption,
):
    store = Store.open(db or default_db_path())
    try:
        key = set_setting(store, key, value)
    except KeyError:
        print(f"[red]Unknown config key:[/red] {key}")
        raise typer.Exit(2)
    except ValueError as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    print(f"set {key}={value}")


@config_app.command("get")
def config_get_cmd(
    key: Optional[str] = typer.Argument(None, help="Config key; omit to show all"),
    db: Optional[str] = DbOption,
):
    settings = load_settings(Store.open(db or default_db_path())).model_dump()
    if key is None:
        for k, v in settings.items():
            print(f"{k}={v}")
        return
    k = normalize_key(key)
    if k not in settings:
        print(f"[red]Unknown config key:[/red] {key}")
        raise typer.Exit(2)
    print(settings[k])
