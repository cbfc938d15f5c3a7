import json
import os
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_list_result(books: List[Any], status: Optional[Dict[int, str]] = None) -> None:
    """Print a list of books according to the current output mode.
    - plain: 'SERIAL - Title by Author' lines, or 'No books in library.'
    - json: JSON array of serial_number, title, author (and status if given)
    - rich: Rich table
    ``status`` optionally maps a serial number to a short availability note.
    """
    mode = get_output_mode()
    status = status or {}

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        payload = []
        for b in books:
            item = {"serial_number": b.serial_number, "title": b.title, "author": b.author}
            if b.serial_number in status:
                item["status"] = status[b.serial_number]
            payload.append(item)
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("Serial", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        if status:
            table.add_column("Status", style="yellow")
        for b in books:
            row = [str(b.serial_number), b.title, b.author]
            if status:
                row.append(status.get(b.serial_number, "available"))
            table.add_row(*row)
        _console.print(table)
    else:
        for b in books:
            line = f"{b.serial_number} - {b.title} by {b.author}"
            if b.serial_number in status:
                line += f" [{status[b.serial_number]}]"
            print(line)


def print_accounts_result(users: List[Any]) -> None:
    """Print accounts without their passwords."""
    mode = get_output_mode()

    if not users:
        print("No accounts.")
        return

    if mode == "json":
        print(json.dumps([{"id": u.id, "name": u.name, "role": u.role} for u in users], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="👤 Accounts", header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Role", style="white")
        for u in users:
            table.add_row(str(u.id), u.name, u.role)
        _console.print(table)
    else:
        for u in users:
            print(f"{u.id} - {u.name} ({u.role})")


def print_renters_result(lines: List[str]) -> None:
    mode = get_output_mode()

    if not lines:
        print("No books are checked out.")
        return

    if mode == "json":
        print(json.dumps(lines, ensure_ascii=False))
    elif mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="📖 Current Rentals", border_style="blue"))
    else:
        for line in lines:
            print(line)


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics according to the current output mode.
    - plain: one 'Label: value' line per metric
    - json: JSON object
    - rich: Panel with the main metrics
    """
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    total = stats.get("total_books", 0)
    authors = stats.get("unique_authors", 0)
    rented = stats.get("rented_books", 0)
    overdue = stats.get("overdue_books", 0)

    if mode == "json":
        print(json.dumps(
            {"total_books": total, "unique_authors": authors, "rented_books": rented, "overdue_books": overdue},
            ensure_ascii=False,
        ))
    elif mode == "rich":
        content = (
            f"[bold]Total Books:[/] {total}\n[bold]Unique Authors:[/] {authors}\n"
            f"[bold]Rented:[/] {rented}\n[bold]Overdue:[/] {overdue}"
        )
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        print(f"Total Books: {total}")
        print(f"Unique Authors: {authors}")
        print(f"Rented: {rented}")
        print(f"Overdue: {overdue}")
