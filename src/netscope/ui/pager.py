"""Interactive, paginated viewing of report text."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.text import Text

from ..core.models import EmptyResultError, NetscopeError
from ..reports.store import ReportStore
from ..reports.viewer import (
    Pager, CATEGORIES, custom_category, category_counts, filtered_view,
    search_lines, summary_document, export,
)

NAV_HELP = "[n]ext [p]revious [f]irst [l]ast [s]earch [g]oto [q]uit"


def page(console: Console, lines: Sequence[str], title: str, page_size: int = 20) -> None:
    """Show ``lines`` one page at a time until the operator quits."""
    pager = Pager(lines, page_size)
    while True:
        console.clear()
        console.print(Panel(title, style="cyan", expand=True))
        console.print(
            f"[yellow]Page {pager.page} of {pager.total_pages} (Lines: {len(pager.lines)})[/]"
        )
        console.rule(style="blue")
        for line in pager.current():
            console.print(Text(line))
        console.rule(style="blue")
        console.print(f"[yellow]Navigation:[/] {NAV_HELP}", highlight=False)

        choice = Prompt.ask("Command", default="q").strip().lower()
        match choice:
            case "n":
                pager.next()
            case "p":
                pager.prev()
            case "f":
                pager.first()
            case "l":
                pager.last()
            case "s":
                search(console, pager.lines, title, page_size)
            case "g":
                n = IntPrompt.ask(f"Go to page (1-{pager.total_pages})", default=pager.page)
                if not pager.goto(n):
                    console.print("[red]Invalid page number[/]")
                    Prompt.ask("Press Enter to continue", default="", show_default=False)
            case "q" | "0" | "":
                return
            case _:
                console.print("[red]Invalid command[/]")


def search(console: Console, lines: Sequence[str], title: str, page_size: int = 20) -> None:
    term = Prompt.ask("Search for", default="", show_default=False)
    if not term:
        return
    try:
        hits = search_lines(lines, term)
    except EmptyResultError as exc:
        console.print(f"[red]{exc}[/]")
        return
    console.print(f"[green]Found {len(hits)} matches for '{term}'[/]")
    page(console, hits, f"Search Results: {term} - {title}", page_size)


def _pick_category(console: Console, lines: Sequence[str], action: str):
    counts = category_counts(lines)
    keys = {"p": "open", "v": "vulns", "s": "services", "e": "errors"}
    for letter, key in keys.items():
        console.print(f"[yellow]{letter})[/] {action} {CATEGORIES[key].label.lower()} ({counts[key]} matches)")
    console.print("[yellow]c)[/] Custom filter pattern")
    console.print("[yellow]0)[/] Cancel")
    choice = Prompt.ask("Select filter", choices=[*keys, "c", "0"], default="0")
    if choice == "0":
        return None
    if choice == "c":
        return custom_category(Prompt.ask("Enter filter pattern"))
    return CATEGORIES[keys[choice]]


def filter_report(console: Console, lines: Sequence[str], title: str, page_size: int = 20) -> None:
    category = _pick_category(console, lines, "Show only")
    if category is None:
        return
    try:
        matched = filtered_view(lines, category)
    except EmptyResultError as exc:
        console.print(f"[blue]{exc}[/]")
        return
    page(console, matched, f"{category.label} - {title}", page_size)


def export_report(console: Console, store: ReportStore, lines: Sequence[str], title: str) -> None:
    console.print(f"[blue]Report: {title}[/]")
    console.print("[yellow]f)[/] Export full report "
                  f"({len(lines)} lines)\n[yellow]u)[/] Export summary only\n[yellow]x)[/] Export filtered")
    mode = Prompt.ask("Select export type", choices=["f", "u", "x", "0"], default="0")
    try:
        match mode:
            case "f":
                saved = export(store, title, lines, "full")
            case "u":
                saved = export(store, title, lines, "summary")
            case "x":
                category = _pick_category(console, lines, "Export")
                if category is None:
                    return
                saved = export(store, title, lines, "filtered", category)
            case _:
                console.print("[yellow]Export cancelled[/]")
                return
    except NetscopeError as exc:
        console.print(f"[blue]{exc}[/]")
        return
    console.print(f"[green]Report exported to: {saved.path}[/]")


def report_menu(console: Console, store: ReportStore, lines: Sequence[str], title: str, page_size: int = 20) -> None:
    if not lines:
        console.print("[red]Report is empty[/]")
        return
    while True:
        console.print(Panel(f"REPORT VIEWER: {title}", style="cyan"))
        console.print("[yellow]1)[/] View full report\n[yellow]2)[/] View report summary\n"
                      "[yellow]3)[/] Search in report\n[yellow]4)[/] Filter report\n"
                      "[yellow]5)[/] Export report\n[yellow]0)[/] Back")
        choice = Prompt.ask("Select option", choices=["1", "2", "3", "4", "5", "0"], default="0")
        match choice:
            case "1":
                page(console, lines, title, page_size)
            case "2":
                page(console, summary_document(lines), f"Report Summary - {title}", page_size)
            case "3":
                search(console, lines, title, page_size)
            case "4":
                filter_report(console, lines, title, page_size)
            case "5":
                export_report(console, store, lines, title)
            case "0":
                return
