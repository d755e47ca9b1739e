"""Paging, searching, filtering and exporting of report text."""

from __future__ import annotations

import re, math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from ..core.models import EmptyResultError, InvalidSelectionError
from .store import Report, ReportStore, human_size

PAGE_SIZE = 20
RULE = "=" * 39


class Pager:
    """1-indexed page cursor over a fixed list of lines."""

    def __init__(self, lines: Sequence[str], page_size: int = PAGE_SIZE) -> None:
        self.lines = list(lines)
        self.page_size = max(1, page_size)
        self.page = 1

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(len(self.lines) / self.page_size))

    def current(self) -> list[str]:
        start = (self.page - 1) * self.page_size
        return self.lines[start:start + self.page_size]

    def next(self) -> bool:
        if self.page < self.total_pages:
            self.page += 1
            return True
        return False

    def prev(self) -> bool:
        if self.page > 1:
            self.page -= 1
            return True
        return False

    def first(self) -> bool:
        self.page = 1
        return True

    def last(self) -> bool:
        self.page = self.total_pages
        return True

    def goto(self, n: int) -> bool:
        if 1 <= n <= self.total_pages:
            self.page = n
            return True
        return False


# ------------- categories -------------

@dataclass(frozen=True)
class Category:
    key: str
    label: str
    pattern: str

    @property
    def regex(self) -> re.Pattern:
        return re.compile(self.pattern, re.IGNORECASE)


CATEGORIES: dict[str, Category] = {
    "open": Category("open", "Open Ports", r"open"),
    "vulns": Category("vulns", "Vulnerabilities", r"vulnerable|vuln|cve"),
    "services": Category("services", "Services", r"service|version"),
    "errors": Category("errors", "Errors/Warnings", r"error|warning|failed"),
}


def custom_category(term: str) -> Category:
    if not term.strip():
        raise InvalidSelectionError("Empty filter pattern")
    return Category("custom", "Custom Filter", re.escape(term.strip()))


def filter_lines(lines: Sequence[str], category: Category) -> list[str]:
    rx = category.regex
    return [l for l in lines if rx.search(l)]


def category_counts(lines: Sequence[str]) -> dict[str, int]:
    return {key: len(filter_lines(lines, cat)) for key, cat in CATEGORIES.items()}


def filtered_view(lines: Sequence[str], category: Category) -> list[str]:
    """Lines for a filter viewer; refuses to produce an empty one."""
    matched = filter_lines(lines, category)
    if not matched:
        raise EmptyResultError(f"No {category.label.lower()} found in this report")
    return matched


def search_lines(lines: Sequence[str], term: str) -> list[str]:
    """Case-insensitive literal search, ``N:line`` with 1-based line numbers."""
    needle = term.lower()
    hits = [f"{n}:{line}" for n, line in enumerate(lines, 1) if needle in line.lower()]
    if not hits:
        raise EmptyResultError(f"No matches found for '{term}'")
    return hits


# ------------- summary / export -------------

def summary_document(lines: Sequence[str], size: int | None = None) -> list[str]:
    doc = ["=== REPORT SUMMARY ===", "", f"Total Lines: {len(lines)}"]
    if size is None:
        size = sum(len(l) + 1 for l in lines)
    doc.append(f"File Size: {human_size(size)}")
    for key, heading, limit in (
        ("open", "OPEN PORTS", 10),
        ("vulns", "VULNERABILITIES", 10),
        ("services", "SERVICES", 10),
        ("errors", "ERRORS/WARNINGS", 5),
    ):
        doc += ["", f"=== {heading} ==="]
        doc += filter_lines(lines, CATEGORIES[key])[:limit]
    return doc


def export_header(kind: str, title: str, filter_expr: str | None = None, now: datetime | None = None) -> list[str]:
    header = [f"{kind} Report - {title}"]
    if filter_expr:
        header.append(f"Filter: {filter_expr}")
    header += [f"Generated: {(now or datetime.now()).strftime('%c')}", RULE]
    return header


def export(
    store: ReportStore,
    title: str,
    lines: Sequence[str],
    mode: str = "full",
    category: Category | None = None,
    now: datetime | None = None,
) -> Report:
    """
    Write an ``export_<ts>.txt`` copy of ``lines``.

    ``mode`` is ``full``, ``filtered`` (needs ``category``) or ``summary``.
    A filtered export with no matching lines raises ``EmptyResultError`` and
    writes nothing.
    """
    match mode:
        case "full":
            body = export_header("Full", title, now=now) + list(lines)
        case "summary":
            body = export_header("Summary", title, now=now) + summary_document(lines)
        case "filtered":
            if category is None:
                raise InvalidSelectionError("Filtered export needs a category")
            matched = filtered_view(lines, category)
            expr = category.pattern if category.key != "custom" else re.sub(r"\\(.)", r"\1", category.pattern)
            body = export_header(category.label, title, expr, now=now) + matched
        case _:
            raise InvalidSelectionError(f"Unknown export mode: {mode}")
    return store.save("export", "\n".join(body), now=now)
