"""Terminal output formatting with ANSI colors."""

from __future__ import annotations

import os
import sys
from datetime import timedelta

from .models import FlatEntry, OwnershipNode


# ── ANSI color codes ──────────────────────────────────────────────────────────

def _supports_color() -> bool:
    if os.getenv("NO_COLOR"):
        return False
    if os.getenv("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_COLOR = _supports_color()


def _c(code: str, text: str) -> str:
    if not _COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def dim(t: str) -> str:
    return _c("2", t)


def bold(t: str) -> str:
    return _c("1", t)


def yellow(t: str) -> str:
    return _c("93", t)


def green(t: str) -> str:
    return _c("92", t)


def cyan(t: str) -> str:
    return _c("96", t)


def white(t: str) -> str:
    return _c("97", t)


# ── Drawing helpers ───────────────────────────────────────────────────────────

_BRANCH = "├── "
_LAST = "└── "
_PIPE = "│   "
_SPACE = "    "


def _pct(value: float) -> str:
    text = f"{value:.1f}%"
    if value >= 50:
        return green(text)
    if value >= 10:
        return yellow(text)
    return text


def _lossy(path: str) -> str:
    # Paths that were not valid UTF-8 come back from git with surrogate escapes
    return path.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def _plural(n: int, word: str) -> str:
    return f"{n:,} {word}{'s' if n != 1 else ''}"


def _line(width: int = 70) -> str:
    return dim("─" * width)


def _format_age(age: timedelta) -> str:
    days = age.total_seconds() / 86400
    if days >= 365:
        return f"{days / 365.25:.1f} years"
    if days >= 1:
        return _plural(round(days), "day")
    return _plural(round(age.total_seconds() / 3600), "hour")


def _authors_str(node: OwnershipNode, max_authors: int) -> str:
    parts = [
        f"{email}: {pct:.1f}%"
        for email, _, pct in node.top_authors(max_authors)
    ]
    return "(" + ", ".join(parts) + ")"


# ── Section renderers ─────────────────────────────────────────────────────────

def print_header(
    repo_name: str,
    branch: str,
    total_files: int,
    emails: tuple[str, ...],
    max_age: timedelta | None,
) -> None:
    w = 70

    print()
    print(_line(w))
    print(f"  {bold(white(_lossy(repo_name)))}  {dim('·')}  {dim(branch)}  {dim('·')}  {_plural(total_files, 'file')}")
    if emails:
        print(f"  {dim('author:')} {cyan(', '.join(emails))}")
    if max_age is not None:
        print(f"  {dim('lines changed within the last')} {_format_age(max_age)}")
    print(_line(w))
    print()


def print_tree(
    root: OwnershipNode,
    max_depth: int | None = None,
    show_authors: bool = False,
    max_authors: int = 3,
) -> None:
    """Render a finalized tree, one node per line, children indented."""

    def label(node: OwnershipNode) -> str:
        name = _lossy(node.name) if node.is_file else bold(_lossy(node.name))
        if show_authors:
            return f"{name} - {dim(_authors_str(node, max_authors))}"
        return f"{name} - {_pct(node.percentage)}"

    def walk(node: OwnershipNode, prefix: str, depth_left: int | None) -> None:
        if depth_left == 0:
            return
        next_depth = None if depth_left is None else depth_left - 1
        for i, child in enumerate(node.children):
            last = i == len(node.children) - 1
            print(f"{prefix}{_LAST if last else _BRANCH}{label(child)}")
            walk(child, prefix + (_SPACE if last else _PIPE), next_depth)

    print(label(root))
    walk(root, "", max_depth)


def print_flat(entries: list[FlatEntry]) -> None:
    for e in entries:
        print(f"{_pct_padded(e.percentage)} - {_lossy(e.path)}")


def _pct_padded(value: float) -> str:
    padding = " " * max(0, 5 - len(f"{value:.1f}"))
    return padding + _pct(value)


def print_flat_authors(root: OwnershipNode, max_authors: int = 3) -> None:
    stack = [root]
    files: list[OwnershipNode] = []
    while stack:
        node = stack.pop()
        if node.is_file:
            files.append(node)
        stack.extend(node.children)

    for node in sorted(files, key=lambda n: n.path):
        print(f"{_lossy(node.path)} - {dim(_authors_str(node, max_authors))}")


def print_empty() -> None:
    print(dim("  No lines found for this author."))


def print_footer(total_authors: int, skipped: int) -> None:
    print()
    print(_line(70))
    summary = _plural(total_authors, "author")
    if skipped:
        summary += f"  {dim('·')}  {_plural(skipped, 'file')} skipped"
    print(f"  {dim(summary)}")
    print()
