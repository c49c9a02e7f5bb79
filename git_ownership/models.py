from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class BlameLine:
    author_email: str
    timestamp: int | None = None  # unix seconds of the blamed commit

    @property
    def date(self) -> datetime | None:
        if self.timestamp is None:
            return None
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


@dataclass(frozen=True)
class FileOwnership:
    path: str
    total: int
    owned: int
    authors: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0 <= self.owned <= self.total:
            raise ValueError(
                f"owned lines out of range for {self.path}: {self.owned}/{self.total}"
            )

    @property
    def segments(self) -> list[str]:
        return [p for p in self.path.split("/") if p]


@dataclass
class TreeNode:
    name: str
    is_file: bool = False
    total: int = 0
    owned: int = 0
    children: dict[str, TreeNode] = field(default_factory=dict)
    authors: dict[str, int] = field(default_factory=dict)

    def add(self, record: FileOwnership) -> None:
        self.total += record.total
        self.owned += record.owned
        for email, lines in record.authors.items():
            self.authors[email] = self.authors.get(email, 0) + lines


@dataclass(frozen=True)
class OwnershipNode:
    name: str
    path: str
    is_file: bool
    total: int
    owned: int
    percentage: float
    authors: tuple[tuple[str, int], ...] = ()
    children: tuple[OwnershipNode, ...] = ()

    def top_authors(self, n: int) -> list[tuple[str, int, float]]:
        """(email, lines, pct) for the n biggest contributors."""
        return [
            (email, lines, lines / self.total * 100 if self.total else 0.0)
            for email, lines in self.authors[:n]
        ]


@dataclass(frozen=True)
class FlatEntry:
    path: str
    total: int
    owned: int
    percentage: float
