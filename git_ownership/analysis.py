"""Ownership aggregation: per-file counts, the directory tree, and its final ordering."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Iterator

from .filters import FilterCriteria
from .models import (
    BlameLine,
    FileOwnership,
    FlatEntry,
    OwnershipNode,
    TreeNode,
)

ROOT_NAME = "/"


def aggregate(
    path: str,
    blame_lines: Iterable[BlameLine],
    criteria: FilterCriteria,
) -> FileOwnership:
    """Count a file's current lines and the ones the target author owns.

    Every line counts toward the total once. A line is owned when its email
    is one of the target emails and, with a max age set, its commit is not
    older than the cutoff. The author tally follows the same cutoff, so
    with a max age only recent lines are attributed. Lines without a
    timestamp can't be dated, so they never pass an age filter. Ignored
    identities are left out of every count.
    """
    cutoff = criteria.cutoff
    total = 0
    owned = 0
    authors: Counter[str] = Counter()

    for line in blame_lines:
        if criteria.is_ignored(line.author_email):
            continue
        total += 1
        if cutoff is not None and (line.date is None or line.date < cutoff):
            continue
        authors[line.author_email] += 1
        if criteria.is_target(line.author_email):
            owned += 1

    return FileOwnership(path, total, owned, dict(authors))


def new_tree() -> TreeNode:
    return TreeNode(ROOT_NAME)


def insert(tree: TreeNode, record: FileOwnership) -> None:
    """Add a file's counts to the root and to every node along its path."""
    node = tree
    node.add(record)
    segments = record.segments
    for i, segment in enumerate(segments):
        child = node.children.get(segment)
        if child is None:
            child = node.children[segment] = TreeNode(segment)
        if i == len(segments) - 1:
            child.is_file = True
        child.add(record)
        node = child


def iter_files(tree: TreeNode, prefix: str = "") -> Iterator[FileOwnership]:
    """Recover the leaf records a tree was built from."""
    for name, child in tree.children.items():
        path = f"{prefix}{name}"
        if child.is_file:
            yield FileOwnership(path, child.total, child.owned, dict(child.authors))
        else:
            yield from iter_files(child, f"{path}/")


def merge(into: TreeNode, other: TreeNode) -> TreeNode:
    """Fold a partial tree into ``into``; same accumulation as inserting its files."""
    for record in iter_files(other):
        insert(into, record)
    return into


def percentage(owned: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return owned / total * 100


def sort_key(node: OwnershipNode) -> tuple[float, int, str]:
    # Highest share first, then biggest, then by name
    return (-node.percentage, -node.total, node.name)


def sort_nodes(
    nodes: Iterable[OwnershipNode],
    reverse: bool = False,
) -> tuple[OwnershipNode, ...]:
    return tuple(sorted(nodes, key=sort_key, reverse=reverse))


def _sorted_authors(authors: dict[str, int]) -> tuple[tuple[str, int], ...]:
    return tuple(sorted(authors.items(), key=lambda a: (-a[1], a[0])))


def finalize(
    tree: TreeNode,
    criteria: FilterCriteria | None = None,
    reverse: bool = False,
) -> OwnershipNode:
    """Freeze the tree: percentages, pruning and child order.

    With ``criteria.only_owned`` files nobody on the target list touched are
    dropped, and so are directories left without any file. The root is
    always returned, even when everything under it was pruned.
    """
    only_owned = criteria.only_owned if criteria is not None else False
    return _finalize_node(tree, "", only_owned, reverse)


def _finalize_node(
    node: TreeNode,
    path: str,
    only_owned: bool,
    reverse: bool,
) -> OwnershipNode:
    children: tuple[OwnershipNode, ...] = ()
    if not node.is_file:
        children = _finalize_children(node, path, only_owned, reverse)

    return OwnershipNode(
        name=node.name,
        path=path,
        is_file=node.is_file,
        total=node.total,
        owned=node.owned,
        percentage=percentage(node.owned, node.total),
        authors=_sorted_authors(node.authors),
        children=children,
    )


def _finalize_children(
    node: TreeNode,
    path: str,
    only_owned: bool,
    reverse: bool,
) -> tuple[OwnershipNode, ...]:
    prefix = f"{path}/" if path else ""
    kept: list[OwnershipNode] = []
    for name, child in node.children.items():
        if child.is_file and only_owned and child.owned == 0:
            continue
        final = _finalize_node(child, f"{prefix}{name}", only_owned, reverse)
        if not final.is_file and not final.children:
            continue
        kept.append(final)
    return sort_nodes(kept, reverse)


def flatten(root: OwnershipNode, reverse: bool = False) -> list[FlatEntry]:
    """Files of a finalized tree as one list, ordered like siblings are."""
    files: list[OwnershipNode] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_file:
            files.append(node)
        stack.extend(node.children)

    ordered = sorted(files, key=lambda n: (-n.percentage, -n.total, n.path), reverse=reverse)
    return [FlatEntry(n.path, n.total, n.owned, n.percentage) for n in ordered]


def distinct_authors(tree: TreeNode | OwnershipNode) -> list[str]:
    """Every identity seen on any blamed line, whoever the target is."""
    if isinstance(tree, TreeNode):
        return sorted(tree.authors)
    return sorted(email for email, _ in tree.authors)
