"""Blame every tracked file in parallel and accumulate the ownership tree."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Sequence

from .analysis import aggregate, insert, new_tree
from .errors import FileBlameFailure
from .filters import FilterCriteria
from .models import BlameLine, FileOwnership, TreeNode
from .parser import blame_file

logger = logging.getLogger("git_ownership.scan")

BlameFn = Callable[[Path, str], Sequence[BlameLine]]
ProgressFn = Callable[[int, int], None]


def default_jobs() -> int:
    return os.cpu_count() or 1


def own_file(
    repo_root: Path,
    path: str,
    criteria: FilterCriteria,
    blame: BlameFn = blame_file,
) -> FileOwnership | None:
    """Blame and aggregate one file, or None when it should be left out."""
    logger.debug("blaming %s", path)
    try:
        lines = blame(repo_root, path)
    except FileBlameFailure as e:
        logger.warning("Error blaming file %s (%s)", path, e.reason)
        return None

    record = aggregate(path, lines, criteria)
    if record.total == 0:
        logger.debug("%s has no countable lines, skipping", path)
        return None
    return record


class OwnershipScan:
    """Collects FileOwnership records from worker threads into one tree.

    Workers only blame and aggregate; ``insert`` runs under a single lock so
    the tree has one writer at a time.
    """

    def __init__(
        self,
        repo_root: Path,
        criteria: FilterCriteria,
        jobs: int | None = None,
        blame: BlameFn = blame_file,
        on_progress: ProgressFn | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.criteria = criteria
        self.jobs = max(1, jobs or default_jobs())
        self.tree: TreeNode = new_tree()
        self.skipped = 0
        self._blame = blame
        self._on_progress = on_progress
        self._lock = threading.Lock()

    def _process(self, path: str) -> None:
        record = own_file(self.repo_root, path, self.criteria, self._blame)
        with self._lock:
            if record is None:
                self.skipped += 1
            else:
                insert(self.tree, record)

    def run(self, paths: Sequence[str]) -> TreeNode:
        total = len(paths)
        done = 0
        logger.info("blaming %s files with %s workers", total, self.jobs)

        with ThreadPoolExecutor(max_workers=self.jobs) as pool:
            futures = [pool.submit(self._process, p) for p in paths]
            for future in as_completed(futures):
                future.result()
                done += 1
                if self._on_progress is not None:
                    self._on_progress(done, total)

        logger.info("blamed %s files, skipped %s", total - self.skipped, self.skipped)
        return self.tree


def scan_repo(
    repo_root: Path,
    paths: Sequence[str],
    criteria: FilterCriteria,
    jobs: int | None = None,
    blame: BlameFn = blame_file,
    on_progress: ProgressFn | None = None,
) -> TreeNode:
    return OwnershipScan(repo_root, criteria, jobs, blame, on_progress).run(paths)
