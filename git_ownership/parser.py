"""Run git and parse its output: tracked files and per-line blame."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from .errors import FileBlameFailure, InvalidFilterInput, RepositoryNotFound
from .models import BlameLine

logger = logging.getLogger("git_ownership.parser")

BLAME_TIMEOUT = 300

# Regular files only: symlinks (120000) and submodules (160000) have no lines to blame
_BLOB_MODES = ("100644", "100755")

_COMMIT_HEADER = re.compile(rb"^[0-9a-f]{40}(?:[0-9a-f]{24})? \d+ \d+(?: \d+)?$")


def _git(repo: str | Path, *args: str, timeout: int = 60) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", "-C", str(repo), *args],
        capture_output=True,
        timeout=timeout,
    )


def find_repo_root(path: str | Path) -> Path:
    """Return the top level of the work tree containing ``path``."""
    start = Path(path).resolve()
    if not start.is_dir():
        raise RepositoryNotFound(f"Not a directory: {start}")
    try:
        result = _git(start, "rev-parse", "--show-toplevel")
    except FileNotFoundError:
        raise RepositoryNotFound("git executable not found") from None
    except subprocess.TimeoutExpired:
        raise RepositoryNotFound(f"git timed out while inspecting {start}") from None
    if result.returncode != 0:
        raise RepositoryNotFound(f"Not a git repository: {start}")
    return Path(result.stdout.decode().strip()).resolve()


def list_tracked_files(repo_root: Path, limit_dir: str | Path | None = None) -> list[str]:
    """Tracked regular files, slash separated and relative to ``repo_root``."""
    args = ["ls-files", "-z", "--stage", "--full-name"]
    if limit_dir is not None:
        limit = Path(limit_dir).resolve()
        try:
            rel = limit.relative_to(repo_root)
        except ValueError:
            raise InvalidFilterInput(f"{limit} is not inside repository {repo_root}") from None
        args += ["--", rel.as_posix() or "."]

    result = _git(repo_root, *args)
    if result.returncode != 0:
        raise RepositoryNotFound(
            f"git ls-files failed: {result.stderr.decode(errors='replace').strip()}"
        )

    paths: list[str] = []
    for entry in result.stdout.split(b"\0"):
        if not entry:
            continue
        meta, _, raw_path = entry.partition(b"\t")
        path = raw_path.decode("utf-8", errors="surrogateescape")
        mode = meta.split(b" ", 1)[0].decode()
        if mode not in _BLOB_MODES:
            logger.debug("skipping %s (mode %s)", path, mode)
            continue
        if not paths or paths[-1] != path:  # unmerged entries repeat per stage
            paths.append(path)
    return paths


def blame_file(repo_root: Path, path: str) -> list[BlameLine]:
    """Blame ``path`` as of HEAD. Raises FileBlameFailure when git can't."""
    try:
        result = _git(
            repo_root, "blame", "--line-porcelain", "HEAD", "--", path,
            timeout=BLAME_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        raise FileBlameFailure(path, f"timed out after {BLAME_TIMEOUT}s") from None
    except OSError as e:
        raise FileBlameFailure(path, str(e)) from None

    if result.returncode != 0:
        raise FileBlameFailure(path, result.stderr.decode(errors="replace").strip())

    return _parse_line_porcelain(path, result.stdout)


def _parse_line_porcelain(path: str, output: bytes) -> list[BlameLine]:
    lines: list[BlameLine] = []
    email: str | None = None
    timestamp: int | None = None

    for raw in output.split(b"\n"):
        if raw.startswith(b"\t"):
            # Content line closes the record
            if b"\0" in raw:
                raise FileBlameFailure(path, "binary file")
            if email is None:
                logger.warning("line without author email in %s", path)
            else:
                lines.append(BlameLine(email, timestamp))
            email = None
            timestamp = None
        elif _COMMIT_HEADER.match(raw):
            email = None
            timestamp = None
        elif raw.startswith(b"author-mail "):
            email = raw[12:].decode("utf-8", errors="replace").strip().strip("<>")
        elif raw.startswith(b"author-time "):
            try:
                timestamp = int(raw[12:])
            except ValueError:
                timestamp = None

    return lines


def get_configured_email(repo_root: Path) -> str | None:
    """``user.email`` as git would use it for a commit in this repo."""
    try:
        result = _git(repo_root, "config", "user.email", timeout=10)
    except (OSError, subprocess.SubprocessError):
        return None
    email = result.stdout.decode(errors="replace").strip()
    return email or None


def get_repo_name(repo_path: str | Path) -> str:
    path = Path(repo_path).resolve()
    name = path.name
    if name.endswith(".git"):
        name = name[:-4] or path.parent.name
    return name


def get_default_branch(repo_path: str | Path) -> str:
    try:
        result = _git(repo_path, "rev-parse", "--abbrev-ref", "HEAD", timeout=10)
    except (OSError, subprocess.SubprocessError):
        return "unknown"
    return result.stdout.decode(errors="replace").strip() or "unknown"
