from __future__ import annotations

import json
import os
import shutil
import subprocess
from datetime import timedelta
from pathlib import Path

import pytest

from git_ownership import __main__
from git_ownership.analysis import finalize, flatten
from git_ownership.filters import build_criteria
from git_ownership.parser import blame_file, find_repo_root, list_tracked_files
from git_ownership.scan import OwnershipScan

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

X = "x@example.com"
Y = "y@example.com"


def _git(repo: Path, *args: str, email: str = X, date: str | None = None) -> None:
    env = dict(os.environ)
    env.update(
        GIT_AUTHOR_NAME=email.split("@")[0],
        GIT_AUTHOR_EMAIL=email,
        GIT_COMMITTER_NAME=email.split("@")[0],
        GIT_COMMITTER_EMAIL=email,
    )
    if date is not None:
        env.update(GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date)
    subprocess.run(
        ["git", "-C", str(repo), "-c", "commit.gpgsign=false", *args],
        check=True,
        capture_output=True,
        env=env,
    )


def _commit(repo: Path, message: str, email: str, date: str | None = None) -> None:
    _git(repo, "add", "-A", email=email)
    _git(repo, "commit", "-q", "-m", message, email=email, date=date)


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    _git(root, "init", "-q")
    _git(root, "config", "user.email", X)

    (root / "dir").mkdir()
    (root / "dir" / "b.txt").write_text("".join(f"y{i}\n" for i in range(15)))
    _commit(root, "add b", Y, "2020-01-01T12:00:00+00:00")

    with (root / "dir" / "b.txt").open("a") as f:
        f.write("".join(f"x{i}\n" for i in range(5)))
    _commit(root, "extend b", X, "2020-06-01T12:00:00+00:00")

    (root / "a.txt").write_text("".join(f"a{i}\n" for i in range(10)))
    (root / "logo.bin").write_bytes(b"\x89PNG\0\0\0\rIHDR\n\0\0")
    _commit(root, "add a", X)

    (root / "uncommitted.txt").write_text("staged only\n")
    _git(root, "add", "uncommitted.txt")
    return root


def test_blame_file(repo: Path) -> None:
    lines = blame_file(repo, "dir/b.txt")

    assert len(lines) == 20
    assert [line.author_email for line in lines].count(X) == 5
    assert all(line.timestamp is not None for line in lines)


def test_find_repo_root_from_subdirectory(repo: Path) -> None:
    assert find_repo_root(repo / "dir") == repo.resolve()


def test_scan_example_repository(repo: Path) -> None:
    root_path = find_repo_root(repo)
    criteria = build_criteria(emails=[X])
    paths = list_tracked_files(root_path)

    scan = OwnershipScan(root_path, criteria, jobs=2)
    root = finalize(scan.run(paths), criteria)
    nodes = {n.path: n for n in flatten(root)}

    assert set(paths) == {"a.txt", "dir/b.txt", "logo.bin", "uncommitted.txt"}
    # Binary and not-yet-committed files can't be blamed
    assert scan.skipped == 2
    assert set(nodes) == {"a.txt", "dir/b.txt"}
    assert nodes["a.txt"].percentage == 100.0
    assert nodes["dir/b.txt"].percentage == 25.0
    assert root.children[1].percentage == 25.0
    assert root.percentage == 50.0


def test_max_age_lowers_ownership(repo: Path) -> None:
    root_path = find_repo_root(repo)
    paths = list_tracked_files(root_path)

    everything = finalize(OwnershipScan(root_path, build_criteria(emails=[X])).run(paths))
    recent_criteria = build_criteria(emails=[X], max_age="1y", only_owned=False)
    recent = finalize(OwnershipScan(root_path, recent_criteria).run(paths), recent_criteria)

    assert recent_criteria.max_age == timedelta(days=365.25)
    assert recent.total == everything.total == 30
    assert recent.owned == 10
    assert recent.percentage < everything.percentage


def test_list_tracked_files_limited_to_dir(repo: Path) -> None:
    assert list_tracked_files(repo.resolve(), repo / "dir") == ["dir/b.txt"]


def test_main_uses_configured_email(repo: Path, capsys: pytest.CaptureFixture) -> None:
    result = __main__.main([str(repo), "--json", "--flat", "--no-progress"])
    data = json.loads(capsys.readouterr().out)

    assert result == 0
    assert [(e["path"], e["percentage"]) for e in data] == [("a.txt", 100.0), ("dir/b.txt", 25.0)]


def test_main_show_authors(repo: Path, capsys: pytest.CaptureFixture) -> None:
    result = __main__.main([str(repo), "--show-authors", "--json", "--no-progress"])
    data = json.loads(capsys.readouterr().out)

    assert result == 0
    assert data["authors"] == [X, Y]


def test_main_outside_repository(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    outside = tmp_path / "plain"
    outside.mkdir()
    env = {"GIT_CEILING_DIRECTORIES": str(tmp_path)}

    with pytest.MonkeyPatch.context() as mp:
        for key, value in env.items():
            mp.setenv(key, value)
        result = __main__.main([str(outside), "--email", X])

    assert result == 1
    assert "Not a git repository" in capsys.readouterr().err


def test_main_show_authors_with_max_age(repo: Path, capsys: pytest.CaptureFixture) -> None:
    result = __main__.main([str(repo), "--show-authors", "--max-age", "1y", "--json", "--no-progress"])
    data = json.loads(capsys.readouterr().out)

    assert result == 0
    # Only a.txt was committed recently
    assert data["tree"]["total"] == 30
    assert data["tree"]["authors"] == [[X, 10]]
    assert data["authors"] == [X]


def test_main_prints_non_utf8_path(repo: Path, capsys: pytest.CaptureFixture) -> None:
    with open(os.path.join(os.fsencode(repo), b"caf\xe9.txt"), "wb") as f:
        f.write(b"one\ntwo\n")
    _commit(repo, "add non-utf8 name", X)

    result = __main__.main([str(repo), "--no-progress", "--flat"])
    out = capsys.readouterr().out

    assert result == 0
    assert "100.0% - caf�.txt" in out
