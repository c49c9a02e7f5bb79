"""CLI entry point for git-ownership."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import asdict
from pathlib import Path

from . import __version__
from .analysis import distinct_authors, finalize, flatten
from .display import (
    print_empty,
    print_flat,
    print_flat_authors,
    print_footer,
    print_header,
    print_tree,
)
from .errors import InvalidFilterInput, OwnershipError
from .filters import build_criteria
from .parser import (
    find_repo_root,
    get_configured_email,
    get_default_branch,
    get_repo_name,
    list_tracked_files,
)
from .scan import OwnershipScan, default_jobs

logger = logging.getLogger("git_ownership")

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="git-ownership",
        description="List the files and directories that currently have lines that were changed by you.",
    )
    p.add_argument(
        "repo",
        nargs="?",
        default=".",
        help="Path inside the git repository (default: current directory)",
    )
    p.add_argument(
        "--email",
        action="append",
        default=[],
        help="Your email address. Can be repeated. Defaults to git's user.email",
    )
    p.add_argument(
        "--show-authors",
        action="store_true",
        help="Show the top authors of each file or directory",
    )
    p.add_argument(
        "--max-authors",
        type=int,
        default=None,
        help="Authors shown per entry with --show-authors (default: 3)",
    )
    p.add_argument(
        "--flat",
        action="store_true",
        help="Show percentage per file instead of a tree",
    )
    p.add_argument(
        "--max-age",
        type=str,
        default=None,
        help="Don't count lines from commits older than this (e.g. '6M', '2w')",
    )
    p.add_argument(
        "--all",
        action="store_true",
        help="Include files with no lines changed by you",
    )
    p.add_argument(
        "--reverse",
        action="store_true",
        help="Start with the smallest percentage",
    )
    p.add_argument(
        "--dir", "-d",
        type=str,
        default=None,
        help="Limit to this directory, relative to the repository path (default: the whole repository)",
    )
    p.add_argument(
        "--ignore-user",
        action="append",
        default=[],
        help="Email whose lines are not counted at all. Can be repeated.",
    )
    p.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Don't print deeper than this into the tree",
    )
    p.add_argument(
        "--jobs", "-j",
        type=int,
        default=default_jobs(),
        help="Files blamed in parallel (default: number of CPUs)",
    )
    p.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output results as JSON",
    )
    p.add_argument(
        "--no-progress",
        action="store_true",
        help="Don't display progress",
    )
    p.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Verbose mode (-v, -vv), disables progress",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"git-ownership {__version__}",
    )
    return p


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    parser = _build_parser()
    ns = parser.parse_args(args)

    if ns.show_authors:
        for flag, value in (("--email", ns.email), ("--all", ns.all), ("--reverse", ns.reverse)):
            if value:
                parser.error(f"{flag} cannot be used with --show-authors")
    elif ns.max_authors is not None:
        parser.error("--max-authors requires --show-authors")
    if ns.flat and ns.max_depth is not None:
        parser.error("--max-depth cannot be used with --flat")
    if ns.max_authors is None:
        ns.max_authors = 3
    if ns.max_authors < 1:
        parser.error("--max-authors must be at least 1")
    if ns.jobs < 1:
        parser.error("--jobs must be at least 1")
    if ns.max_depth is not None and ns.max_depth < 0:
        parser.error("--max-depth must not be negative")
    return ns


def _setup_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT, stream=sys.stderr)


def _progress_writer(args: argparse.Namespace):
    if args.no_progress or args.verbose or not sys.stderr.isatty():
        return None

    def report(done: int, total: int) -> None:
        sys.stderr.write(f"\r  Blaming files... {done:,}/{total:,}")
        if done == total:
            sys.stderr.write("\n")
        sys.stderr.flush()

    return report


def _run(args: argparse.Namespace) -> int:
    repo_root = find_repo_root(args.repo)
    logger.info("repo: %s", repo_root)

    if args.show_authors:
        emails: list[str] = []
    elif args.email:
        emails = args.email
    else:
        configured = get_configured_email(repo_root)
        if configured is None:
            raise InvalidFilterInput("no --email given and git user.email is not configured")
        emails = [configured]

    criteria = build_criteria(
        emails=emails,
        max_age=args.max_age,
        only_owned=not (args.all or args.show_authors),
        ignored=args.ignore_user,
    )
    if criteria.emails:
        logger.info("Looking for lines made by email(s) %s", list(criteria.emails))
    if criteria.max_age is not None:
        logger.info("max age: %s", criteria.max_age)

    limit_dir = None
    if args.dir is not None:
        limit_dir = Path(args.repo) / args.dir
    paths = list_tracked_files(repo_root, limit_dir)
    if args.dir is not None:
        logger.info("blaming limited to %s", args.dir)

    t0 = time.time()
    scan = OwnershipScan(repo_root, criteria, jobs=args.jobs, on_progress=_progress_writer(args))
    tree = scan.run(paths)
    logger.info("done blaming in %.1fs", time.time() - t0)

    root = finalize(tree, criteria, reverse=args.reverse)

    if args.json_output:
        if args.flat and not args.show_authors:
            output: object = [asdict(e) for e in flatten(root, reverse=args.reverse)]
        else:
            output = asdict(root)
        if args.show_authors:
            output = {"authors": distinct_authors(tree), "tree": output}
        json.dump(output, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 0

    print_header(
        get_repo_name(repo_root),
        get_default_branch(repo_root),
        len(paths) - scan.skipped,
        criteria.emails,
        criteria.max_age,
    )

    if args.show_authors:
        if args.flat:
            print_flat_authors(root, args.max_authors)
        else:
            print_tree(root, args.max_depth, show_authors=True, max_authors=args.max_authors)
    elif not root.children:
        print_tree(root)
        print_empty()
    elif args.flat:
        print_flat(flatten(root, reverse=args.reverse))
    else:
        print_tree(root, args.max_depth)

    print_footer(len(distinct_authors(tree)), scan.skipped)
    return 0


def main(cli_args: list[str] | None = None) -> int:
    args = parse_args(cli_args)
    _setup_logging(args.verbose)

    try:
        return _run(args)
    except OwnershipError as e:
        sys.stderr.write(f"\n  Error: {e}\n\n")
        return 1
    except KeyboardInterrupt:
        sys.stderr.write("\n  Interrupted.\n")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
