"""Invoke tasks for the filecatalog checkout.

Run ``invoke --list`` to see them; each one goes through ``uv run`` so the
environment created by ``invoke sync`` is used.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
SCRATCH_DB = PROJECT_ROOT / ".scratch" / "catalog.sqlite3"


def _uv(ctx: Context, args: Sequence[str]) -> None:
    """Run ``uv`` with ``args`` quoted for the shell."""
    ctx.run(shlex.join(("uv", *args)), echo=True, pty=True)


@task
def sync(ctx: Context) -> None:
    """Install filecatalog with its dev extra into the uv environment."""
    _uv(ctx, ["sync", "--extra", "dev"])


@task(help={"k": "Only run tests matching this pytest -k expression."})
def tests(ctx: Context, k: str = "") -> None:
    """Run the test suite."""
    args = ["run", "pytest", "tests"]
    if k:
        args.extend(["-k", k])
    _uv(ctx, args)


@task(help={"fix": "Let ruff rewrite what it can."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Check formatting and lint ``src`` and ``tests`` with ruff."""
    _uv(ctx, ["run", "ruff", "format", "--check", "src", "tests"])
    _uv(ctx, ["run", "ruff", "check", "src", "tests", *(["--fix"] if fix else [])])


@task
def mypy(ctx: Context) -> None:
    """Type-check the package sources."""
    _uv(ctx, ["run", "mypy", "src"])


@task(
    help={
        "paths": "Space separated roots to crawl (directories or s3:// URLs).",
        "database_url": "Catalog database; defaults to a SQLite file under .scratch/.",
    }
)
def crawl(ctx: Context, paths: str = ".", database_url: str = "") -> None:
    """Crawl roots into a scratch catalog with verbose logging."""
    if not database_url:
        SCRATCH_DB.parent.mkdir(parents=True, exist_ok=True)
        database_url = f"sqlite+aiosqlite:///{SCRATCH_DB}"
    args = ["run", "filecatalog", "crawl", *shlex.split(paths)]
    _uv(ctx, [*args, "--database-url", database_url, "-v"])


@task(pre=[lint, mypy, tests])
def ci(ctx: Context) -> None:
    """Run lint, mypy and the tests, as CI does."""


namespace = Collection(sync, tests, lint, mypy, crawl, ci)
