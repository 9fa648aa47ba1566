"""Locating a contract crate inside the git repository that holds it."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from nearbuild.errors import BuildError

logger = logging.getLogger(__name__)

_GREEN = "32"


def _style(text: str, code: str) -> str:
    isatty = getattr(sys.stdout, "isatty", None)
    if "NO_COLOR" in os.environ or not (isatty and isatty()):
        return text
    return f"\x1b[{code}m{text}\x1b[0m"


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    try:
        env["GIT_CEILING_DIRECTORIES"] = str(Path.home())
    except RuntimeError:
        pass
    return env


def _git(args: list[str], cwd: Path) -> str:
    """Run git in ``cwd`` and return its standard output as text."""
    try:
        proc = subprocess.run(
            ["git", *args], cwd=cwd, capture_output=True, env=_git_env()
        )
    except OSError as err:
        raise BuildError(f"failed to run git in `{cwd}`: {err}") from err
    if proc.returncode != 0:
        stderr = os.fsdecode(proc.stderr or b"").strip()
        raise BuildError(f"git {' '.join(args)} failed in `{cwd}`: {stderr}")
    return os.fsdecode(proc.stdout or b"")


def _discover_toplevel(search_from: Path) -> Path:
    return Path(_git(["rev-parse", "--show-toplevel"], search_from).strip())


@dataclass(frozen=True)
class CrateInRepo:
    """A crate and the top-level git repository that contains it."""

    repo_root: Path
    #: Crate directory, a child of ``repo_root``.
    crate_root: Path
    #: Commit id of HEAD.
    head: str

    @classmethod
    def find(cls, initial_crate_root) -> "CrateInRepo":
        """Find the outermost repository holding ``initial_crate_root`` and its HEAD.

        The search continues upwards past each repository found, so that a
        crate inside a submodule is attributed to the top-level repository.
        """
        crate_root = Path(initial_crate_root)
        search_from = crate_root
        repo_root: Path | None = None
        while True:
            try:
                toplevel = _discover_toplevel(search_from)
            except BuildError:
                break
            repo_root = toplevel
            parent = toplevel.parent
            if parent == toplevel:
                break
            search_from = parent

        if repo_root is None:
            raise BuildError(f"Repo containing {crate_root} not found")

        head = _git(["rev-parse", "HEAD"], repo_root).strip()
        label = f"current HEAD ({repo_root / '.git'}):"
        print(f"{_style(label, _GREEN)} {head}")
        result = cls(repo_root=repo_root, crate_root=crate_root, head=head)
        logger.debug("crate in repo: %r", result)
        return result

    def host_relative_path(self) -> Path:
        """Path of the crate relative to the repository root, in host form."""
        if self.crate_root.is_absolute() != self.repo_root.is_absolute():
            raise BuildError("cannot compute crate's relative path in repo")
        try:
            return Path(os.path.relpath(self.crate_root, self.repo_root))
        except ValueError as err:
            raise BuildError("cannot compute crate's relative path in repo") from err

    def unix_relative_path(self) -> PurePosixPath:
        """Path of the crate relative to the repository root, with ``/`` separators."""
        host_relative = self.host_relative_path()
        path = PurePosixPath(*host_relative.parts)
        if path.is_absolute():
            raise BuildError(
                "crate's path in repo, expressed as a unix path, isn't relative : "
                f"{str(path)!r}"
            )
        return path