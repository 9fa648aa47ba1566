"""Git checks run before a reproducible build."""

from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path

from nearbuild.errors import BuildError

WARN_BECOMES_ERR = "This WARNING becomes a hard ERROR when deploying contract with docker."

_CLONE_ATTEMPTS = 5
_BETWEEN_ATTEMPTS_SLEEP = 0.1

_RED = "31"
_GREEN = "32"
_YELLOW = "33"


def _style(text: str, code: str) -> str:
    isatty = getattr(sys.stdout, "isatty", None)
    if "NO_COLOR" in os.environ or not (isatty and isatty()):
        return text
    return f"\x1b[{code}m{text}\x1b[0m"


def _run_git(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(["git", *args], cwd=cwd, capture_output=True)


def _git_output(args: list[str], cwd: Path, context: str) -> str:
    try:
        proc = _run_git(args, cwd)
    except OSError as err:
        raise BuildError(f"{context}: {err}") from err
    if proc.returncode != 0:
        stderr = os.fsdecode(proc.stderr or b"").strip()
        raise BuildError(f"{context}: {stderr}")
    return os.fsdecode(proc.stdout or b"")


def _parse_porcelain(output: str) -> list[str]:
    """Paths from ``git status --porcelain=v1 -z`` output."""
    paths = []
    entries = iter(output.split("\0"))
    for entry in entries:
        if len(entry) < 4:
            continue
        status, path = entry[:2], entry[3:]
        if status[0] in "RC":
            next(entries, None)  # the original path of a rename or copy
        paths.append(path)
    return paths


def _submodule_paths(workdir: Path) -> list[str]:
    output = _git_output(
        ["submodule", "status"], workdir, f"Failed to list submodules of repo {workdir}"
    )
    paths = []
    for line in output.splitlines():
        fields = line[1:].split(" ")
        if len(fields) >= 2:
            paths.append(fields[1])
    return paths


def _collect(root: Path, files: list[Path]) -> None:
    context = f"Failed to retrieve git status from repo {root}"
    workdir = Path(_git_output(["rev-parse", "--show-toplevel"], root, context).strip())
    status = _git_output(
        [
            "status",
            "--porcelain=v1",
            "-z",
            "--untracked-files=all",
            "--ignore-submodules=all",
        ],
        workdir,
        context,
    )
    files.extend(workdir / path for path in _parse_porcelain(status))
    for sub in _submodule_paths(workdir):
        sub_root = workdir / sub
        # submodules that are not initialized are skipped
        if (sub_root / ".git").exists():
            _collect(sub_root, files)


def dirty_files(repo_root) -> list[Path]:
    """Modified and untracked, not ignored, files of the repository and its submodules."""
    files: list[Path] = []
    _collect(Path(repo_root), files)
    return files


def check_dirty(repo_root) -> None:
    """Raise ``BuildError`` listing uncommitted files, if there are any."""
    files = dirty_files(repo_root)
    if not files:
        return
    listing = "\n".join(json.dumps(str(path), ensure_ascii=False) for path in files)
    raise BuildError(
        f"{len(files)} files in the working directory contain changes that were "
        f"not yet committed into git:\n\n{listing}"
    )


def check_then_handle(deploy: bool, repo_root) -> None:
    """Check for uncommitted changes: an error when deploying, a warning otherwise."""
    try:
        check_dirty(repo_root)
    except BuildError as err:
        if deploy:
            print(
                _style(
                    "Either commit and push, or revert following changes to continue "
                    "deployment:",
                    _YELLOW,
                )
            )
            raise
        print()
        print(f"{_style('WARNING', _RED)}: {_style(str(err), _YELLOW)}")
        time.sleep(3)
        print()
        print(_style(WARN_BECOMES_ERR, _RED))
        time.sleep(5)


def check_pushed_to_remote(git_url: str, commit_id: str) -> None:
    """Clone ``git_url`` and make sure it contains ``commit_id``."""
    for attempt in range(1, _CLONE_ATTEMPTS + 1):
        with tempfile.TemporaryDirectory() as tmp:
            destination = Path(tmp)
            print(f" {_style(f'Clone attempt {attempt}:', _GREEN)} `{git_url}` -> `{destination}`")
            try:
                proc = _run_git(["clone", "--recurse-submodules", git_url, str(destination)])
                error = None if proc.returncode == 0 else os.fsdecode(proc.stderr or b"").strip()
            except OSError as err:
                error = repr(err)
            if error is not None:
                print(f" {_style('Encountered error:', _YELLOW)} {error}")
                time.sleep(_BETWEEN_ATTEMPTS_SLEEP)
                continue

            print(f" {_style('Checking if HEAD is present...', _GREEN)}")
            try:
                found = _run_git(["cat-file", "-e", f"{commit_id}^{{commit}}"], destination)
            except OSError as err:
                raise BuildError(f"failed to inspect the cloned repo: {err}") from err
            if found.returncode != 0:
                raise BuildError(
                    "commit wasn't found in remote repo. Please, push the changes to the "
                    "remote repository so reproducible builds become possible"
                )
            print(
                f" {_style('commit was found in repo:', _GREEN)} {commit_id} in "
                f"`{git_url}` -> `{destination / '.git'}`"
            )
            return

    raise BuildError(
        f"Failed to verify that HEAD was pushed by cloning {git_url}. Exceeded max attempts.\n"
        "Try setting `package.repository` of your contract to point to the remote of "
        "your repository."
    )