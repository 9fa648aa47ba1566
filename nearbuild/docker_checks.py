"""Checks that docker works and that the build image can be pulled."""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Sequence

from nearbuild.errors import BuildError

ERR_SANITY = "`docker` sanity check failed!"
PERM_DENIED_STATUS = 126

_GREEN = "32"
_YELLOW = "33"
_MAGENTA = "35"
_CYAN = "36"


def _style(text: str, code: str) -> str:
    isatty = getattr(sys.stdout, "isatty", None)
    if "NO_COLOR" in os.environ or not (isatty and isatty()):
        return text
    return f"\x1b[{code}m{text}\x1b[0m"


def _non_docker_suggestion() -> str:
    return _style(
        "You can choose to opt out into non-docker build behaviour by using "
        "`--no-docker` flag.",
        _CYAN,
    )


def _print_installation_links() -> None:
    if sys.platform.startswith("linux"):
        print(
            _style("Please, follow instructions to correctly install Docker Engine from", _CYAN),
            _style("the official Docker Engine installation guide", _MAGENTA),
        )
        if is_wsl_linux():
            print()
            print(
                _style(
                    "Also the Docker Desktop WSL guide may be helpful as you're running "
                    "linux in WSL",
                    _CYAN,
                )
            )
    elif sys.platform == "darwin":
        print(
            _style("Please, follow instructions to correctly install Docker Desktop from", _CYAN),
            _style("the official Docker Desktop for Mac installation guide", _MAGENTA),
        )
    elif sys.platform in ("win32", "cygwin"):
        print(
            _style("Please, follow instructions to correctly install Docker Desktop from", _CYAN),
            _style("the official Docker Desktop for Windows installation guide", _MAGENTA),
        )
    else:
        print(
            _style(
                "Please, make sure to follow instructions to correctly install "
                "Docker Engine/Desktop from",
                _CYAN,
            ),
            _style("the official Docker Engine installation guide", _MAGENTA),
        )


def _linux_postinstall_steps() -> str:
    parts = [
        _style("Please, pay special attention to", _CYAN),
        _style("the Docker Engine post-installation steps for Linux", _MAGENTA),
        _style("section regarding your", _CYAN),
        f"`{_style('permission denied', _MAGENTA)}`",
        _style("problem", _CYAN),
    ]
    return " ".join(parts)


def _command_text(command: Sequence[str]) -> str:
    return " ".join(str(part) for part in command)


def _status_text(returncode: int) -> str:
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"


def handle_command_error(command: Sequence[str], error: OSError, message: str) -> None:
    """Explain why ``command`` could not be run, then raise ``BuildError(message)``."""
    print()
    if isinstance(error, FileNotFoundError):
        print(_style("`docker` executable isn't available", _YELLOW))
        _print_installation_links()
    else:
        print(
            _style(
                f"Error obtaining status from executing command `{_command_text(command)}`",
                _YELLOW,
            )
        )
        print(_style(f"Error `{error!r}`", _YELLOW))
    print(_non_docker_suggestion())
    raise BuildError(message) from error


def print_command_status(returncode: int, command: Sequence[str]) -> None:
    """Report that ``command`` exited with ``returncode``."""
    print()
    print(
        _style(
            "See output above ↑↑↑.\n"
            f"Command `{_command_text(command)}` failed with: {_status_text(returncode)}.",
            _YELLOW,
        )
    )
    print(_non_docker_suggestion())


def is_wsl_linux() -> bool:
    """Whether ``uname -a`` reports a Windows Subsystem for Linux kernel."""
    try:
        proc = subprocess.run(["uname", "-a"], capture_output=True)
    except OSError:
        return False
    if proc.returncode != 0:
        return False
    out = (proc.stdout or b"").decode("utf-8", errors="replace")
    return "microsoft" in out or "Microsoft" in out


def permission_denied(returncode: int | None, stderr: str) -> bool:
    """Whether a failed docker run looks like a permission problem."""
    code = returncode if returncode is not None else -1
    return code == PERM_DENIED_STATUS or "permission denied" in stderr.lower()


def sanity_check() -> None:
    """Run the ``hello-world`` image to make sure docker works."""
    command = ["docker", "run", "--rm", "hello-world"]
    try:
        proc = subprocess.run(command, capture_output=True)
    except OSError as err:
        handle_command_error(command, err, ERR_SANITY)
        return
    if proc.returncode == 0:
        return
    try:
        stderr = (proc.stderr or b"").decode("utf-8")
    except UnicodeDecodeError as err:
        raise BuildError(f"docker printed invalid UTF-8: {err}") from err
    print()
    print(_style(stderr, _YELLOW))
    if permission_denied(proc.returncode, stderr):
        print(_style("Permission denied!", _CYAN))
        _print_installation_links()
        print(_linux_postinstall_steps())
    else:
        _print_installation_links()
    print_command_status(proc.returncode, command)
    raise BuildError(ERR_SANITY)


def docker_pull_command(image: str) -> list[str]:
    """The command that pulls ``image``."""
    return ["docker", "image", "pull", image]


def pull_image(build_meta) -> None:
    """Pull the image pinned in the reproducible build settings."""
    image = build_meta.concat_image()
    print(_style("docker image to be used:", _GREEN), image)
    print()
    command = docker_pull_command(image)
    message = f"Image `{image}` could not be found in registry!"
    try:
        proc = subprocess.run(command)
    except OSError as err:
        handle_command_error(command, err, message)
        return
    if proc.returncode != 0:
        print_command_status(proc.returncode, command)
        raise BuildError(message)