"""Exception types raised by the build tooling."""


class BuildError(Exception):
    """Raised when a build step, a check or a validation fails."""