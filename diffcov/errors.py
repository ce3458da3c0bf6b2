"""Exceptions raised by the diff-covered engine and its collaborators."""


class DiffCoveredError(Exception):
    """Base class for all diff-covered errors."""


class MalformedCoverageError(DiffCoveredError):
    """The coverage report does not have the Istanbul structure we expect."""


class ConfigurationError(DiffCoveredError):
    """An option or CI input could not be interpreted."""


class GitCommandError(DiffCoveredError):
    """A git invocation failed."""

    def __init__(self, command: list[str], returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"{' '.join(command)} exited with status {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)
