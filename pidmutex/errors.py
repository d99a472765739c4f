class PIDFileError(Exception):
    """Base class for PID file errors."""


class AlreadyExistsError(PIDFileError, FileExistsError):
    """The lock file already exists (another instance won the creation race)."""


class PIDFormatError(PIDFileError, ValueError):
    """The lock file does not contain a single decimal PID."""


class PIDOverflowError(PIDFileError, OverflowError):
    """The PID in the lock file does not fit in a process id."""


class LockTimeoutError(PIDFileError, TimeoutError):
    """open_or_create ran out of its time budget."""
