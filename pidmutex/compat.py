"""OS-specific pieces of the PID file protocol.

The acquisition loop in pidmutex.pidfile only asks a Platform whether open
files can be deleted out from under their owner, and whether an OSError means
"the file already exists". Both answers differ between Windows and POSIX.
"""
import asyncio
import errno
import logging
import os
import sys

if sys.platform != 'win32':
    import fcntl

# winerror values raised by CreateFile for an existing path
ERROR_FILE_EXISTS = 80
ERROR_ALREADY_EXISTS = 183

log = logging.getLogger(__name__)


class Platform:
    """Capability probe consumed by the acquisition loop."""

    deletes_open_files = True
    create_flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL

    def lock(self, fd):
        """Takes a non-blocking exclusive advisory lock on fd.

        Returns False if another open file holds it.
        """
        return True

    def remove_owned(self, path, fd):
        """Removes the file an owner created, then closes its descriptor."""
        try:
            if names_file(path, fd):
                os.unlink(path)
        finally:
            os.close(fd)

    def is_already_exists(self, error):
        return isinstance(error, FileExistsError) or error.errno == errno.EEXIST


class PosixPlatform(Platform):
    """Open files can be unlinked, so owners advertise themselves with flock."""

    deletes_open_files = True

    def lock(self, fd):
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        return True


class WindowsPlatform(Platform):
    """Files opened without FILE_SHARE_DELETE cannot be removed by others."""

    deletes_open_files = False
    create_flags = (os.O_WRONLY | os.O_CREAT | os.O_EXCL
                    | getattr(os, 'O_BINARY', 0) | getattr(os, 'O_NOINHERIT', 0))

    def lock(self, fd):
        # the share mode of the owner's handle already blocks deletion
        return True

    def remove_owned(self, path, fd):
        # our own handle blocks DeleteFile, so it has to be closed first
        try:
            same = names_file(path, fd)
        finally:
            os.close(fd)
        if not same:
            return
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except PermissionError as e:
            log.warning("Could not remove PID file %s: %s", path, e)

    def is_already_exists(self, error):
        if getattr(error, 'winerror', None) in (ERROR_FILE_EXISTS, ERROR_ALREADY_EXISTS):
            return True
        return super().is_already_exists(error)


def names_file(path, fd):
    """True if path still refers to the file open as fd."""
    try:
        return os.path.samestat(os.fstat(fd), os.stat(path))
    except FileNotFoundError:
        return False


def current_platform():
    """Returns the Platform for the running interpreter."""
    if sys.platform == 'win32':
        return WindowsPlatform()
    return PosixPlatform()


async def run_blocking(func, *args, on_abandon=None):
    """
    Runs a blocking call in a worker thread.
    If the awaiting task is cancelled while the call is still running,
    on_abandon is called with the finished worker future so a resource it
    produced can be cleaned up instead of leaked.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        if on_abandon is not None:
            task.add_done_callback(on_abandon)
        raise


def close_result(task):
    """on_abandon callback closing a file descriptor returned by os.open."""
    if not task.cancelled() and task.exception() is None:
        os.close(task.result())
