"""PID file acquisition.

create() claims a path with exclusive file creation. open_or_create() either
claims it or reports the PID of the live process that already did, removing
files left behind by processes that are gone.

Existence checks, reclamation and creation are separate filesystem
operations, so anything observed between them may be stale by the time the
next one runs. Every such inconsistency is answered by looping again.
"""
import asyncio
import errno
import logging
import os

from pidmutex.codec import encode_pid, read_pid
from pidmutex.compat import current_platform, names_file, run_blocking
from pidmutex.errors import AlreadyExistsError, LockTimeoutError

log = logging.getLogger(__name__)


class PIDFile:
    """
    Either ownership of a lock file this process created (owned is True),
    or the PID another process recorded in it (owned is False).
    """

    def __init__(self, path, pid, fd=None, platform=None):
        self._path = path
        self._pid = pid
        self._fd = fd
        self._platform = platform or current_platform()

    @property
    def pid(self):
        return self._pid

    @property
    def owned(self):
        return self._fd is not None

    @property
    def path(self):
        return self._path

    def release(self):
        """Closes the lock file and removes it. Safe to call more than once."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        self._platform.remove_owned(self._path, fd)
        log.debug("Released PID file %s", self._path)

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.release()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_):
        self.release()

    def __repr__(self):
        return f"PIDFile(path={self._path!r}, pid={self._pid}, owned={self.owned})"


def _write_all(fd, data):
    while data:
        written = os.write(fd, data)
        data = data[written:]


def _create_locked(path, platform):
    try:
        fd = os.open(path, platform.create_flags, 0o644)
    except OSError as e:
        if platform.is_already_exists(e):
            raise AlreadyExistsError(errno.EEXIST, "PID file already exists", path) from e
        raise

    try:
        locked = platform.lock(fd)
    except BaseException:
        platform.remove_owned(path, fd)
        raise
    if not locked:
        # a reclaimer got to the empty file first and is about to remove it
        os.close(fd)
        raise AlreadyExistsError(errno.EEXIST, "PID file was claimed while being created", path)

    try:
        pid = os.getpid()
        _write_all(fd, encode_pid(pid))
        os.fsync(fd)
        if not names_file(path, fd):
            raise AlreadyExistsError(errno.EEXIST, "PID file was replaced while being created", path)
    except BaseException:
        platform.remove_owned(path, fd)
        raise

    log.debug("Created PID file %s for PID %d", path, pid)
    return PIDFile(path, pid, fd, platform)


def _release_result(task):
    if not task.cancelled() and task.exception() is None:
        task.result().release()


async def create(path, *, platform=None):
    """
    Creates the PID file at path and records this process's PID in it.
    Raises AlreadyExistsError if the file is already there.
    """
    platform = platform or current_platform()
    return await run_blocking(_create_locked, os.fspath(path), platform,
                              on_abandon=_release_result)


def _try_delete(path):
    try:
        os.unlink(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        log.debug("PID file %s is in use: %s", path, e)
        return False
    log.debug("Removed stale PID file %s", path)
    return True


def _reclaim(path, platform):
    """Returns True if no live process holds path any more."""
    if not platform.deletes_open_files:
        # deleting fails by itself while the owner keeps the file open
        return _try_delete(path)

    try:
        fd = os.open(path, os.O_WRONLY)
    except FileNotFoundError:
        return True
    except OSError as e:
        log.debug("PID file %s is not writable: %s", path, e)
        return False
    try:
        if not platform.lock(fd):
            return False
        if not names_file(path, fd):
            return False
        # delete while holding the lock so a new owner's file is never hit
        return _try_delete(path)
    finally:
        os.close(fd)


async def open_or_create(path, *, timeout=None, retry_delay=0.0, platform=None):
    """
    Returns an owned PIDFile if no live process holds path, otherwise a
    non-owned PIDFile carrying the holder's PID.

    timeout bounds the total time spent racing other processes (None or 0
    waits forever); retry_delay is slept between attempts.
    """
    platform = platform or current_platform()
    path = os.fspath(path)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout and timeout > 0 else None
    delay = 0

    while True:
        await asyncio.sleep(delay)
        delay = retry_delay
        if deadline is not None and loop.time() >= deadline:
            raise LockTimeoutError(f"Timed out acquiring PID file {path}")

        exists = await asyncio.to_thread(os.path.exists, path)
        if exists:
            exists = not await asyncio.to_thread(_reclaim, path, platform)

        if exists:
            try:
                pid = await read_pid(path)
            except FileNotFoundError:
                continue
            if pid is None:
                # owner has not written its PID yet
                continue
            log.debug("PID file %s is held by PID %d", path, pid)
            return PIDFile(path, pid)

        try:
            return await create(path, platform=platform)
        except AlreadyExistsError:
            continue
