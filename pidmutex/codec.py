"""PID text codec.

A PID file holds the ASCII decimal digits of a process id. Spaces, tabs and
line breaks around the number are tolerated; anything else is an error.
"""
import asyncio
import os

from pidmutex.compat import close_result, run_blocking
from pidmutex.errors import PIDFormatError, PIDOverflowError

MAX_PID = 2 ** 31 - 1
WHITESPACE = b' \t\r\n'
DIGITS = b'0123456789'
READ_FLAGS = os.O_RDONLY | getattr(os, 'O_BINARY', 0)


def encode_pid(pid):
    """Returns the bytes written to a PID file for pid."""
    if pid < 0 or pid > MAX_PID:
        raise PIDOverflowError(f"PID {pid} is out of range.")
    return str(pid).encode('ascii')


class PIDDecoder:
    """Incremental decoder, fed the file contents chunk by chunk."""

    def __init__(self):
        self.value = 0
        self.found = False
        self.terminated = False

    def feed(self, data):
        for byte in data:
            if byte in WHITESPACE:
                if self.found:
                    self.terminated = True
            elif byte in DIGITS:
                if self.terminated:
                    raise PIDFormatError("Multiple numbers in PID file.")
                self.found = True
                self.value = self.value * 10 + (byte - 0x30)
                if self.value > MAX_PID:
                    raise PIDOverflowError("PID in PID file is too large.")
            else:
                raise PIDFormatError(f"Invalid character 0x{byte:02X} in PID file.")

    def result(self):
        """The decoded PID, or None if no digits were seen."""
        return self.value if self.found else None


def decode_pid(data):
    decoder = PIDDecoder()
    decoder.feed(data)
    return decoder.result()


async def read_pid(path, chunk_size=32):
    """
    Reads and decodes the PID stored at path.
    Returns None if the file is empty, which usually means the owner has
    created it but not written its PID yet.
    Raises FileNotFoundError if the file is gone.
    """
    fd = await run_blocking(os.open, path, READ_FLAGS, on_abandon=close_result)
    pending = None
    try:
        decoder = PIDDecoder()
        while True:
            pending = asyncio.ensure_future(asyncio.to_thread(os.read, fd, chunk_size))
            chunk = await asyncio.shield(pending)
            if not chunk:
                break
            decoder.feed(chunk)
        return decoder.result()
    finally:
        if pending is not None and not pending.done():
            # cancelled mid-read; the worker thread still uses fd
            pending.add_done_callback(lambda _: os.close(fd))
        else:
            os.close(fd)
