"""Cross-platform PID files: an advisory, filesystem-backed singleton lock."""
from pidmutex.codec import PIDDecoder, decode_pid, encode_pid, read_pid
from pidmutex.compat import current_platform
from pidmutex.errors import (AlreadyExistsError, LockTimeoutError, PIDFileError,
                             PIDFormatError, PIDOverflowError)
from pidmutex.pidfile import PIDFile, create, open_or_create

__version__ = '0.1.0'

__all__ = [
    'AlreadyExistsError', 'LockTimeoutError', 'PIDDecoder', 'PIDFile', 'PIDFileError',
    'PIDFormatError', 'PIDOverflowError', 'create', 'current_platform', 'decode_pid',
    'encode_pid', 'open_or_create', 'read_pid',
]
