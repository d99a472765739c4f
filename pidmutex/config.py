import configparser
import os

CONFIG_DIR = os.path.expanduser(os.environ.get('PIDMUTEX_CONFIG_DIR', '~/.config/pidmutex'))
CONFIG_FILE = os.path.join(CONFIG_DIR, 'config.ini')

DEFAULT_CONFIG = {
    'General': {
        'lock_dir': '~/.cache/pidmutex',
    },
    'Acquire': {
        'timeout_seconds': '0',  # 0 = wait forever
        'retry_delay_ms': '10',
    }
}

def get_config():
    """Settings from CONFIG_FILE layered over DEFAULT_CONFIG. Reading never creates the file."""
    config = configparser.ConfigParser()
    config.read_dict(DEFAULT_CONFIG)
    config.read(CONFIG_FILE)  # a missing file is skipped
    return config

def update_setting(section, key, value):
    """Writes one setting to CONFIG_FILE, creating it on first use.

    Only settings changed this way end up in the file.
    """
    stored = configparser.ConfigParser()
    stored.read(CONFIG_FILE)
    if not stored.has_section(section):
        stored.add_section(section)
    stored.set(section, key, str(value))
    os.makedirs(os.path.dirname(CONFIG_FILE), exist_ok=True)
    with open(CONFIG_FILE, 'w') as f:
        stored.write(f)

# --- Helper accessors ---

def get_lock_dir():
    path = os.path.expanduser(get_config()['General']['lock_dir'])
    os.makedirs(path, exist_ok=True)
    return path

def get_timeout():
    """Seconds open_or_create may spend racing; None means no limit."""
    seconds = get_config().getfloat('Acquire', 'timeout_seconds')
    return seconds if seconds > 0 else None

def get_retry_delay():
    return get_config().getint('Acquire', 'retry_delay_ms') / 1000.0

def resolve_lock_path(target):
    """A bare name like 'myapp' maps to <lock_dir>/myapp.pid, anything else is a path."""
    if os.sep in target or (os.altsep and os.altsep in target) or target.endswith('.pid'):
        return os.path.abspath(os.path.expanduser(target))
    return os.path.join(get_lock_dir(), f'{target}.pid')
