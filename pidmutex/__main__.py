import argparse
import asyncio
import logging
import sys

from colorama import init, deinit
from termcolor import colored
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

import pidmutex.config as config
from pidmutex import __version__
from pidmutex.errors import PIDFileError
from pidmutex.pidfile import open_or_create


async def check_status(path, timeout, retry_delay):
    """Prints who holds the lock at path. Returns the exit code."""
    pidfile = await open_or_create(path, timeout=timeout, retry_delay=retry_delay)
    with pidfile:
        if pidfile.owned:
            print(colored(f"Free: no running instance holds {path}", "green"))
            return 0
        print(colored(f"Locked: {path} is held by PID {pidfile.pid}", "yellow"))
        return 1


async def run_locked(path, command, timeout, retry_delay):
    """Runs command while holding the lock at path. Returns the exit code."""
    pidfile = await open_or_create(path, timeout=timeout, retry_delay=retry_delay)
    with pidfile:
        if not pidfile.owned:
            print(colored(f"Error: already running (PID {pidfile.pid}, {path}).", "red"))
            return 1
        process = await asyncio.create_subprocess_exec(*command)
        return await process.wait()


def show_config():
    """Prints the current settings as a table."""
    table = Table(title=f"pidmutex settings ({config.CONFIG_FILE})")
    table.add_column("Section", style="cyan")
    table.add_column("Key")
    table.add_column("Value", style="green")
    current = config.get_config()
    for section in current.sections():
        for key, value in current.items(section):
            table.add_row(section, key, value)
    Console().print(table)


def build_parser():
    parser = argparse.ArgumentParser(
        prog='pidmutex',
        description='Single-instance locking with PID files',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help="Log every acquisition step")
    parser.add_argument('-t', '--timeout', type=float, metavar='seconds',
                        help="Give up acquiring after this many seconds (default from config)")
    sub = parser.add_subparsers(dest='command', required=True)

    status = sub.add_parser('status', help="Show whether a live instance holds the lock")
    status.add_argument('target', help="PID file path, or a name stored in the lock directory")

    run = sub.add_parser('run', help="Run a command while holding the lock")
    run.add_argument('target', help="PID file path, or a name stored in the lock directory")
    run.add_argument('cmd', nargs=argparse.REMAINDER, metavar='command',
                     help="Command to run (prefix with -- to pass options)")

    settings = sub.add_parser('config', help="Show or change settings")
    settings.add_argument('--set', nargs=3, metavar=('section', 'key', 'value'),
                          help="Update a single setting")
    return parser


def main(argv=None):
    init()
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s",
                            handlers=[RichHandler(show_path=False)])

    try:
        if args.command == 'config':
            if args.set:
                config.update_setting(*args.set)
                print("Settings saved.")
            show_config()
            return 0

        path = config.resolve_lock_path(args.target)
        timeout = args.timeout if args.timeout is not None else config.get_timeout()
        retry_delay = config.get_retry_delay()

        if args.command == 'status':
            return asyncio.run(check_status(path, timeout, retry_delay))

        command = args.cmd[1:] if args.cmd[:1] == ['--'] else args.cmd
        if not command:
            print(colored("Error: no command given.", "red"))
            return 2
        return asyncio.run(run_locked(path, command, timeout, retry_delay))
    except (PIDFileError, OSError) as e:
        print(colored(f"Error: {e}", "red"))
        return 2
    except KeyboardInterrupt:
        return 130
    finally:
        deinit()


if __name__ == "__main__":
    sys.exit(main())
