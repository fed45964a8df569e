#!/usr/bin/env python3
"""Experience tracker CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from tracker.lib.config import load_config
from tracker.lib.errors import ConfigError
from tracker.lib.store import JsonStore
from tracker.lib.validate import ValidationError
from tracker.commands import add as cmd_add_module
from tracker.commands import mark as cmd_mark_module
from tracker.commands import pause as cmd_pause_module
from tracker.commands import status as cmd_status_module

DEFAULT_STORE = "clients.json"
DEFAULT_ENV = "tracker.env"


def get_store(args):
    """Load config and open the JSON store. Exits with code 2 on config errors."""
    env_path = Path(args.config) if args.config else None
    if env_path is None and Path(DEFAULT_ENV).exists():
        env_path = Path(DEFAULT_ENV)

    try:
        config = load_config(env_path)
    except ConfigError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    return JsonStore(Path(args.store), config), config


def _run(handler, args):
    store, config = get_store(args)
    try:
        return handler(args, store, config)
    except ValidationError as e:
        print(f"ERROR: Invalid store data: {e}", file=sys.stderr)
        return 2


def cmd_status(args):
    return _run(cmd_status_module.cmd_status, args)


def cmd_add(args):
    return _run(cmd_add_module.cmd_add, args)


def cmd_mark(args):
    return _run(cmd_mark_module.cmd_mark, args)


def cmd_pause(args):
    return _run(cmd_pause_module.cmd_pause, args)


def cmd_resume(args):
    return _run(cmd_pause_module.cmd_resume, args)


def main(argv=None):
    parser = argparse.ArgumentParser(prog='xt', description='Client experience deadline tracker')
    parser.add_argument('--store', '-s', default=DEFAULT_STORE, help='Path to JSON store')
    parser.add_argument('--config', '-c', help=f'Path to env config (default: ./{DEFAULT_ENV} if present)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show engine log messages')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # xt status
    p_status = subparsers.add_parser('status', help='Show deadlines and countdowns')
    p_status.add_argument('--client', help='Client ID (default: all active clients)')
    p_status.add_argument('--all', '-a', action='store_true', help='Include archived clients')
    p_status.add_argument('--now', help='Evaluate at this ISO 8601 instant instead of the clock')
    p_status.set_defaults(func=cmd_status)

    # xt add
    p_add = subparsers.add_parser('add', help='Onboard a client')
    p_add.add_argument('name', help='Client name')
    p_add.add_argument('signed_on', help='Signed-on date (YYYY-MM-DD)')
    p_add.add_argument('--intake', help='Initial intake date (YYYY-MM-DD) for the monthly series')
    p_add.set_defaults(func=cmd_add)

    # xt mark
    p_mark = subparsers.add_parser('mark', help='Set an experience status')
    p_mark.add_argument('client', help='Client ID')
    p_mark.add_argument('experience', help="Experience ID, kind (e.g. day10) or 'monthly:N'")
    p_mark.add_argument('status', choices=['pending', 'yes', 'no'], help='New raw status')
    p_mark.set_defaults(func=cmd_mark)

    # xt pause / resume
    p_pause = subparsers.add_parser('pause', help="Pause a client's timers")
    p_pause.add_argument('client', help='Client ID')
    p_pause.set_defaults(func=cmd_pause)

    p_resume = subparsers.add_parser('resume', help="Resume a client's timers")
    p_resume.add_argument('client', help='Client ID')
    p_resume.set_defaults(func=cmd_resume)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
