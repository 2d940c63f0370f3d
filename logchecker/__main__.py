#!/usr/bin/env python3

"""\
logchecker - Watch log files for abnormal activity and send email alerts

Copyright (c) 2026  The logchecker authors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

from typing import Optional, get_args

import os
import sys
import json
import logging
import pydantic
import yaml

from os.path import abspath

from . import __version__
from .types import *
from .constants import *
from .schema import AppConfig
from .config import load_config
from .checker import LogChecker
from .errors import ConfigError
from .signals import install_stop_handlers
from .storage import store_names

def main(argv: Optional[list[str]] = None) -> None:
    from pathlib import Path
    import argparse

    is_root = os.geteuid() == 0
    esc_config_path = '$HOME/.logcheckerrc'
    esc_default_config_path = esc_config_path if not is_root else ROOT_CONFIG_PATH
    esc_default_log_format = DEFAULT_LOG_FORMAT.replace('%', '%%')
    esc_default_log_datefmt = DEFAULT_LOG_DATEFMT.replace('%', '%%')

    ap = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description='Watch log files for bursts or drops of matching lines and send email alerts.\n'
                    '\n'
                   f'The settings are read from `{esc_config_path}`, or if run as root from `{ROOT_CONFIG_PATH}`. '
                    'The settings file is YAML (or JSON).',
        epilog='Copyright (c) 2026 The logchecker authors\n'
               'This program comes with ABSOLUTELY NO WARRANTY.\n'
    )
    ap.add_argument('-v', '--version', default=False, action='store_true',
        help='Print version and exit.')
    ap.add_argument('--license', default=False, action='store_true',
        help='Show license information and exit.')
    ap.add_argument('--config', default=None, metavar='PATH',
        help=f'Read settings from PATH. [default: {esc_default_config_path}]')
    ap.add_argument('--check', default=False, action='store_true',
        help='Validate the settings, print them and exit.')
    ap.add_argument('--storage', default=None, choices=store_names(),
        help=f'State backend. [default: {DEFAULT_STORAGE}]')
    ap.add_argument('--storage-path', default=None, metavar='PATH',
        help='Database file of persistent state backends.')
    ap.add_argument('--logmails', default=None, choices=list(get_args(Logmails.__value__)),
        help='Log emails to the Python logger. '
             'never: never log emails, '
             'always: always log emails, '
             'onerror: log emails if sending failed, '
             'instead: log emails instead of sending them (useful for debugging). '
            f'[default: {DEFAULT_LOGMAILS}]')
    ap.add_argument('--debug', default=False, action='store_true',
        help='Log every poll. Same as --log-level=DEBUG.')
    ap.add_argument('--log-file', default=None, metavar='PATH',
        help='Logfile of logchecker itself. If not given writes to standard error.')
    ap.add_argument('--log-level', default=None, choices=list(logging.getLevelNamesMapping()),
        help='Log level of logchecker itself. [default: INFO]')
    ap.add_argument('--log-format', default=None, metavar='FORMAT',
        help=f'Format of log entries of logchecker itself. [default: {esc_default_log_format}]')
    ap.add_argument('--log-datefmt', default=None, metavar='DATEFMT',
        help=f'Format of the timestamp of log entries of logchecker itself. [default: {esc_default_log_datefmt}]')
    ap.add_argument('--pidfile', default=None, metavar='PATH',
        help="Write logchecker's PID to given file.")
    ap.add_argument('--config-schema', default=False, action='store_true',
        help='Dump config file schema and exit.')
    ap.add_argument('--output-format', type=str.upper, choices=get_args(OutputFormat.__value__), default='YAML',
        help='Format of --config-schema. [default: YAML]')
    args = ap.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if args.license:
        assert __doc__
        print(__doc__.strip())
        return

    if args.config_schema:
        schema = pydantic.TypeAdapter(AppConfig).json_schema()

        match args.output_format:
            case 'JSON':
                json.dump(schema, sys.stdout, indent=DEFAULT_OUTPUT_INDENT)
                print()

            case 'YAML':
                print(yaml.safe_dump(schema, indent=DEFAULT_OUTPUT_INDENT, sort_keys=False), end='')

            case _:
                raise ValueError(f'illegal output format: {args.output_format}')
        return

    config_path: str
    if args.config:
        config_path = abspath(args.config)
    elif is_root:
        config_path = ROOT_CONFIG_PATH
    else:
        config_path = str(Path.home() / '.logcheckerrc')

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    if args.storage is not None:
        config['storage'] = args.storage

    if args.storage_path is not None:
        config['storage_path'] = args.storage_path

    if args.logmails is not None:
        config['logmails'] = args.logmails

    log_config = config.get('log') or {}
    loglevel_name = args.log_level   if args.log_level   is not None else log_config.get('level', 'INFO')
    app_logfile   = args.log_file    if args.log_file    is not None else log_config.get('file')
    logformat     = args.log_format  if args.log_format  is not None else log_config.get('format',  DEFAULT_LOG_FORMAT)
    logdatefmt    = args.log_datefmt if args.log_datefmt is not None else log_config.get('datefmt', DEFAULT_LOG_DATEFMT)

    if args.debug:
        loglevel_name = 'DEBUG'

    loglevel = logging.getLevelNamesMapping().get(loglevel_name.upper())
    if loglevel is None:
        print(f'{config_path}: Illegal log level: {loglevel_name!r}', file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        filename = app_logfile,
        level    = loglevel,
        format   = logformat,
        datefmt  = logdatefmt,
    )

    checker = LogChecker(config, name=config_path)

    try:
        checker.validate()
    except ConfigError as exc:
        print(f'{config_path}: Configuration error: {exc}', file=sys.stderr)
        sys.exit(1)

    try:
        if args.check:
            print(checker)
            return

        if not config['services']:
            print(f'{config_path}: No services configured!', file=sys.stderr)
            sys.exit(1)

        pidfile: Optional[str] = args.pidfile if args.pidfile is not None else config.get('pidfile')
        if pidfile:
            with open(pidfile, 'w') as pidfilefp:
                pidfilefp.write(f'{os.getpid()}\n')

        install_stop_handlers(checker.stop)

        checker.run()
    finally:
        checker.close()

if __name__ == '__main__':
    main()
