# -*- coding: utf-8 -*-
"""
Command Line - ``geodetect run CONFIG.yaml``.

Usage
-----
    geodetect run ships.yaml
    geodetect run ships.yaml --quiet
    geodetect run ships.yaml --log-level DEBUG

Exits with status 0 on a completed or user-stopped run, 1 on any
configuration or processing error. Ctrl-C stops the run early and still
writes the features found so far.

Author
------
Duane Smalley, PhD
duane.d.smalley@gmail.com

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-03-13

Modified
--------
2026-03-16
"""

# Standard library
import argparse
import logging
import signal
import sys
from typing import List, Optional

# geodetect internal
from geodetect import __version__
from geodetect.app import DetectionRun
from geodetect.config import RunConfig
from geodetect.exceptions import GeodetectError
from geodetect.pipeline.monitor import TqdmProgressDisplay

logger = logging.getLogger('geodetect')


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog='geodetect',
        description="Detect objects in geospatial imagery with a trained model.",
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest='command', required=True)

    run = commands.add_parser('run', help="Run detection from a YAML configuration.")
    run.add_argument('config', help="Run configuration (YAML).")
    run.add_argument(
        '--quiet', action='store_true',
        help="No progress display or summary.",
    )
    run.add_argument(
        '--log-level', default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help="Logging level (default: INFO).",
    )
    return parser.parse_args(argv)


def run_command(args: argparse.Namespace) -> int:
    config = RunConfig.from_yaml(args.config)
    if args.quiet:
        config.quiet = True

    display = None if config.quiet else TqdmProgressDisplay()
    if display is not None:
        previous = signal.signal(signal.SIGINT, lambda *_: display.request_stop())
    try:
        report = DetectionRun(config, display).run()
    finally:
        if display is not None:
            signal.signal(signal.SIGINT, previous)
    logger.debug("Run %s", report.status.value)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='[%(asctime)s] [%(levelname)s] %(message)s',
    )
    try:
        return run_command(args)
    except (GeodetectError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
