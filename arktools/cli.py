"""
Command Line Interface for arktools.

Provides CLI commands for ARK server and workshop mod updates.
"""

import argparse
import sys
from typing import List, Optional

from .cli_commands import COMMANDS
from .cli_helpers import exit_with_error
from .common.config import ArkSettings
from .common.constants import ExitCodes
from .common.errors import ConfigError
from .common.logging_config import configure_logging, get_logger

# argparse dest -> settings key
_OVERRIDE_KEYS = ("install_dir", "steamcmd", "appid", "mod_appid", "output", "check", "force", "verbose")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog='arktools',
        description='ARK Server Management Tools'
    )
    parser.add_argument('--config', default=None,
                        help='config file (default is $HOME/.arktools.yaml)')
    parser.add_argument('-v', '--verbose', action='store_true', help='verbose logging')
    parser.add_argument('--install-dir', dest='install_dir', default=None,
                        help='ARK server install dir (default is $HOME/ARK)')
    parser.add_argument('--steamcmd', default=None,
                        help='SteamCMD location (default is $HOME/steamcmd/steamcmd.sh)')
    parser.add_argument('-c', '--check', action='store_true', help='check mode')
    parser.add_argument('-f', '--force', action='store_true', help='force mode')
    parser.add_argument('--output', default=None, help='output execution result (default stdout)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    for command in COMMANDS:
        command.add_parser(subparsers)

    return parser


def main(args: Optional[List[str]] = None) -> None:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)
    """
    parser = create_parser()

    if args is None:
        args = sys.argv[1:]

    if not args:
        parser.print_help()
        sys.exit(ExitCodes.OK)

    parsed_args = parser.parse_args(args)
    overrides = {key: getattr(parsed_args, key, None) for key in _OVERRIDE_KEYS}
    try:
        parsed_args.settings = ArkSettings(overrides=overrides, config_path=parsed_args.config)
    except ConfigError as exc:
        exit_with_error(str(exc), ExitCodes.CONFIG_ERROR)

    configure_logging(parsed_args.settings.log_level())
    logger = get_logger(__name__)
    logger.debug(
        "install_dir=%s steamcmd=%s",
        parsed_args.settings.install_dir(),
        parsed_args.settings.steamcmd(),
    )

    if hasattr(parsed_args, 'func'):
        parsed_args.func(parsed_args)
    else:
        parser.print_help()
        sys.exit(ExitCodes.OK)


if __name__ == '__main__':
    main()
