"""Server update command handling for the arktools CLI."""

from arktools.cli_helpers import (
    build_steamcmd,
    cancel_on_signals,
    exit_for_exception,
    get_settings,
    open_output,
)
from arktools.common.errors import ArkToolsError
from arktools.core.steamcmd import run_server_update


class UpdateCommand:
    """Checks the ARK server against Steam and updates it."""

    @staticmethod
    def add_parser(subparsers) -> None:
        """Add update command parser to subparsers."""
        parser = subparsers.add_parser('update', help='Update ARK Server')
        parser.add_argument('--appid', type=int, default=None, help='ARK AppId (default 376030)')
        parser.set_defaults(func=UpdateCommand.execute)

    @staticmethod
    def execute(args) -> None:
        """Run the server update check and update."""
        settings = get_settings(args)
        try:
            with open_output(settings.output()) as output, cancel_on_signals() as cancel_event:
                steamcmd = build_steamcmd(settings, output, cancel_event)
                run_server_update(
                    steamcmd,
                    settings.app_id(),
                    check=settings.check_only(),
                    force=settings.force(),
                )
        except ArkToolsError as exc:
            exit_for_exception(exc, "Server update")
