"""Workshop mod update command handling for the arktools CLI."""

from arktools.cli_helpers import (
    build_steamcmd,
    cancel_on_signals,
    exit_for_exception,
    get_settings,
    open_output,
)
from arktools.common.errors import ArkToolsError
from arktools.core.steamcmd import run_mod_update


class UpdateModCommand:
    """Checks workshop mods against their version records and updates them."""

    @staticmethod
    def add_parser(subparsers) -> None:
        """Add updatemod command parser to subparsers."""
        parser = subparsers.add_parser('updatemod', help='Update ARK workshop mods')
        parser.add_argument('modids', nargs='*', type=int, help='Mod ids to check (default: configured modids)')
        parser.add_argument('--mod-appid', dest='mod_appid', type=int, default=None,
                            help='ARK Mod AppId (default 346110)')
        parser.set_defaults(func=UpdateModCommand.execute)

    @staticmethod
    def execute(args) -> None:
        """Run the mod update check and update."""
        settings = get_settings(args)
        try:
            mod_ids = list(args.modids) or settings.mod_ids()
            if not mod_ids:
                print("No mod ids given; nothing to do.")
                return
            with open_output(settings.output()) as output, cancel_on_signals() as cancel_event:
                steamcmd = build_steamcmd(settings, output, cancel_event)
                run_mod_update(
                    steamcmd,
                    settings.mod_app_id(),
                    mod_ids,
                    check=settings.check_only(),
                    force=settings.force(),
                )
        except ArkToolsError as exc:
            exit_for_exception(exc, "Mod update")
