"""Scheduled update command handling for the arktools CLI."""

import os

from arktools.cli_helpers import (
    build_steamcmd,
    cancel_on_signals,
    exit_for_exception,
    exit_with_error,
    get_settings,
    open_output,
)
from arktools.common.constants import ExitCodes
from arktools.common.errors import ArkToolsError
from arktools.core.steamcmd import run_mod_update, run_server_update
from arktools.core.update_scheduler import CronSchedule, run_update_scheduler


class ScheduleCommand:
    """Runs server and mod updates on a cron schedule."""

    @staticmethod
    def add_parser(subparsers) -> None:
        parser = subparsers.add_parser('schedule', help='Run update checks on a cron schedule')
        parser.add_argument('--cron', default=None,
                            help="Cron expression (default: $ARKTOOLS_UPDATE_CRON, e.g. '*/30 * * * *')")
        parser.add_argument('--skip-server', action='store_true', help='Only update mods')
        parser.add_argument('--appid', type=int, default=None, help='ARK AppId (default 376030)')
        parser.add_argument('--mod-appid', dest='mod_appid', type=int, default=None,
                            help='ARK Mod AppId (default 346110)')
        parser.set_defaults(func=ScheduleCommand.execute)

    @staticmethod
    def execute(args) -> None:
        settings = get_settings(args)
        expression = (args.cron or os.environ.get("ARKTOOLS_UPDATE_CRON", "")).strip()
        if not expression:
            exit_with_error("No cron expression given (use --cron or ARKTOOLS_UPDATE_CRON).", ExitCodes.CONFIG_ERROR)
        try:
            schedule = CronSchedule(expression)
        except ValueError as exc:
            exit_with_error(f"Invalid cron expression '{expression}': {exc}", ExitCodes.CONFIG_ERROR)

        try:
            with open_output(settings.output()) as output, cancel_on_signals() as cancel_event:
                def cycle() -> None:
                    steamcmd = build_steamcmd(settings, output, cancel_event)
                    if not args.skip_server:
                        run_server_update(
                            steamcmd, settings.app_id(), check=settings.check_only(), force=settings.force()
                        )
                    mod_ids = settings.mod_ids()
                    if mod_ids:
                        run_mod_update(
                            steamcmd, settings.mod_app_id(), mod_ids,
                            check=settings.check_only(), force=settings.force(),
                        )

                run_update_scheduler(schedule, cycle, stop_event=cancel_event)
        except ArkToolsError as exc:
            exit_for_exception(exc, "Scheduled update")
