"""Registry for CLI subcommands."""

from .schedule_command import ScheduleCommand
from .update_command import UpdateCommand
from .updatemod_command import UpdateModCommand

COMMANDS = (
    UpdateCommand,
    UpdateModCommand,
    ScheduleCommand,
)

__all__ = ["COMMANDS", "UpdateCommand", "UpdateModCommand", "ScheduleCommand"]
