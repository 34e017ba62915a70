"""Shared CLI helpers for arktools commands."""

import contextlib
import signal
import sys
import threading
from typing import Iterator, Optional, TextIO

from arktools.common.config import ArkSettings
from arktools.common.constants import ExitCodes
from arktools.common.errors import (
    ConfigError,
    FormatError,
    InstallError,
    SteamCmdCancelledError,
    SteamCmdError,
    WorkshopLookupError,
)
from arktools.core.steamcmd import SteamCmd


def exit_with_error(message: str, exit_code: int) -> None:
    """Print an error message and exit with the specified code."""
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(exit_code)


def map_exception_to_exit_code(exc: Exception) -> Optional[int]:
    """Translate known exceptions to arktools exit codes."""
    if isinstance(exc, SteamCmdCancelledError):
        return ExitCodes.CANCELLED
    if isinstance(exc, SteamCmdError):
        return ExitCodes.STEAMCMD_FAILED
    if isinstance(exc, WorkshopLookupError):
        return ExitCodes.WORKSHOP_LOOKUP_FAILED
    if isinstance(exc, FormatError):
        return ExitCodes.FORMAT_ERROR
    if isinstance(exc, InstallError):
        return ExitCodes.INSTALL_FAILED
    if isinstance(exc, ConfigError):
        return ExitCodes.CONFIG_ERROR
    return None


def get_settings(args) -> ArkSettings:
    settings = getattr(args, "settings", None)
    if not isinstance(settings, ArkSettings):
        settings = ArkSettings()
    return settings


@contextlib.contextmanager
def open_output(target: str) -> Iterator[TextIO]:
    """Yield stdout for ``"stdout"``, otherwise a file opened for writing."""
    if target == "stdout":
        yield sys.stdout
        return
    try:
        handle = open(target, "w", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot open output file {target}: {exc}") from exc
    with handle:
        yield handle


@contextlib.contextmanager
def cancel_on_signals() -> Iterator[threading.Event]:
    """Set the yielded event on SIGINT/SIGTERM instead of raising."""
    event = threading.Event()

    def _handler(_sig, _frame):
        event.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield event
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def build_steamcmd(settings: ArkSettings, output: TextIO, cancel_event: Optional[threading.Event] = None) -> SteamCmd:
    return SteamCmd(
        settings.steamcmd(),
        settings.install_dir(),
        output=output,
        cancel_event=cancel_event,
    )


def exit_for_exception(exc: Exception, action: str) -> None:
    """Report ``exc`` on stderr and exit with its mapped code."""
    exit_code = map_exception_to_exit_code(exc)
    if exit_code is None:
        exit_code = ExitCodes.GENERAL_FAILURE
    if isinstance(exc, SteamCmdCancelledError):
        message = f"{action} cancelled."
    else:
        message = f"{action} failed: {exc}"
    exit_with_error(message, exit_code)
