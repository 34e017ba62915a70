"""
SteamCMD conversation scripts as pure state transitions.

Each ``*_step`` function takes the current state and the output SteamCMD
printed since the last prompt, and returns the next state plus the command to
type. They never touch a process, so every sequence can be exercised with
plain strings. ``StepResponder`` adapts a step function to the callback
expected by :class:`arktools.core.session.SteamCmdSession`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Callable, Generic, Optional, Tuple, TypeVar

from arktools.common.constants import (
    APP_INSTALLED_MARKER,
    ITEM_DOWNLOADED_MARKER,
    LOGIN_OK_MARKER,
    STEAMCMD_QUIT,
)


class Phase(enum.Enum):
    """Last command sent to SteamCMD."""

    START = "start"
    INSTALL_DIR = "force_install_dir"
    LOGIN = "login"
    APP_INFO_UPDATE = "app_info_update"
    APP_INFO_PRINT = "app_info_print"
    DOWNLOAD = "download"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class AppInfoState:
    phase: Phase = Phase.START
    info: str = ""


@dataclass(frozen=True)
class ServerUpdateState:
    phase: Phase = Phase.START
    logged_on: bool = False
    installed: bool = False
    failure: Optional[str] = None


@dataclass(frozen=True)
class WorkshopState:
    pending: Tuple[int, ...] = ()
    downloaded: Tuple[int, ...] = ()
    phase: Phase = Phase.START
    logged_on: bool = False
    failed_item: Optional[int] = None
    failure: Optional[str] = None


def _strip_head_lines(output: str, count: int) -> str:
    for _ in range(count):
        index = output.find("\n")
        if index == -1:
            break
        output = output[index + 1:]
    return output


def app_info_step(state: AppInfoState, output: str, app_id: int) -> Tuple[AppInfoState, str]:
    """``app_info_update 1``, ``app_info_print <id>``, then capture and quit."""
    if state.phase is Phase.START:
        return replace(state, phase=Phase.APP_INFO_UPDATE), "app_info_update 1"
    if state.phase is Phase.APP_INFO_UPDATE:
        return replace(state, phase=Phase.APP_INFO_PRINT), f"app_info_print {app_id}"
    if state.phase is Phase.APP_INFO_PRINT:
        # drop the echoed command and the "AppID : ..., change number : ..." line
        return replace(state, phase=Phase.DONE, info=_strip_head_lines(output, 2)), STEAMCMD_QUIT
    return state, STEAMCMD_QUIT


def _login_steps(state, output: str, install_dir: str):
    """Shared prefix: force_install_dir then anonymous login.

    Returns ``(state, command)`` while the prefix is running, or
    ``(state, None)`` once logged on.
    """
    if state.phase is Phase.START:
        return replace(state, phase=Phase.INSTALL_DIR), f"force_install_dir {install_dir}"
    if state.phase is Phase.INSTALL_DIR:
        return replace(state, phase=Phase.LOGIN), "login anonymous"
    if state.phase is Phase.LOGIN and not state.logged_on:
        return replace(state, phase=Phase.FAILED, failure="anonymous login was not confirmed"), STEAMCMD_QUIT
    return state, None


def server_update_step(
    state: ServerUpdateState, output: str, app_id: int, install_dir: str
) -> Tuple[ServerUpdateState, str]:
    """force_install_dir, login, ``app_update <id> validate``, quit."""
    if state.phase in (Phase.DONE, Phase.FAILED):
        return state, STEAMCMD_QUIT

    if LOGIN_OK_MARKER in output:
        state = replace(state, logged_on=True)
    if APP_INSTALLED_MARKER.format(app_id=app_id) in output:
        state = replace(state, installed=True)

    state, command = _login_steps(state, output, install_dir)
    if command is not None:
        return state, command

    if state.phase is Phase.LOGIN:
        return replace(state, phase=Phase.DOWNLOAD), f"app_update {app_id} validate"
    return replace(state, phase=Phase.DONE), STEAMCMD_QUIT


def workshop_step(
    state: WorkshopState, output: str, app_id: int, install_dir: str
) -> Tuple[WorkshopState, str]:
    """force_install_dir, login, one ``workshop_download_item`` per pending item, quit.

    The next item is only requested after the success marker of the current
    one shows up; a missing marker ends the session as failed.
    """
    if state.phase in (Phase.DONE, Phase.FAILED):
        return state, STEAMCMD_QUIT

    if LOGIN_OK_MARKER in output:
        state = replace(state, logged_on=True)

    if state.phase is Phase.DOWNLOAD and state.pending:
        current = state.pending[0]
        if ITEM_DOWNLOADED_MARKER.format(item_id=current) not in output:
            return (
                replace(state, phase=Phase.FAILED, failed_item=current, failure=f"download of item {current} failed"),
                STEAMCMD_QUIT,
            )
        state = replace(state, pending=state.pending[1:], downloaded=state.downloaded + (current,))

    state, command = _login_steps(state, output, install_dir)
    if command is not None:
        return state, command

    if state.pending:
        return replace(state, phase=Phase.DOWNLOAD), f"workshop_download_item {app_id} {state.pending[0]}"
    return replace(state, phase=Phase.DONE), STEAMCMD_QUIT


S = TypeVar("S")


class StepResponder(Generic[S]):
    """Holds the state of one conversation and feeds it through ``step``."""

    def __init__(self, step: Callable[[S, str], Tuple[S, str]], initial: S):
        self.step = step
        self.state = initial

    def __call__(self, output: str) -> str:
        self.state, command = self.step(self.state, output)
        return command


__all__ = [
    "Phase",
    "AppInfoState",
    "ServerUpdateState",
    "WorkshopState",
    "app_info_step",
    "server_update_step",
    "workshop_step",
    "StepResponder",
]
