from __future__ import annotations

import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from arktools.core.steps import (  # noqa: E402
    AppInfoState,
    Phase,
    ServerUpdateState,
    StepResponder,
    WorkshopState,
    app_info_step,
    server_update_step,
    workshop_step,
)

LOGIN_OK = "Logging in user 'anonymous' to Steam Public...OK\nWaiting for user info...OK"


def drive(step, state, outputs):
    """Feed ``outputs`` through ``step`` and collect the commands."""
    commands = []
    for output in outputs:
        state, command = step(state, output)
        commands.append(command)
    return state, commands


def test_app_info_sequence_and_capture():
    printed = (
        "app_info_print 376030\n"
        "AppID : 376030, change number : 1234/0, last change : Mon Jan  1 2024\n"
        '"376030"\n{\n\t"common"\n\t{\n\t}\n}'
    )
    state, commands = drive(
        lambda s, out: app_info_step(s, out, 376030),
        AppInfoState(),
        ["Loading Steam API...OK", "app_info_update 1", printed],
    )
    assert commands == ["app_info_update 1", "app_info_print 376030", "quit"]
    assert state.phase is Phase.DONE
    assert state.info.startswith('"376030"')


def test_server_update_success():
    state, commands = drive(
        lambda s, out: server_update_step(s, out, 376030, "/srv/ark"),
        ServerUpdateState(),
        ["", "force_install_dir /srv/ark", LOGIN_OK, "Success! App '376030' fully installed."],
    )
    assert commands == [
        "force_install_dir /srv/ark",
        "login anonymous",
        "app_update 376030 validate",
        "quit",
    ]
    assert state.phase is Phase.DONE
    assert state.logged_on and state.installed


def test_server_update_without_success_marker():
    state, commands = drive(
        lambda s, out: server_update_step(s, out, 376030, "/srv/ark"),
        ServerUpdateState(),
        ["", "", LOGIN_OK, "Error! App '376030' state is 0x202 after update job."],
    )
    assert commands[-1] == "quit"
    assert state.phase is Phase.DONE
    assert not state.installed


def test_server_update_login_not_confirmed():
    state, commands = drive(
        lambda s, out: server_update_step(s, out, 376030, "/srv/ark"),
        ServerUpdateState(),
        ["", "", "FAILED login with result code No Connection"],
    )
    assert commands == ["force_install_dir /srv/ark", "login anonymous", "quit"]
    assert state.phase is Phase.FAILED
    assert state.failure


def test_finished_state_keeps_quitting():
    state = ServerUpdateState(phase=Phase.DONE)
    assert server_update_step(state, "anything", 1, "/x") == (state, "quit")


def test_workshop_downloads_items_in_order():
    state, commands = drive(
        lambda s, out: workshop_step(s, out, 346110, "/srv/ark"),
        WorkshopState(pending=(111, 222)),
        [
            "",
            "",
            LOGIN_OK,
            "Downloading item 111 ...\nSuccess. Downloaded item 111 to \"/srv/ark/...\" (100 bytes)",
            "Success. Downloaded item 222 to \"/srv/ark/...\" (200 bytes)",
        ],
    )
    assert commands == [
        "force_install_dir /srv/ark",
        "login anonymous",
        "workshop_download_item 346110 111",
        "workshop_download_item 346110 222",
        "quit",
    ]
    assert state.phase is Phase.DONE
    assert state.downloaded == (111, 222)
    assert state.pending == ()


def test_workshop_missing_marker_fails_and_quits():
    state, commands = drive(
        lambda s, out: workshop_step(s, out, 346110, "/srv/ark"),
        WorkshopState(pending=(111, 222)),
        ["", "", LOGIN_OK, "ERROR! Download item 111 failed (Failure)."],
    )
    assert commands[-1] == "quit"
    assert state.phase is Phase.FAILED
    assert state.failed_item == 111
    assert state.downloaded == ()
    assert state.pending == (111, 222)


def test_workshop_with_nothing_pending_quits_after_login():
    state, commands = drive(
        lambda s, out: workshop_step(s, out, 346110, "/srv/ark"),
        WorkshopState(),
        ["", "", LOGIN_OK],
    )
    assert commands == ["force_install_dir /srv/ark", "login anonymous", "quit"]
    assert state.phase is Phase.DONE


def test_step_responder_tracks_state():
    responder = StepResponder(lambda s, out: app_info_step(s, out, 1), AppInfoState())
    assert responder("") == "app_info_update 1"
    assert responder.state.phase is Phase.APP_INFO_UPDATE
