from __future__ import annotations

import io
import os
import struct
import sys
import zlib

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from arktools.common.constants import CONTAINER_MAGIC  # noqa: E402
from arktools.common.errors import (  # noqa: E402
    FormatError,
    SteamCmdDownloadError,
    SteamCmdLoginError,
    WorkshopLookupError,
)
from arktools.core.descriptor import ModDescriptor  # noqa: E402
from arktools.core.steamcmd import SteamCmd, run_mod_update, run_server_update  # noqa: E402
from arktools.core.ue4string import encode_string  # noqa: E402
from arktools.core.version_record import VersionRecord, read_version_record, write_version_record  # noqa: E402
from arktools.core.workshop import PublishedFileDetails  # noqa: E402

LOGIN_OK = "Waiting for user info...OK"

APP_INFO = (
    "app_info_print 376030\n"
    "AppID : 376030, change number : 6203/0, last change : Wed Aug  7 2019\n"
    '"376030"\n'
    "{\n"
    '\t"depots"\n'
    "\t{\n"
    '\t\t"376031"\n'
    "\t\t{\n"
    '\t\t\t"manifests"\n'
    "\t\t\t{\n"
    '\t\t\t\t"public"\t\t"4660701598619066954"\n'
    "\t\t\t}\n"
    "\t\t}\n"
    '\t\t"1006"\n'
    "\t\t{\n"
    '\t\t\t"manifests"\n'
    "\t\t\t{\n"
    '\t\t\t\t"public"\n'
    "\t\t\t\t{\n"
    '\t\t\t\t\t"gid"\t\t"6912453647411644579"\n'
    "\t\t\t\t}\n"
    "\t\t\t}\n"
    "\t\t}\n"
    "\t}\n"
    "}"
)


def app_manifest(depots):
    body = "".join(
        f'\t\t"{depot}"\n\t\t{{\n\t\t\t"manifest"\t\t"{manifest}"\n\t\t}}\n' for depot, manifest in depots.items()
    )
    return f'"AppState"\n{{\n\t"appid"\t\t"376030"\n\t"InstalledDepots"\n\t{{\n{body}\t}}\n}}\n'


class ScriptedSession:
    """Stand-in for SteamCmdSession that replays canned output.

    ``react(command)`` returns what SteamCMD prints before the next prompt.
    """

    def __init__(self, react, log):
        self.react = react
        self.log = log

    def run(self, responder, cancel_event=None):
        output = "Loading Steam API...OK"
        prompts = 0
        while True:
            prompts += 1
            command = responder(output)
            self.log.append(command)
            if command == "quit":
                return prompts
            output = self.react(command)


def make_steamcmd(tmp_path, react, lookup=None, output=None):
    log = []
    steamcmd = SteamCmd(
        "/opt/steamcmd/steamcmd.sh",
        str(tmp_path),
        output=output,
        session_factory=lambda: ScriptedSession(react, log),
        lookup=lookup,
    )
    return steamcmd, log


def react_app_info(command):
    if command.startswith("app_info_print"):
        return APP_INFO
    return command


def test_remote_depots_reads_public_and_gid_manifests(tmp_path):
    steamcmd, log = make_steamcmd(tmp_path, react_app_info)
    assert steamcmd.remote_depots(376030) == {
        "376031": "4660701598619066954",
        "1006": "6912453647411644579",
    }
    assert log == ["app_info_update 1", "app_info_print 376030", "quit"]


def test_local_depots_missing_manifest(tmp_path):
    steamcmd, _ = make_steamcmd(tmp_path, react_app_info)
    assert steamcmd.local_depots(376030) is None


def write_app_manifest(tmp_path, depots):
    steamapps = tmp_path / "steamapps"
    steamapps.mkdir(exist_ok=True)
    (steamapps / "appmanifest_376030.acf").write_text(app_manifest(depots))


def test_has_update_false_when_manifests_match(tmp_path):
    write_app_manifest(tmp_path, {"376031": "4660701598619066954", "1006": "6912453647411644579"})
    out = io.StringIO()
    steamcmd, _ = make_steamcmd(tmp_path, react_app_info, output=out)

    assert steamcmd.has_update(376030) is False
    assert out.getvalue() == "ARK Server is up-to-date\n"


def test_has_update_true_when_manifest_differs(tmp_path):
    write_app_manifest(tmp_path, {"376031": "1", "1006": "6912453647411644579"})
    out = io.StringIO()
    steamcmd, _ = make_steamcmd(tmp_path, react_app_info, output=out)

    assert steamcmd.has_update(376030) is True
    assert out.getvalue() == "ARK Server update required\n"


def test_has_update_without_local_manifest_skips_remote(tmp_path):
    steamcmd, log = make_steamcmd(tmp_path, react_app_info)
    assert steamcmd.has_update(376030) is True
    assert log == []


def react_server_update(installed=True, login=True):
    def react(command):
        if command == "login anonymous":
            return LOGIN_OK if login else "FAILED login with result code Timeout"
        if command.startswith("app_update"):
            return "Success! App '376030' fully installed." if installed else "Error! App '376030' state is 0x6"
        return ""
    return react


def test_update_server_success(tmp_path):
    out = io.StringIO()
    steamcmd, log = make_steamcmd(tmp_path, react_server_update(), output=out)
    steamcmd.update_server(376030)
    assert log == [f"force_install_dir {tmp_path}", "login anonymous", "app_update 376030 validate", "quit"]
    assert "ARK Server was updated. (restart required)" in out.getvalue()


def test_update_server_not_installed(tmp_path):
    steamcmd, _ = make_steamcmd(tmp_path, react_server_update(installed=False))
    with pytest.raises(SteamCmdDownloadError):
        steamcmd.update_server(376030)


def test_update_server_login_failure(tmp_path):
    steamcmd, log = make_steamcmd(tmp_path, react_server_update(login=False))
    with pytest.raises(SteamCmdLoginError):
        steamcmd.update_server(376030)
    assert "app_update 376030 validate" not in log


def test_run_server_update_check_mode_does_not_update(tmp_path):
    write_app_manifest(tmp_path, {"376031": "old"})
    steamcmd, log = make_steamcmd(tmp_path, react_app_info)
    assert run_server_update(steamcmd, 376030, check=True) is True
    assert not any(command.startswith("app_update") for command in log)


def test_run_server_update_force_skips_check(tmp_path):
    steamcmd, log = make_steamcmd(tmp_path, react_server_update())
    assert run_server_update(steamcmd, 376030, force=True) is True
    assert "app_update 376030 validate" in log
    assert not any(command.startswith("app_info") for command in log)


# -- mods -------------------------------------------------------------------

MOD_ID = 731604991
MOD_APP_ID = 346110
TITLE = "Structures Plus (S+)"
UPDATED = 1565040476


def lookup_for(updates):
    def lookup(mod_id):
        if mod_id not in updates:
            raise WorkshopLookupError("get publish file detail failure: result: 9", mod_id)
        return PublishedFileDetails(mod_id, TITLE if mod_id == MOD_ID else f"Mod {mod_id}", updates[mod_id])
    return lookup


def container(payload):
    comp = zlib.compress(payload)
    return (
        CONTAINER_MAGIC
        + struct.pack("<6I", 131072, 0, len(comp), 0, len(payload), 0)
        + struct.pack("<4I", len(comp), 0, len(payload), 0)
        + comp
    )


def fake_download(tmp_path, mod_id, updated=UPDATED):
    """Lay out what SteamCMD leaves behind after workshop_download_item."""
    content = tmp_path / "steamapps" / "workshop" / "content" / str(MOD_APP_ID) / str(mod_id) / "WindowsNoEditor"
    content.mkdir(parents=True)
    mod_info = encode_string("StructuresPlus") + struct.pack("<I", 1) + encode_string("ModMap")
    modmeta = struct.pack("<I", 1) + encode_string("ModType") + encode_string("1")
    for name, payload in (("mod.info", mod_info), ("modmeta.info", modmeta), ("Content.uasset", b"u" * 300)):
        (content / f"{name}.z").write_bytes(container(payload))
        (content / f"{name}.z.uncompressed_size").write_text(str(len(payload)))

    manifest = tmp_path / "steamapps" / "workshop" / f"appworkshop_{MOD_APP_ID}.acf"
    manifest.write_text(
        '"AppWorkshop"\n{\n\t"appid"\t\t"346110"\n\t"WorkshopItemDetails"\n\t{\n'
        f'\t\t"{mod_id}"\n\t\t{{\n\t\t\t"manifest"\t\t"1"\n\t\t\t"timeupdated"\t\t"{updated}"\n\t\t}}\n'
        "\t}\n}\n"
    )
    return content


def react_workshop(tmp_path, fail_item=None):
    def react(command):
        if command == "login anonymous":
            return LOGIN_OK
        if command.startswith("workshop_download_item"):
            mod_id = int(command.split()[-1])
            if mod_id == fail_item:
                return f"ERROR! Download item {mod_id} failed (Timeout)."
            fake_download(tmp_path, mod_id)
            return f'Success. Downloaded item {mod_id} to "{tmp_path}" (1234 bytes)'
        return ""
    return react


def test_update_required_mods_compares_version_records(tmp_path):
    mods = tmp_path / "ShooterGame" / "Content" / "Mods"
    mods.mkdir(parents=True)
    write_version_record(mods / f"{MOD_ID}.yaml", VersionRecord(TITLE, UPDATED))
    write_version_record(mods / "222.yaml", VersionRecord("Mod 222", 100))
    out = io.StringIO()
    steamcmd, _ = make_steamcmd(
        tmp_path, react_app_info, lookup=lookup_for({MOD_ID: UPDATED, 222: 200, 333: 1}), output=out
    )

    assert steamcmd.update_required_mods(MOD_APP_ID, [MOD_ID, 222, 333]) == [222, 333]
    lines = out.getvalue().splitlines()
    assert lines[0] == f"ARK MOD[{MOD_ID}]({TITLE}) is up-to-date"
    assert lines[1] == "ARK MOD[222](Mod 222) update required"


def test_update_required_mods_lookup_failure_propagates(tmp_path):
    steamcmd, _ = make_steamcmd(tmp_path, react_app_info, lookup=lookup_for({}))
    with pytest.raises(WorkshopLookupError):
        steamcmd.update_required_mods(MOD_APP_ID, [MOD_ID])


def test_update_mods_installs_unpacked_mod(tmp_path):
    out = io.StringIO()
    steamcmd, log = make_steamcmd(
        tmp_path, react_workshop(tmp_path), lookup=lookup_for({MOD_ID: UPDATED}), output=out
    )
    mods = tmp_path / "ShooterGame" / "Content" / "Mods"
    (mods / str(MOD_ID)).mkdir(parents=True)
    (mods / str(MOD_ID) / "stale.uasset").write_bytes(b"old")

    assert steamcmd.update_mods(MOD_APP_ID, [MOD_ID]) == [MOD_ID]

    assert log == [
        f"force_install_dir {tmp_path}",
        "login anonymous",
        f"workshop_download_item {MOD_APP_ID} {MOD_ID}",
        "quit",
    ]
    installed = mods / str(MOD_ID)
    assert not (installed / "stale.uasset").exists()
    assert (installed / "Content.uasset").read_bytes() == b"u" * 300
    assert not list(installed.glob("*.z"))
    assert not (installed / ".mod").exists()

    descriptor = ModDescriptor.from_bytes((mods / f"{MOD_ID}.mod").read_bytes())
    assert descriptor.mod_id == MOD_ID
    assert descriptor.title == TITLE
    assert descriptor.install_path == f"../../../ShooterGame/Content/Mods/{MOD_ID}"
    assert descriptor.maps == ["ModMap"]
    assert descriptor.has_mod_type is True
    assert read_version_record(mods / f"{MOD_ID}.yaml") == VersionRecord(TITLE, UPDATED)
    assert not steamcmd.workshop_mod_path(MOD_APP_ID, MOD_ID).exists()
    assert f"ARK MOD[{MOD_ID}]({TITLE}) was updated (restart required)" in out.getvalue()


def test_update_mods_download_failure_installs_nothing(tmp_path):
    steamcmd, log = make_steamcmd(
        tmp_path, react_workshop(tmp_path, fail_item=222), lookup=lookup_for({MOD_ID: UPDATED, 222: 5})
    )
    with pytest.raises(SteamCmdDownloadError) as exc:
        steamcmd.update_mods(MOD_APP_ID, [MOD_ID, 222])

    assert exc.value.item_id == 222
    assert log[-1] == "quit"
    assert not (tmp_path / "ShooterGame" / "Content" / "Mods" / f"{MOD_ID}.mod").exists()


def test_read_updated_from_acf_missing_entry(tmp_path):
    fake_download(tmp_path, MOD_ID)
    steamcmd, _ = make_steamcmd(tmp_path, react_app_info)
    assert steamcmd.read_updated_from_acf(MOD_APP_ID, MOD_ID) == UPDATED
    with pytest.raises(FormatError):
        steamcmd.read_updated_from_acf(MOD_APP_ID, 1)


def test_run_mod_update_check_mode(tmp_path):
    steamcmd, log = make_steamcmd(tmp_path, react_workshop(tmp_path), lookup=lookup_for({MOD_ID: UPDATED}))
    assert run_mod_update(steamcmd, MOD_APP_ID, [MOD_ID], check=True) == [MOD_ID]
    assert log == []


def test_run_mod_update_nothing_required(tmp_path):
    mods = tmp_path / "ShooterGame" / "Content" / "Mods"
    mods.mkdir(parents=True)
    write_version_record(mods / f"{MOD_ID}.yaml", VersionRecord(TITLE, UPDATED))
    steamcmd, log = make_steamcmd(tmp_path, react_workshop(tmp_path), lookup=lookup_for({MOD_ID: UPDATED}))
    assert run_mod_update(steamcmd, MOD_APP_ID, [MOD_ID]) == []
    assert log == []


def test_update_mods_downloads_repeated_id_once(tmp_path):
    steamcmd, log = make_steamcmd(tmp_path, react_workshop(tmp_path), lookup=lookup_for({MOD_ID: UPDATED}))

    assert run_mod_update(steamcmd, MOD_APP_ID, [MOD_ID, MOD_ID], force=True) == [MOD_ID]

    downloads = [command for command in log if command.startswith("workshop_download_item")]
    assert downloads == [f"workshop_download_item {MOD_APP_ID} {MOD_ID}"]
    assert (tmp_path / "ShooterGame" / "Content" / "Mods" / f"{MOD_ID}.mod").exists()


def test_update_required_mods_reports_repeated_id_once(tmp_path):
    out = io.StringIO()
    steamcmd, _ = make_steamcmd(tmp_path, react_app_info, lookup=lookup_for({MOD_ID: UPDATED}), output=out)

    assert steamcmd.update_required_mods(MOD_APP_ID, [MOD_ID, MOD_ID]) == [MOD_ID]
    assert len(out.getvalue().splitlines()) == 1
