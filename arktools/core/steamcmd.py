"""
Server and workshop mod update orchestration on top of SteamCMD.

* ``has_update`` / ``update_server``: compare depot manifests of the
  installed server with Steam and run ``app_update`` when they differ.
* ``update_required_mods`` / ``update_mods``: compare the workshop
  ``time_updated`` of each mod with its local version record, download the
  stale ones, unpack their ``.z`` containers, build the ``.mod`` descriptor
  and move everything into ``ShooterGame/Content/Mods``.
"""

from __future__ import annotations

import os
import shutil
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, TextIO

from arktools.common.errors import (
    FormatError,
    InstallError,
    SteamCmdDownloadError,
    SteamCmdLoginError,
)
from arktools.common.logging_config import get_logger
from .acf import parse_acf, split_path
from .container import unpack_tree
from .descriptor import DESCRIPTOR_NAME, VERSION_RECORD_NAME, write_mod_files
from .session import SteamCmdSession
from .steps import (
    AppInfoState,
    Phase,
    ServerUpdateState,
    StepResponder,
    WorkshopState,
    app_info_step,
    server_update_step,
    workshop_step,
)
from .version_record import read_version_record
from .workshop import PublishedFileDetails, fetch_published_file_details

SessionFactory = Callable[[], SteamCmdSession]
DetailsLookup = Callable[[int], PublishedFileDetails]


class SteamCmd:
    """Update an ARK server installation through SteamCMD."""

    def __init__(
        self,
        executable: str,
        install_dir: str,
        output: Optional[TextIO] = None,
        session_factory: Optional[SessionFactory] = None,
        lookup: Optional[DetailsLookup] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.executable = executable
        self.install_dir = install_dir
        self.output = output
        self.cancel_event = cancel_event
        self._session_factory = session_factory or self._default_session
        self._lookup = lookup or fetch_published_file_details
        self._log = get_logger(__name__)

    def _default_session(self) -> SteamCmdSession:
        return SteamCmdSession(self.executable, cwd=os.path.dirname(self.executable) or None)

    def send_user(self, message: str) -> None:
        """Write a one-line notice for the operator (stdout or the --output file)."""
        if self.output is None:
            return
        try:
            self.output.write(message + "\n")
            self.output.flush()
        except OSError as exc:
            self._log.warning("send_user failure: %s", exc)

    def _converse(self, step, initial):
        responder = StepResponder(step, initial)
        self._session_factory().run(responder, self.cancel_event)
        return responder.state

    # -- paths -------------------------------------------------------------

    def app_manifest_path(self, app_id: int) -> Path:
        return Path(self.install_dir) / "steamapps" / f"appmanifest_{app_id}.acf"

    def workshop_manifest_path(self, app_id: int) -> Path:
        return Path(self.install_dir) / "steamapps" / "workshop" / f"appworkshop_{app_id}.acf"

    def workshop_mod_path(self, app_id: int, mod_id: int) -> Path:
        return (
            Path(self.install_dir) / "steamapps" / "workshop" / "content"
            / str(app_id) / str(mod_id) / "WindowsNoEditor"
        )

    def mods_root(self) -> Path:
        return Path(self.install_dir) / "ShooterGame" / "Content" / "Mods"

    # -- server ------------------------------------------------------------

    def get_app_info(self, app_id: int) -> str:
        """Return the ``app_info_print`` body for ``app_id``."""
        state: AppInfoState = self._converse(
            lambda s, out: app_info_step(s, out, app_id), AppInfoState()
        )
        return state.info

    def remote_depots(self, app_id: int) -> Dict[str, str]:
        depots: Dict[str, str] = {}
        for path, value in parse_acf(self.get_app_info(app_id)):
            # .376030.depots.1004.manifests.public 4660701598619066954
            # .376030.depots.1004.manifests.public.gid 4660701598619066954
            keys = split_path(path)
            if len(keys) < 5 or keys[1] != "depots" or keys[3] != "manifests" or keys[4] != "public":
                continue
            if len(keys) == 5 or (len(keys) == 6 and keys[5] == "gid"):
                depots[keys[2]] = value
        self._log.debug("Steam Depots: %s", depots)
        return depots

    def local_depots(self, app_id: int) -> Optional[Dict[str, str]]:
        """Installed depot manifests, or ``None`` when the app manifest is missing."""
        path = self.app_manifest_path(app_id)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise InstallError("read", str(path), exc) from exc

        depots: Dict[str, str] = {}
        for key_path, value in parse_acf(text):
            # .AppState.InstalledDepots.1006.manifest 6912453647411644579
            keys = split_path(key_path)
            if len(keys) == 4 and keys[0] == "AppState" and keys[1] == "InstalledDepots" and keys[3] == "manifest":
                depots[keys[2]] = value
        self._log.debug("Local Depots: %s", depots)
        return depots

    def has_update(self, app_id: int) -> bool:
        local = self.local_depots(app_id)
        if not local:
            self._log.info("No installed depots recorded for app %s", app_id)
            has_update = True
        else:
            remote = self.remote_depots(app_id)
            has_update = any(remote.get(depot) != manifest for depot, manifest in local.items())

        if has_update:
            self.send_user("ARK Server update required")
        else:
            self.send_user("ARK Server is up-to-date")
        return has_update

    def update_server(self, app_id: int) -> None:
        state: ServerUpdateState = self._converse(
            lambda s, out: server_update_step(s, out, app_id, self.install_dir), ServerUpdateState()
        )
        if state.phase is Phase.FAILED:
            raise SteamCmdLoginError(f"SteamCMD update of app {app_id} failed: {state.failure}")
        if not state.installed:
            raise SteamCmdDownloadError(f"SteamCMD did not report app {app_id} as fully installed", app_id)
        self.send_user("ARK Server was updated. (restart required)")

    # -- mods --------------------------------------------------------------

    def update_required_mods(self, app_id: int, mod_ids: Iterable[int]) -> List[int]:
        """Return the mods whose workshop update time differs from the local record."""
        required: List[int] = []
        for mod_id in dict.fromkeys(mod_ids):
            details = self._lookup(mod_id)
            record = read_version_record(self.mods_root() / f"{mod_id}.yaml")
            if record is None:
                self._log.warning("MOD[%s] has no version record", mod_id)
            local_updated = record.updated if record else 0

            if details.time_updated == local_updated:
                self._log.info("MOD[%s](%s) is up-to-date.", mod_id, details.title)
                self.send_user(f"ARK MOD[{mod_id}]({details.title}) is up-to-date")
            else:
                required.append(mod_id)
                self._log.info("MOD[%s](%s) is update required.", mod_id, details.title)
                self.send_user(f"ARK MOD[{mod_id}]({details.title}) update required")
        return required

    def update_mods(self, app_id: int, mod_ids: Iterable[int]) -> List[int]:
        """Download, unpack and install ``mod_ids``. Returns the installed ids."""
        mod_ids = list(dict.fromkeys(mod_ids))
        titles = {mod_id: self._lookup(mod_id).title for mod_id in mod_ids}
        for mod_id in mod_ids:
            self._log.info("MOD[%s](%s) download...", mod_id, titles[mod_id])

        state: WorkshopState = self._converse(
            lambda s, out: workshop_step(s, out, app_id, self.install_dir),
            WorkshopState(pending=tuple(mod_ids)),
        )
        if state.phase is Phase.FAILED:
            if state.failed_item is None:
                raise SteamCmdLoginError(f"SteamCMD workshop session failed: {state.failure}")
            raise SteamCmdDownloadError(
                f"MOD[{state.failed_item}]({titles[state.failed_item]}) {state.failure}", state.failed_item
            )

        for mod_id in state.downloaded:
            title = titles[mod_id]
            self._log.info("MOD[%s](%s) unpack", mod_id, title)
            self.unpack_mod(app_id, mod_id)

            self._log.info("MOD[%s](%s) create .mod", mod_id, title)
            self.create_dot_mod(app_id, mod_id, title)

            self._log.info("MOD[%s](%s) install", mod_id, title)
            self.install_mod(app_id, mod_id)
            self.send_user(f"ARK MOD[{mod_id}]({title}) was updated (restart required)")
        return list(state.downloaded)

    def unpack_mod(self, app_id: int, mod_id: int) -> List[Path]:
        return unpack_tree(self.workshop_mod_path(app_id, mod_id))

    def read_updated_from_acf(self, app_id: int, mod_id: int) -> int:
        """Read ``timeupdated`` of a downloaded item from ``appworkshop_<app>.acf``."""
        path = self.workshop_manifest_path(app_id)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise InstallError("read", str(path), exc) from exc

        key = f".AppWorkshop.WorkshopItemDetails.{mod_id}.timeupdated"
        updated = 0
        for pair_path, value in parse_acf(text):
            if pair_path != key:
                continue
            try:
                updated = int(value)
            except ValueError as exc:
                raise FormatError(f"timeupdated {value!r} of {mod_id} is not an integer", str(path)) from exc

        if updated == 0:
            raise FormatError(f"not found updated time of {mod_id}", str(path))
        return updated

    def create_dot_mod(self, app_id: int, mod_id: int, title: str) -> None:
        updated = self.read_updated_from_acf(app_id, mod_id)
        write_mod_files(self.workshop_mod_path(app_id, mod_id), mod_id, title, updated)

    def install_mod(self, app_id: int, mod_id: int) -> None:
        """Replace the installed copy of a mod with the freshly unpacked one."""
        root = self.mods_root()
        mod_path = root / str(mod_id)
        mod_file = root / f"{mod_id}.mod"
        yaml_file = root / f"{mod_id}.yaml"
        src = self.workshop_mod_path(app_id, mod_id)

        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InstallError("mkdir", str(root), exc) from exc

        _remove_tree(mod_path)
        _remove_file(mod_file)
        _remove_file(yaml_file)

        _rename(src, mod_path)
        _rename(mod_path / DESCRIPTOR_NAME, mod_file)
        _rename(mod_path / VERSION_RECORD_NAME, yaml_file)


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise InstallError("rmtree", str(path), exc) from exc


def _remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise InstallError("remove", str(path), exc) from exc


def _rename(src: Path, dest: Path) -> None:
    try:
        os.replace(src, dest)
    except OSError as exc:
        raise InstallError("rename", f"{src} -> {dest}", exc) from exc


def run_server_update(steamcmd: SteamCmd, app_id: int, check: bool = False, force: bool = False) -> bool:
    """Check the server and update it unless running in check mode.

    Returns:
        True if an update was required.
    """
    required = True if force else steamcmd.has_update(app_id)
    if required and not check:
        steamcmd.update_server(app_id)
    return required


def run_mod_update(
    steamcmd: SteamCmd, app_id: int, mod_ids: Iterable[int], check: bool = False, force: bool = False
) -> List[int]:
    """Check mods and install the stale ones unless running in check mode.

    Returns:
        Ids of the mods that needed an update.
    """
    mod_ids = list(dict.fromkeys(mod_ids))
    required = mod_ids if force else steamcmd.update_required_mods(app_id, mod_ids)
    if required and not check:
        steamcmd.update_mods(app_id, required)
    return required


__all__ = ["SteamCmd", "run_server_update", "run_mod_update"]
