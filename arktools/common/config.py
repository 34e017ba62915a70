"""Configuration resolution for arktools.

Settings come from, in order of precedence:
* explicit overrides (CLI flags)
* environment variables (`ARKTOOLS_*`)
* an optional YAML config file (`--config`, `ARKTOOLS_CONFIG` or `~/.arktools.yaml`)
* built-in defaults
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .constants import DEFAULT_MOD_APP_ID, DEFAULT_SERVER_APP_ID
from .errors import ConfigError

# setting name -> environment variable
ENV_KEYS = {
    "install_dir": "ARKTOOLS_INSTALL_DIR",
    "steamcmd": "ARKTOOLS_STEAMCMD",
    "appid": "ARKTOOLS_APPID",
    "mod_appid": "ARKTOOLS_MOD_APPID",
    "modids": "ARKTOOLS_MODIDS",
    "output": "ARKTOOLS_OUTPUT",
    "log_level": "ARKTOOLS_LOG_LEVEL",
}

DEFAULT_CONFIG_NAME = ".arktools.yaml"


def _home() -> Path:
    return Path(os.path.expanduser("~"))


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML config file into a flat mapping.

    Keys may use dashes (``install-dir``) or underscores (``install_dir``).
    A missing default file is not an error; a missing explicit file is.
    """
    explicit = path is not None
    config_path = Path(path) if path else _home() / DEFAULT_CONFIG_NAME
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return {str(key).replace("-", "_"): value for key, value in data.items()}


def parse_id_list(raw: Any) -> List[int]:
    """Parse a comma separated string (or a YAML list) of numeric ids.

    Duplicates are dropped; the first occurrence keeps its position.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, (list, tuple)):
        parts = [str(item) for item in raw]
    else:
        parts = str(raw).split(",")

    ids: List[int] = []
    for part in parts:
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError as exc:
            raise ConfigError(f"Invalid id '{part}'") from exc
    return list(dict.fromkeys(ids))


class ArkSettings:
    """Resolve flag, environment and config-file backed settings."""

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        config_path: Optional[str] = None,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        self._file = load_config_file(config_path or self._environ.get("ARKTOOLS_CONFIG"))

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._overrides:
            return self._overrides[key]
        env_key = ENV_KEYS.get(key)
        if env_key and self._environ.get(env_key):
            return self._environ[env_key]
        if key in self._file and self._file[key] is not None:
            return self._file[key]
        return default

    def _get_int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Setting '{key}' must be an integer, got {value!r}") from exc

    def install_dir(self) -> str:
        return str(self.get("install_dir") or _home() / "ARK")

    def steamcmd(self) -> str:
        return str(self.get("steamcmd") or _home() / "steamcmd" / "steamcmd.sh")

    def app_id(self) -> int:
        return self._get_int("appid", DEFAULT_SERVER_APP_ID)

    def mod_app_id(self) -> int:
        return self._get_int("mod_appid", DEFAULT_MOD_APP_ID)

    def mod_ids(self) -> List[int]:
        return parse_id_list(self.get("modids"))

    def output(self) -> str:
        return str(self.get("output") or "stdout")

    def log_level(self) -> str:
        if self.get("verbose"):
            return "DEBUG"
        return str(self.get("log_level") or "INFO")

    def check_only(self) -> bool:
        return bool(self.get("check", False))

    def force(self) -> bool:
        return bool(self.get("force", False))


__all__ = ["ArkSettings", "load_config_file", "parse_id_list"]
