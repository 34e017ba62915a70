"""
Version record sidecar (``<mod id>.yaml``) tracking the last installed
workshop update of a mod.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from arktools.common.errors import FormatError, InstallError


@dataclass(frozen=True)
class VersionRecord:
    """Title and remote ``time_updated`` of an installed mod."""

    title: str
    updated: int

    def to_yaml(self) -> str:
        return yaml.safe_dump(asdict(self), sort_keys=False, allow_unicode=True)

    @classmethod
    def from_yaml(cls, text: str, source: Optional[str] = None) -> "VersionRecord":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise FormatError(f"version record is not valid YAML: {exc}", source) from exc
        if not isinstance(data, dict):
            raise FormatError("version record must be a mapping", source)
        try:
            return cls(title=str(data.get("title", "")), updated=int(data.get("updated", 0)))
        except (TypeError, ValueError) as exc:
            raise FormatError(f"version record has an invalid 'updated' value: {exc}", source) from exc


def read_version_record(path: Union[str, Path]) -> Optional[VersionRecord]:
    """Load a version record, or ``None`` when the file does not exist."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise InstallError("read", str(path), exc) from exc
    return VersionRecord.from_yaml(text, str(path))


def write_version_record(path: Union[str, Path], record: VersionRecord) -> None:
    path = Path(path)
    try:
        path.write_text(record.to_yaml(), encoding="utf-8")
    except OSError as exc:
        raise InstallError("write", str(path), exc) from exc


__all__ = ["VersionRecord", "read_version_record", "write_version_record"]
