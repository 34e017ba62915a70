"""
Builder for the binary ``.mod`` descriptor the ARK server reads at boot.

The descriptor is assembled from two files shipped with every workshop mod:

* ``mod.info``: mod name (discarded), map count, map names
* ``modmeta.info``: pair count, then key/value string pairs

Output layout::

    mod id              uint32
    reserved            uint32 (0)
    title               string
    install path        string  "../../../ShooterGame/Content/Mods/<id>"
    map count           uint32
    map names           string * map count
    magic               uint32 4280483635, uint32 2
    has ModType         byte (0 | 1)
    meta count          uint32
    meta pairs          (string, string) * meta count
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from arktools.common.constants import DESCRIPTOR_MAGIC, MOD_INSTALL_PATH_TEMPLATE, MOD_TYPE_KEY
from arktools.common.errors import FormatError, InstallError
from arktools.common.logging_config import get_logger
from .ue4string import BinaryReader, BinaryWriter
from .version_record import VersionRecord, write_version_record

MOD_INFO_NAME = "mod.info"
MODMETA_INFO_NAME = "modmeta.info"
DESCRIPTOR_NAME = ".mod"
VERSION_RECORD_NAME = ".yaml"

MetaPair = Tuple[str, str]

_log = get_logger(__name__)


def parse_mod_info(data: bytes, source: Optional[str] = None) -> Tuple[str, List[str]]:
    """Return the internal mod name and the list of map names."""
    reader = BinaryReader(data, source=source)
    name = reader.read_string()
    count = reader.read_uint32()
    maps = [reader.read_string() for _ in range(count)]
    return name, maps


def parse_modmeta_info(data: bytes, source: Optional[str] = None) -> List[MetaPair]:
    """Return the key/value pairs of ``modmeta.info`` in file order."""
    reader = BinaryReader(data, source=source)
    count = reader.read_uint32()
    pairs = []
    for _ in range(count):
        key = reader.read_string()
        value = reader.read_string()
        pairs.append((key, value))
    return pairs


@dataclass
class ModDescriptor:
    """In-memory form of a ``.mod`` file."""

    mod_id: int
    title: str
    install_path: str
    maps: List[str] = field(default_factory=list)
    meta: List[MetaPair] = field(default_factory=list)
    reserved: int = 0
    magic: Tuple[int, int] = DESCRIPTOR_MAGIC
    has_mod_type: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.has_mod_type is None:
            self.has_mod_type = any(key == MOD_TYPE_KEY for key, _ in self.meta)

    def to_bytes(self) -> bytes:
        writer = BinaryWriter()
        writer.write_uint32(self.mod_id)
        writer.write_uint32(self.reserved)
        writer.write_string(self.title)
        writer.write_string(self.install_path)
        writer.write_uint32(len(self.maps))
        for name in self.maps:
            writer.write_string(name)
        writer.write_uint32(self.magic[0])
        writer.write_uint32(self.magic[1])
        writer.write_byte(1 if self.has_mod_type else 0)
        writer.write_uint32(len(self.meta))
        for key, value in self.meta:
            writer.write_string(key)
            writer.write_string(value)
        return writer.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes, source: Optional[str] = None) -> "ModDescriptor":
        reader = BinaryReader(data, source=source)
        mod_id = reader.read_uint32()
        reserved = reader.read_uint32()
        title = reader.read_string()
        install_path = reader.read_string()
        maps = [reader.read_string() for _ in range(reader.read_uint32())]
        magic = (reader.read_uint32(), reader.read_uint32())
        has_mod_type = reader.read_bytes(1) != b"\x00"
        meta = []
        for _ in range(reader.read_uint32()):
            key = reader.read_string()
            meta.append((key, reader.read_string()))

        if reader.remaining():
            raise FormatError(f"{reader.remaining()} trailing bytes after descriptor", source)
        return cls(
            mod_id=mod_id,
            title=title,
            install_path=install_path,
            maps=maps,
            meta=meta,
            reserved=reserved,
            magic=magic,
            has_mod_type=has_mod_type,
        )


def build_descriptor(
    mod_id: int,
    title: str,
    mod_info: bytes,
    modmeta_info: bytes,
    mod_info_source: str = MOD_INFO_NAME,
    modmeta_info_source: str = MODMETA_INFO_NAME,
) -> ModDescriptor:
    """Combine ``mod.info`` and ``modmeta.info`` contents into a descriptor.

    The ``*_source`` names tag format errors with the offending file.
    """
    _name, maps = parse_mod_info(mod_info, mod_info_source)
    meta = parse_modmeta_info(modmeta_info, modmeta_info_source)
    return ModDescriptor(
        mod_id=mod_id,
        title=title,
        install_path=MOD_INSTALL_PATH_TEMPLATE.format(mod_id=mod_id),
        maps=maps,
        meta=meta,
    )


def _read(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise InstallError("read", str(path), exc) from exc


def write_mod_files(mod_dir: Union[str, Path], mod_id: int, title: str, updated: int) -> Tuple[Path, Path]:
    """Write ``.mod`` and ``.yaml`` into an unpacked mod directory.

    Returns:
        Paths of the descriptor and the version record.
    """
    mod_dir = Path(mod_dir)
    mod_info_path = mod_dir / MOD_INFO_NAME
    modmeta_info_path = mod_dir / MODMETA_INFO_NAME

    descriptor = build_descriptor(
        mod_id,
        title,
        _read(mod_info_path),
        _read(modmeta_info_path),
        mod_info_source=str(mod_info_path),
        modmeta_info_source=str(modmeta_info_path),
    )
    descriptor_path = mod_dir / DESCRIPTOR_NAME
    try:
        descriptor_path.write_bytes(descriptor.to_bytes())
    except OSError as exc:
        raise InstallError("write", str(descriptor_path), exc) from exc

    record_path = mod_dir / VERSION_RECORD_NAME
    write_version_record(record_path, VersionRecord(title=title, updated=updated))
    _log.debug(
        "MOD[%s] descriptor written: %d maps, %d meta entries", mod_id, len(descriptor.maps), len(descriptor.meta)
    )
    return descriptor_path, record_path


__all__ = [
    "ModDescriptor",
    "parse_mod_info",
    "parse_modmeta_info",
    "build_descriptor",
    "write_mod_files",
]
