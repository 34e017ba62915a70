"""arktools - ARK: Survival Evolved dedicated server update tools.

Provides:
* A pseudo-terminal driver for interactive SteamCMD sessions
* A parser for Valve's nested key/value manifests (``.acf``)
* A decoder for the chunked zlib ``.z`` workshop containers
* An encoder/decoder for the binary ``.mod`` descriptor
* Server and workshop mod update orchestration (``arktools`` CLI)
"""

from .common.logging_config import configure_logging  # noqa: F401
from .core.acf import parse_acf  # noqa: F401
from .core.container import decode_container  # noqa: F401
from .core.descriptor import ModDescriptor, build_descriptor  # noqa: F401
from .core.session import SteamCmdSession  # noqa: F401
from .core.steamcmd import SteamCmd  # noqa: F401
from .core.ue4string import decode_string, encode_string  # noqa: F401

__version__ = "1.0.0"

__all__ = [
	"__version__",
	"configure_logging",
	"parse_acf",
	"decode_container",
	"ModDescriptor",
	"build_descriptor",
	"SteamCmdSession",
	"SteamCmd",
	"decode_string",
	"encode_string",
]

__author__ = "jeehoon"
