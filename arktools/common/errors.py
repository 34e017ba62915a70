"""
Custom exception classes for arktools.
"""

from typing import Optional


class ArkToolsError(Exception):
    """Base exception class for arktools errors."""
    pass


class ConfigError(ArkToolsError):
    """Raised when a setting is missing or cannot be parsed."""
    pass


class FormatError(ArkToolsError):
    """Raised when vendor data (manifest, container, descriptor) is malformed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"[{path}] {message}"
        super().__init__(message)


class TruncatedDataError(FormatError):
    """Raised when a length-prefixed field runs past the end of the data."""
    pass


class AcfFormatError(FormatError):
    """Raised when a manifest cannot be parsed (e.g. nesting too deep)."""
    pass


class ContainerMagicError(FormatError):
    """Raised when a compressed container does not start with the expected magic."""
    pass


class ContainerSizeMismatchError(FormatError):
    """Raised when the inflated size of a container differs from its size hint."""

    def __init__(self, message: str, delta: int, path: Optional[str] = None):
        self.delta = delta
        super().__init__(message, path)


class InstallError(ArkToolsError):
    """Raised when a filesystem operation fails while unpacking or installing."""

    def __init__(self, operation: str, path: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.path = path
        message = f"{operation}({path}) failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class SteamCmdError(ArkToolsError):
    """Raised when the SteamCMD session fails (process, terminal or protocol)."""
    pass


class SteamCmdLoginError(SteamCmdError):
    """Raised when SteamCMD did not confirm the anonymous login."""
    pass


class SteamCmdDownloadError(SteamCmdError):
    """Raised when SteamCMD did not report a successful download."""

    def __init__(self, message: str, item_id: Optional[int] = None):
        self.item_id = item_id
        super().__init__(message)


class SteamCmdCancelledError(SteamCmdError):
    """Raised when a SteamCMD session was cancelled from outside."""
    pass


class WorkshopLookupError(ArkToolsError):
    """Raised when the published file details lookup fails for an item."""

    def __init__(self, message: str, item_id: Optional[int] = None):
        self.item_id = item_id
        super().__init__(message)
