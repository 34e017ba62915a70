"""
Constants and exit codes for arktools.
"""

DEFAULT_SERVER_APP_ID = 376030
DEFAULT_MOD_APP_ID = 346110

# SteamCMD prompt and output markers
STEAMCMD_PROMPT = b"Steam>"
STEAMCMD_QUIT = "quit"
LOGIN_OK_MARKER = "Waiting for user info...OK"
APP_INSTALLED_MARKER = "Success! App '{app_id}' fully installed."
ITEM_DOWNLOADED_MARKER = "Success. Downloaded item {item_id}"

PUBLISHED_FILE_DETAILS_URL = (
    "http://api.steampowered.com/ISteamRemoteStorage/GetPublishedFileDetails/v1"
)

# Container (.z) format
CONTAINER_MAGIC = bytes([0xC1, 0x83, 0x2A, 0x9E, 0x00, 0x00, 0x00, 0x00])
CONTAINER_SUFFIX = ".z"
SIZE_HINT_SUFFIX = ".uncompressed_size"

# .mod descriptor format
DESCRIPTOR_MAGIC = (4280483635, 2)
MOD_TYPE_KEY = "ModType"
MOD_INSTALL_PATH_TEMPLATE = "../../../ShooterGame/Content/Mods/{mod_id}"


class ExitCodes:
    """Exit codes for different error conditions."""
    OK = 0
    GENERAL_FAILURE = 1
    CONFIG_ERROR = 2
    FORMAT_ERROR = 3
    INSTALL_FAILED = 4
    STEAMCMD_FAILED = 5
    WORKSHOP_LOOKUP_FAILED = 6
    CANCELLED = 130
