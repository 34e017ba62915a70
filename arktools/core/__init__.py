"""Codecs, SteamCMD session driver and update orchestration."""
