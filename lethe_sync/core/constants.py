"""
Shared constants for Lethe Sync.
"""

# Remote endpoints (manifest document and flat-file object store)
MANIFEST_URL = "https://files.lethelc.site/lethe-manifest.json"
DOWNLOAD_BASE_URL = "https://files.lethelc.site/download/"

# Streaming chunk size for hashing, copying and downloading (64 KiB)
CHUNK_SIZE = 64 * 1024

# Suffix for in-progress files; renamed into place once verified
PART_SUFFIX = ".part"

# Companion plugin files outside the manifest, re-downloaded every run
AUXILIARY_ASSETS = [
    {"url": "https://api.lethelc.site/Lethe.dll", "path": "BepInEx/plugins/Lethe.dll"},
    {"url": "https://api.lethelc.site/ModularSkillScripts.dll", "path": "BepInEx/plugins/ModularSkillScripts.dll"},
]

# Steam layout used to locate an existing game installation
STEAM_REGISTRY_KEY = r"SOFTWARE\WOW6432Node\Valve\Steam"
STEAM_GAME_SUBPATH = ("steamapps", "common", "Limbus Company")

# Default file names next to the app
SETTINGS_FILE = "lethe-sync.json"
LOG_FILE = "lethe-launcher.log"
LOCAL_MANIFEST_FILE = "lethe-manifest.json"
