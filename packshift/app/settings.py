# packshift/app/settings.py
from __future__ import annotations
import json5, os
from pathlib import Path
from typing import Any, cast
from functools import lru_cache

from packshift.core.dictpath import getByPath

import logging
logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SETTINGS", "userSettingsPath", "loadUserSettings",
    "loadSettings", "deepMerge", "settings", "settingsBool",
]



DEFAULT_SETTINGS: dict[str, Any] = {
    "__source": "PACKSHIFT_DEFAULTS",
    "registry": {
        "apiBase": "https://api.modrinth.com",
        "userAgent": "packshift/0.3.0 (modpack re-targeting tool)",
    },
    "http": {"retries": 2, "timeoutMs": 30_000, "backoff": {"baseMs": 250, "maxMs": 1000}},
    "resolve": {
        "maxConcurrency": 6,
        # Ordered, case-sensitive, first match wins. Anything else is a mod.
        "categoryRoots": [
            {"prefix": "resourcepacks/", "category": "resourcepack"},
            {"prefix": "shaderpacks/", "category": "shaderpack"},
        ],
    },
    "fallback": {
        "githubToken": None,
        "sources": {
            "TQTTVgYE": {
                "slug": "fabric-carpet",
                "strategy": "githubReleases",
                "repo": "gnembon/fabric-carpet",
                "assetPattern": "fabric-?carpet",
                "includePrereleases": False,
            },
        },
    },
    "loaderMeta": {
        "fabric": {
            "dependency": "fabric-loader",
            "url": "https://meta.fabricmc.net/v2/versions/loader/{gameVersion}",
        },
        "quilt": {
            "dependency": "quilt-loader",
            "url": "https://meta.quiltmc.org/v3/versions/loader/{gameVersion}",
        },
    },
    "tracking": {
        "storePath": "~/.packshift/missing-items.json5",
        "checkDelayMs": 100,
        # game version used to confirm a name search hit has any builds at all
        "probeGameVersion": "1.20.1",
    },
    "logging": {"devMode": False, "file": None},
}



def userSettingsPath() -> Path:
    override = os.environ.get("PACKSHIFT_SETTINGS")
    if override:
        return Path(override).expanduser()
    return Path(os.path.expanduser("~/.packshift/settings.json5"))



def loadUserSettings() -> dict[str, Any]:
    filePath = userSettingsPath()
    if filePath.exists():
        try:
            data = json5.loads(filePath.read_text(encoding="utf-8"))
        except Exception as err:
            logger.error("Failed to parse '%s': %s", filePath, err)
            return {}
        if isinstance(data, dict):
            return data
        logger.error("Settings file '%s' must contain an object, got %s", filePath, type(data).__name__)
    return {}



@lru_cache(maxsize=1)
def loadSettings() -> dict[str, Any]:
    return cast(dict[str, Any], deepMerge(DEFAULT_SETTINGS, loadUserSettings()))



def deepMerge(first: Any, second: Any) -> Any:
    """
    Returns a new value where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are dicts; for every other type
    the right-hand value replaces the left one.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, Any] = dict(first)
        for key, value in second.items():
            if key in out:
                out[key] = deepMerge(out[key], value)
            else:
                out[key] = value
        return out
    return second

# ---------- Ergonomic accessors over merged settings ----------

def settings(path: str, default: Any = None) -> Any:
    """Returns value at `path` from merged settings, or `default` if missing."""
    val = getByPath(loadSettings(), path)
    return default if val is None else val



def settingsBool(path: str, default: bool = False) -> bool:
    """Returns bool value at `path` or `default` if missing."""
    val = getByPath(loadSettings(), path)
    if isinstance(val, bool):
        return val
    if val is None:
        return default
    return bool(val)
