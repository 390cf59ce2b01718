"""Static configuration for divinebot.

All user-editable settings (cache, filters, logging) live in a single JSON
file for quick edits without touching Python. Secrets stay in the
environment (.env).
"""

import json
import os

from core.config import CacheConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Cache bounds and the zone whose midnight triggers the daily full clear.
_cache = _CONFIG.get("cache", {})
CACHE = CacheConfig(
    max_entries=int(_cache.get("max_entries", 10000)),
    ttl_seconds=int(_cache.get("ttl_seconds", 86400)),
    clear_timezone=_cache.get("clear_timezone") or None,
)

# Filters are built in order; handlers sharing a priority run in that order.
FILTERS_CONFIG = _CONFIG.get("filters", [])

# Restart trigger: the process exits with status 1 when this file changes.
_reload_file = _CONFIG.get("reload_file") or None
if _reload_file and not os.path.isabs(_reload_file):
    _reload_file = os.path.join(PROJECT_ROOT, _reload_file)
RELOAD_FILE = _reload_file

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
