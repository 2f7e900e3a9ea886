import copy
import logging
import os

import yaml

from twtxt_registry.constants import CONFIG_FILE, DEFAULT_SETTINGS

# Retrieve main logger
logger = logging.getLogger("main")

# Cache variable
_cached_settings = None
_cached_path = None


def _merge(defaults, overrides):
    merged = copy.deepcopy(defaults)
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def load_settings(force=False, config_file=None):
    """
    Read the YAML settings file, merged over the defaults.

    A missing file is created with the defaults. The result is cached
    until ``force`` is set or ``reload_conf()`` is called.
    """
    global _cached_settings, _cached_path

    config_file = config_file or CONFIG_FILE
    if _cached_settings and not force and _cached_path == config_file:
        return _cached_settings

    if os.path.exists(config_file):
        logger.debug(f"Reading configuration file: {config_file}")
        with open(config_file, "r") as yaml_file:
            settings = _merge(DEFAULT_SETTINGS, yaml.safe_load(yaml_file) or {})
    else:
        settings = copy.deepcopy(DEFAULT_SETTINGS)
        config_dir = os.path.dirname(config_file)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)
        with open(config_file, "w") as yaml_file:
            yaml.dump(settings, yaml_file)
        logger.info(f"Wrote default configuration to {config_file}")

    _cached_settings = settings
    _cached_path = config_file
    return settings


def verify_settings(settings):
    success = True
    errors = []
    server = settings.get("server", {})

    if not server.get("admin_password"):
        success = False
        errors.append({"path": "server/admin_password", "error": "Admin password hash is not set."})

    try:
        interval = int(server.get("fetch_interval", 0))
    except (TypeError, ValueError):
        interval = 0
    if interval <= 0:
        success = False
        errors.append({"path": "server/fetch_interval", "error": "Fetch interval must be a positive number of seconds."})

    try:
        per_page_min = int(server.get("entries_per_page_min", 0))
        per_page_max = int(server.get("entries_per_page_max", 0))
    except (TypeError, ValueError):
        success = False
        errors.append({"path": "server/entries_per_page_min", "error": "Page sizes must be integers."})
    else:
        if per_page_min > per_page_max:
            success = False
            errors.append(
                {"path": "server/entries_per_page_min", "error": "Minimum page size is larger than the maximum."}
            )

    return success, errors


def reload_conf(config_file=None):
    """Reload application settings cache"""
    global _cached_settings
    _cached_settings = None
    return load_settings(force=True, config_file=config_file)
