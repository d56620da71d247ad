# librenote/config.py
# Description: Configuration management for LibreNote.
#
# Imports
import copy
import os
import sys
if sys.version_info < (3, 11):
    import tomli as tomllib
else:
    import tomllib
from pathlib import Path
from typing import Dict, Any, Optional
#
# Third-Party Imports
import toml
from loguru import logger
#
#######################################################################################################################
#
# Constants:

# --- Path to the configuration file ---
# LIBRENOTE_CONFIG overrides the default location (used by tests and the --config flag).
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "librenote" / "config.toml"

BASE_DATA_DIR = Path.home() / ".local" / "share" / "librenote"
DEFAULT_NOTEBOOKS_DIR = Path.home() / "LibreNoteData" / "notebooks"

CONFIG_TOML_CONTENT = """
# Configuration for LibreNote
# Located at: ~/.config/librenote/config.toml
[general]
log_level = "INFO" # Console log level: DEBUG, INFO, WARNING, ERROR, CRITICAL

[storage]
# One pretty-printed JSON file per notebook lives here.
notebooks_dir = "~/LibreNoteData/notebooks"

[gdrive]
# Name of the Drive folder holding one <notebook id>.json file per notebook.
folder_name = "NoteFlow"
# OAuth client downloaded from the Google Cloud console ("Desktop app" type).
client_secret_path = "~/.config/librenote/client_secret.json"
# Access/refresh tokens. Stored as plain JSON.
token_path = "~/.local/share/librenote/gdrive-token.json"
redirect_port = 8234
request_timeout = 30.0 # Seconds per Drive API call
auth_timeout = 300.0   # Seconds to wait for the browser consent redirect

[logging]
log_to_file = true
log_filename = "librenote.log"
file_log_level = "DEBUG"
rotation = "10 MB"
retention = "7 days"
"""

DEFAULT_CONFIG_FROM_TOML: Dict[str, Any] = tomllib.loads(CONFIG_TOML_CONTENT)

_CONFIG_CACHE: Optional[Dict[str, Any]] = None

#
#######################################################################################################################
#
# Functions:

def get_config_path() -> Path:
    """Return the active configuration file path."""
    override = os.environ.get("LIBRENOTE_CONFIG")
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH


def deep_merge_dicts(base: Dict, update: Dict) -> Dict:
    """Recursively merges update_dict into base_dict."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = deep_merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_cli_config_and_ensure_existence(force_reload: bool = False) -> Dict[str, Any]:
    """
    Loads settings from the LibreNote config.toml.
    If the file doesn't exist, it's created with default values from CONFIG_TOML_CONTENT.
    Values in the file are merged on top of the programmatic defaults.
    """
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None and not force_reload:
        return _CONFIG_CACHE

    config_path = get_config_path()
    loaded_config = copy.deepcopy(DEFAULT_CONFIG_FROM_TOML)

    if not config_path.exists():
        logger.info(f"Config file not found at {config_path}. Creating it with default values.")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(CONFIG_TOML_CONTENT)
            loaded_config["_first_run"] = True
        except OSError as e:
            logger.error(f"Could not create default config file {config_path}: {e}. Using internal defaults.")
    else:
        try:
            with open(config_path, "rb") as f:
                user_config_from_file = tomllib.load(f)
            loaded_config = deep_merge_dicts(loaded_config, user_config_from_file)
            logger.debug(f"Loaded and merged config from {config_path}")
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML config file {config_path}: {e}. Using internal defaults.")
        except OSError as e:
            logger.error(f"Could not read config file {config_path}: {e}. Using internal defaults.")

    _CONFIG_CACHE = loaded_config
    return _CONFIG_CACHE


def save_setting_to_cli_config(section: str, key: str, value: Any) -> bool:
    """
    Saves a single setting to the user's TOML configuration file.

    Nested sections are addressed with dots (e.g. "gdrive.advanced").
    The config cache is reloaded afterwards.

    Returns:
        True if the setting was saved successfully, False otherwise.
    """
    global _CONFIG_CACHE
    config_path = get_config_path()
    logger.info(f"Saving setting: [{section}].{key} = {value!r}")

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create config directory {config_path.parent}: {e}")
        return False

    config_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Corrupted config file at {config_path}. Cannot save. Error: {e}")
            return False

    current_level = config_data
    try:
        for part in section.split('.'):
            current_level = current_level.setdefault(part, {})
        current_level[key] = value
    except (TypeError, AttributeError):
        logger.error(
            f"Configuration structure conflict. Could not set '{key}' in section '{section}' "
            f"because a part of the path is not a table."
        )
        return False

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            toml.dump(config_data, f)
    except OSError as e:
        logger.error(f"Failed to write updated config to {config_path}: {e}")
        return False

    _CONFIG_CACHE = None
    load_cli_config_and_ensure_existence(force_reload=True)
    return True


def get_cli_setting(section: str, key: str, default: Any = None) -> Any:
    """Helper to get a specific setting from the loaded configuration."""
    config = load_cli_config_and_ensure_existence()
    section_data = config.get(section)
    if isinstance(section_data, dict):
        return section_data.get(key, default)
    return default


def _setting_path(section: str, key: str, fallback: Path) -> Path:
    value = get_cli_setting(section, key, None)
    if not value:
        return fallback
    return Path(value).expanduser()


def get_notebooks_dir() -> Path:
    return _setting_path("storage", "notebooks_dir", DEFAULT_NOTEBOOKS_DIR)


def get_token_path() -> Path:
    return _setting_path("gdrive", "token_path", BASE_DATA_DIR / "gdrive-token.json")


def get_client_secret_path() -> Path:
    return _setting_path("gdrive", "client_secret_path", get_config_path().parent / "client_secret.json")


def get_log_file_path() -> Path:
    log_filename = get_cli_setting("logging", "log_filename", "librenote.log")
    log_file_path = BASE_DATA_DIR / log_filename
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create log directory {log_file_path.parent}: {e}")
    return log_file_path

#
# End of config.py
#######################################################################################################################
