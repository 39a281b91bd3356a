"""Detection settings, YAML overrides and logging setup."""

import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

# --- Configuration File Path ---
CONFIG_DIR = Path(os.path.expanduser("~")) / ".launchscript"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - %(name)s - %(message)s'

# --- Default Settings ---
DEFAULT_SETTINGS: Dict[str, Any] = {
    # Uninstall entries whose DisplayName matches any of these regexes are never reported
    "registry_exclusion_patterns": [
        r"\bKB\d{6,}\b",
        r"^Security Update\b",
        r"^Update for\b",
        r"^Hotfix\b",
        r"\.NET Framework",
        r"Visual C\+\+ .*Redistributable",
    ],

    # Directories probed by the portable scan. Environment variables are expanded,
    # entries that are unset or missing on this machine are skipped.
    "portable_install_roots": [
        r"%LOCALAPPDATA%\Programs",
        r"%LOCALAPPDATA%",
        r"%APPDATA%",
        r"%ProgramFiles%",
        r"%ProgramFiles(x86)%",
        r"%USERPROFILE%\Apps",
        r"%USERPROFILE%\PortableApps",
        r"%SystemDrive%\Tools",
    ],

    # Upper bound on .exe files inspected per candidate directory
    "portable_max_executables": 50,

    "powershell_timeout_seconds": 60,
    "store_all_users": False,

    # Batch limits (mirrors the web bridge)
    "max_apps": 50,
    "max_workers": 1,

    "log_level": "INFO",
}


def _merge_dicts(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, dict) and key in base and isinstance(base[key], dict):
            _merge_dicts(base[key], value)
        else:
            base[key] = value
    return base


def load_settings(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Returns DEFAULT_SETTINGS with the YAML file at `path` (or CONFIG_FILE) merged on top.

    A missing or unreadable file is not an error, the defaults are used instead.
    """
    config_path = Path(path) if path else CONFIG_FILE
    settings = deepcopy(DEFAULT_SETTINGS)
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            loaded_settings = yaml.safe_load(f)
    except FileNotFoundError:
        if path:
            logger.warning(f"Config file not found at {config_path}. Using defaults.")
        else:
            logger.debug(f"No config file at {config_path}. Using defaults.")
        return settings
    except yaml.YAMLError as e:
        logger.warning(f"Error parsing config file {config_path}: {e}. Using defaults.")
        return settings
    except OSError as e:
        logger.warning(f"Could not read config file {config_path}: {e}. Using defaults.")
        return settings

    if not loaded_settings:
        return settings
    if not isinstance(loaded_settings, dict):
        logger.warning(f"Config file {config_path} does not contain a mapping. Using defaults.")
        return settings

    unknown = set(loaded_settings) - set(DEFAULT_SETTINGS)
    if unknown:
        logger.warning(f"Ignoring unknown settings in {config_path}: {sorted(unknown)}")
        for key in unknown:
            loaded_settings.pop(key)
    logger.debug(f"Loaded settings overrides from {config_path}: {sorted(loaded_settings)}")
    return _merge_dicts(settings, loaded_settings)


def configure_logging(level: Union[int, str] = "INFO") -> None:
    """Console logging for the command-line entry point. Library code never calls this."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
