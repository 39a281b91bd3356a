"""Application catalog: the static definitions detection runs against."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from launchscript.models import ApplicationDescriptor
from launchscript.settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

# Same rule the web bridge applies to script names: letters, digits, '+', '-' and spaces
APP_ID_PATTERN = re.compile(r'^[A-Za-z0-9+\- ]+$')


class CatalogError(ValueError):
    """Invalid application ids or an unusable catalog file."""


# --- Configuration ---
# Keyed by the id callers use (the install script name). Patterns are tried in order,
# so put the most specific DisplayName first.
APPLICATION_CONFIG: Dict[str, Dict[str, Any]] = {
    "VSCode": {
        "display_name": "Visual Studio Code",
        "search_patterns": ["*Visual Studio Code*", "*VSCode*"],
        "common_install_subpaths": ["Microsoft VS Code", "VSCode"],
        "executable_names": ["Code.exe"],
    },
    "GoogleChrome": {
        "display_name": "Google Chrome",
        "search_patterns": ["Google Chrome*", "*Chrome*"],
        "common_install_subpaths": [r"Google\Chrome\Application"],
        "executable_names": ["chrome.exe"],
    },
    "Firefox": {
        "display_name": "Mozilla Firefox",
        "search_patterns": ["Mozilla Firefox*", "*Firefox*"],
        "common_install_subpaths": ["Mozilla Firefox", "FirefoxPortable"],
        "executable_names": ["firefox.exe", "FirefoxPortable.exe"],
    },
    "7Zip": {
        "display_name": "7-Zip",
        "search_patterns": ["7-Zip*", "*7Zip*"],
        "common_install_subpaths": ["7-Zip", "7-ZipPortable"],
        "executable_names": ["7zFM.exe", "7-ZipPortable.exe"],
    },
    "NotepadPlusPlus": {
        "display_name": "Notepad++",
        "search_patterns": ["Notepad++*", "*Notepad++*"],
        "common_install_subpaths": ["Notepad++", "Notepad++Portable"],
        "executable_names": ["notepad++.exe"],
    },
    "Git": {
        "display_name": "Git",
        "search_patterns": ["Git version*", "Git*"],
        "common_install_subpaths": ["Git", "PortableGit"],
        "executable_names": ["git-bash.exe", "git.exe"],
    },
    "Python": {
        "display_name": "Python",
        "search_patterns": ["Python 3* (64-bit)", "Python 3*"],
        "common_install_subpaths": ["Python", "Python3"],
        "executable_names": ["python.exe"],
    },
    "NodeJS": {
        "display_name": "Node.js",
        "search_patterns": ["Node.js*", "*NodeJS*"],
        "common_install_subpaths": ["nodejs"],
        "executable_names": ["node.exe"],
    },
    "VLC": {
        "display_name": "VLC media player",
        "search_patterns": ["VLC media player*", "*VLC*"],
        "common_install_subpaths": [r"VideoLAN\VLC", "VLCPortable"],
        "executable_names": ["vlc.exe", "VLCPortable.exe"],
    },
    "AngryIPScanner": {
        "display_name": "Angry IP Scanner",
        "search_patterns": ["*Angry IP Scanner*", "*AngryIPScanner*"],
        "common_install_subpaths": ["Angry IP Scanner", "AngryIPScanner"],
        "executable_names": ["ipscan*.exe"],
    },
    "PuTTY": {
        "display_name": "PuTTY",
        "search_patterns": ["PuTTY release*", "*PuTTY*"],
        "common_install_subpaths": ["PuTTY"],
        "executable_names": ["putty.exe"],
    },
    "WinSCP": {
        "display_name": "WinSCP",
        "search_patterns": ["WinSCP*"],
        "common_install_subpaths": ["WinSCP"],
        "executable_names": ["WinSCP.exe"],
    },
    "Wireshark": {
        "display_name": "Wireshark",
        "search_patterns": ["Wireshark*"],
        "common_install_subpaths": ["Wireshark"],
        "executable_names": ["Wireshark.exe"],
    },
    "Postman": {
        "display_name": "Postman",
        "search_patterns": ["Postman*"],
        "common_install_subpaths": ["Postman"],
        "executable_names": ["Postman.exe"],
    },
    "DockerDesktop": {
        "display_name": "Docker Desktop",
        "search_patterns": ["Docker Desktop*"],
        "common_install_subpaths": [r"Docker\Docker"],
        "executable_names": ["Docker Desktop.exe"],
    },
    "WindowsTerminal": {
        "display_name": "Windows Terminal",
        "search_patterns": ["*WindowsTerminal*", "*Windows Terminal*"],
        "common_install_subpaths": [],
        "executable_names": [],
    },

    # --- Add more application definitions here ---
    # "ExampleApp": {
    #    "display_name": "Example App",
    #    "search_patterns": ["Example App*"],
    #    "common_install_subpaths": ["ExampleApp"], "executable_names": ["example.exe"],
    # },
}


def _split_camel(app_id: str) -> str:
    # "VisualStudioCode" -> "Visual Studio Code"
    return re.sub(r'(?<=[a-z0-9])(?=[A-Z])', ' ', app_id).strip()


def _as_tuple(value: Any) -> Tuple[str, ...]:
    # A scalar YAML value is one entry, not a sequence of characters
    if isinstance(value, str):
        return (value,)
    return tuple(value or ())


def build_descriptor(app_id: str, definition: Mapping[str, Any]) -> ApplicationDescriptor:
    if not isinstance(definition, Mapping):
        raise CatalogError(f"Definition for '{app_id}' must be a mapping, got {type(definition).__name__}")
    return ApplicationDescriptor(
        app_id=app_id,
        search_patterns=_as_tuple(definition.get("search_patterns")),
        common_install_subpaths=_as_tuple(definition.get("common_install_subpaths")),
        executable_names=_as_tuple(definition.get("executable_names")),
        display_name=definition.get("display_name"),
    )


def derived_descriptor(app_id: str) -> ApplicationDescriptor:
    """Descriptor for an id that has no definition: match on the id itself and its spaced form."""
    patterns = [f"*{app_id}*"]
    spaced = _split_camel(app_id)
    if spaced != app_id:
        patterns.append(f"*{spaced}*")
    return ApplicationDescriptor(app_id=app_id, search_patterns=tuple(patterns), display_name=spaced)


class Catalog:
    """Application definitions by id, built-in ones first, then any YAML overrides."""

    def __init__(self, definitions: Optional[Mapping[str, Mapping[str, Any]]] = None):
        source = APPLICATION_CONFIG if definitions is None else definitions
        self._descriptors: Dict[str, ApplicationDescriptor] = {
            app_id: build_descriptor(app_id, definition) for app_id, definition in source.items()
        }

    def __contains__(self, app_id: str) -> bool:
        return app_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def app_ids(self) -> List[str]:
        return list(self._descriptors)

    def update(self, definitions: Mapping[str, Mapping[str, Any]]) -> None:
        for app_id, definition in definitions.items():
            app_id = str(app_id)
            if not APP_ID_PATTERN.match(app_id):
                raise CatalogError(f"Invalid application id in catalog: {app_id!r}")
            self._descriptors[app_id] = build_descriptor(app_id, definition)

    def load_file(self, path: Union[str, Path]) -> None:
        """Merges application definitions from a YAML file ({id: {search_patterns: [...], ...}})."""
        catalog_path = Path(path)
        try:
            with open(catalog_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except FileNotFoundError:
            raise CatalogError(f"Catalog file not found: {catalog_path}")
        except yaml.YAMLError as e:
            raise CatalogError(f"Error parsing catalog file {catalog_path}: {e}")
        if not loaded:
            logger.warning(f"Catalog file {catalog_path} is empty")
            return
        if not isinstance(loaded, dict):
            raise CatalogError(f"Catalog file {catalog_path} must contain a mapping of application ids")
        self.update(loaded)
        logger.info(f"Loaded {len(loaded)} application definitions from {catalog_path}")

    def get(self, app_id: str) -> ApplicationDescriptor:
        descriptor = self._descriptors.get(app_id)
        if descriptor is None:
            # Case-insensitive lookup before falling back to a derived descriptor
            for known_id, known in self._descriptors.items():
                if known_id.lower() == app_id.lower():
                    return known
            logger.warning(f"No definition for application '{app_id}', matching on its name")
            descriptor = derived_descriptor(app_id)
        return descriptor

    def resolve(self, app_ids: Sequence[str]) -> List[ApplicationDescriptor]:
        return [self.get(app_id) for app_id in app_ids]


def validate_app_ids(raw: Union[str, Sequence[str]], max_apps: int = DEFAULT_SETTINGS["max_apps"]) -> List[str]:
    """Splits a comma-separated id list (or checks a sequence) and rejects anything unsafe.

    Raises CatalogError on empty input, too many ids, or ids with characters outside
    letters, digits, '+', '-' and spaces.
    """
    if isinstance(raw, str):
        items = raw.split(',')
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        raise CatalogError("Application ids must be a comma-separated string or a list")

    app_ids = [str(item).strip() for item in items if str(item).strip()]
    if not app_ids:
        raise CatalogError("No application ids given")
    if len(app_ids) > max_apps:
        raise CatalogError(f"Too many applications requested (max: {max_apps})")
    for app_id in app_ids:
        if not APP_ID_PATTERN.match(app_id):
            raise CatalogError(f"Invalid application id: {app_id}")

    # Keep the first occurrence of repeated ids, ignoring case like Catalog.get does
    unique: Dict[str, str] = {}
    for app_id in app_ids:
        unique.setdefault(app_id.lower(), app_id)
    return list(unique.values())
