"""Evidence sources: each scans one origin of installation truth and returns raw records.

Sources never raise from scan(): an inaccessible registry path, a failed PowerShell
call or a denied directory simply means "this source found nothing".
"""

import fnmatch
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from launchscript.inventory_cache import InventoryCache
from launchscript.models import (ApplicationDescriptor, InstallationRecord, InventoryProduct,
                                 SourceKind)
from launchscript.settings import DEFAULT_SETTINGS
from launchscript.windows_utils import WindowsUtils

logger = logging.getLogger(__name__)


def matches_wildcard(name: Optional[str], pattern: str) -> bool:
    """Case-insensitive wildcard match (*, ?, [seq]) against the whole name."""
    if not name:
        return False
    return fnmatch.fnmatchcase(name.lower(), pattern.lower())


class EvidenceSource:
    """Base class. Subclasses implement _scan(); scan() is the failure boundary."""
    kind: SourceKind

    def scan(self, query: Any) -> List[InstallationRecord]:
        try:
            records = self._scan(query)
        except Exception as e:
            logger.debug(f"{self.kind.value} scan failed for {query!r}: {type(e).__name__} - {e}", exc_info=True)
            return []
        if records:
            logger.debug(f"{self.kind.value} scan for {query!r} found {len(records)} record(s)")
        return records

    def _scan(self, query: Any) -> List[InstallationRecord]:
        raise NotImplementedError


# --- Registry ---
class RegistrySource(EvidenceSource):
    """Uninstall keys under HKLM (64-bit and WOW6432Node views) and HKCU."""
    kind = SourceKind.REGISTRY

    def __init__(self, reader: Optional[Callable[[], Iterable[Dict[str, Any]]]] = None,
                 exclusion_patterns: Optional[Sequence[str]] = None):
        self._reader = reader or WindowsUtils.iter_uninstall_entries
        patterns = DEFAULT_SETTINGS["registry_exclusion_patterns"] if exclusion_patterns is None else exclusion_patterns
        self._exclusions = [re.compile(p, re.IGNORECASE) for p in patterns]
        self._entries: Optional[List[Dict[str, Any]]] = None
        self._lock = threading.Lock()

    def is_excluded(self, display_name: str) -> bool:
        return any(rx.search(display_name) for rx in self._exclusions)

    def _get_entries(self) -> List[Dict[str, Any]]:
        # The uninstall roots are walked once per source instance, shared by every pattern
        with self._lock:
            if self._entries is None:
                self._entries = list(self._reader() or [])
            return self._entries

    def _scan(self, pattern: str) -> List[InstallationRecord]:
        records: List[InstallationRecord] = []
        seen = set()
        for entry in self._get_entries():
            display_name = entry.get("DisplayName")
            if not matches_wildcard(display_name, pattern):
                continue
            if self.is_excluded(display_name):
                logger.debug(f"Excluded registry entry '{display_name}' ({entry.get('KeyPath')})")
                continue
            record = InstallationRecord.normalized(
                SourceKind.REGISTRY,
                display_name=display_name,
                version=entry.get("DisplayVersion"),
                publisher=entry.get("Publisher"),
                install_location=entry.get("InstallLocation"),
                install_date=entry.get("InstallDate"),
            )
            dedup_key = (record.display_name, record.version)
            if dedup_key in seen:
                continue
            seen.add(dedup_key)
            records.append(record)
        return records


# --- Windows Store ---
def _publisher_from_dn(publisher: Optional[str]) -> Optional[str]:
    """'CN=Microsoft Corporation, O=Microsoft Corporation, ...' -> 'Microsoft Corporation'."""
    if not publisher:
        return None
    first = publisher.split(",")[0].strip()
    if first.upper().startswith("CN="):
        first = first[3:]
    return first.strip('"').strip() or None


class WindowsStoreSource(EvidenceSource):
    """AppX / MSIX packages reported by Get-AppxPackage."""
    kind = SourceKind.WINDOWS_STORE

    def __init__(self, lister: Optional[Callable[[], List[Dict[str, Any]]]] = None,
                 all_users: bool = False, timeout: int = DEFAULT_SETTINGS["powershell_timeout_seconds"]):
        self._lister = lister
        self.all_users = all_users
        self.timeout = timeout
        self._packages: Optional[List[Dict[str, Any]]] = None
        self._lock = threading.Lock()

    def _get_packages(self) -> List[Dict[str, Any]]:
        # One PowerShell round-trip per source instance, shared by every pattern
        with self._lock:
            if self._packages is None:
                if self._lister is not None:
                    packages = self._lister()
                else:
                    packages = WindowsUtils.list_appx_packages(all_users=self.all_users, timeout=self.timeout)
                self._packages = list(packages or [])
            return self._packages

    def _scan(self, pattern: str) -> List[InstallationRecord]:
        records: List[InstallationRecord] = []
        for package in self._get_packages():
            name = package.get("Name")
            full_name = package.get("PackageFullName")
            if not (matches_wildcard(name, pattern) or matches_wildcard(full_name, pattern)):
                continue
            records.append(InstallationRecord.normalized(
                SourceKind.WINDOWS_STORE,
                display_name=name or full_name,
                version=package.get("Version"),
                publisher=_publisher_from_dn(package.get("Publisher")),
                install_location=package.get("InstallLocation"),
            ))
        return records


# --- Portable ---
class PortableSource(EvidenceSource):
    """Executables unpacked under common install roots without an uninstall entry."""
    kind = SourceKind.PORTABLE

    def __init__(self, roots: Optional[Sequence[str]] = None,
                 max_executables: int = DEFAULT_SETTINGS["portable_max_executables"],
                 properties_reader: Optional[Callable[[str], Optional[Dict[str, str]]]] = None):
        self._roots = list(DEFAULT_SETTINGS["portable_install_roots"] if roots is None else roots)
        self.max_executables = max_executables
        self._read_properties = properties_reader or WindowsUtils.get_file_properties

    def install_roots(self) -> List[Path]:
        """Configured roots with environment variables expanded; unset or missing roots are dropped."""
        roots: List[Path] = []
        for raw in self._roots:
            expanded = os.path.expandvars(raw)
            if '%' in expanded or '$' in expanded:
                logger.debug(f"Portable root '{raw}' references an unset variable, skipped")
                continue
            path = Path(expanded)
            if path.is_dir() and path not in roots:
                roots.append(path)
        return roots

    def _candidate_executables(self, directory: Path) -> Iterable[Path]:
        """Walks `directory` and yields at most max_executables .exe files."""
        count = 0
        for dirpath, dirnames, filenames in os.walk(directory):
            dirnames.sort()
            for filename in sorted(filenames):
                if not filename.lower().endswith('.exe'):
                    continue
                if count >= self.max_executables:
                    logger.debug(f"Portable scan of {directory} stopped after {count} executables")
                    return
                count += 1
                yield Path(dirpath) / filename

    def _make_record(self, exe_path: Path, directory: Path) -> InstallationRecord:
        version = None
        display_name = None
        publisher = None
        try:
            properties = self._read_properties(str(exe_path))
        except Exception as e:
            logger.debug(f"Reading version of {exe_path} failed: {e}")
            properties = None
        if properties:
            version = (properties.get('ProductVersionString') or properties.get('ProductVersion')
                       or properties.get('FileVersion'))
            display_name = properties.get('ProductName') or properties.get('FileDescription')
            publisher = properties.get('CompanyName')
        return InstallationRecord.normalized(
            SourceKind.PORTABLE,
            display_name=display_name or exe_path.stem,
            version=version,
            publisher=publisher,
            install_location=str(directory),
            install_date=WindowsUtils.get_modified_date(str(exe_path)),
        )

    def _scan(self, app: ApplicationDescriptor) -> List[InstallationRecord]:
        if not app.common_install_subpaths or not app.executable_names:
            return []
        exe_patterns = [name.lower() for name in app.executable_names]

        for root in self.install_roots():
            for subpath in app.common_install_subpaths:
                directory = root / subpath
                try:
                    if not directory.is_dir():
                        continue
                except OSError as e:
                    logger.debug(f"Cannot access {directory}: {e}")
                    continue
                logger.debug(f"Probing portable directory {directory} for {app.app_id}")
                for exe_path in self._candidate_executables(directory):
                    exe_name = exe_path.name.lower()
                    if any(fnmatch.fnmatchcase(exe_name, p) for p in exe_patterns):
                        logger.debug(f"Portable executable found for {app.app_id}: {exe_path}")
                        return [self._make_record(exe_path, directory)]
        return []


# --- Inventory ---
def _fuzzy_regex(token: str) -> 're.Pattern':
    """'VSCode' -> V.*S.*C.*o.*d.*e (case-insensitive)."""
    return re.compile('.*'.join(re.escape(ch) for ch in token), re.IGNORECASE)


class InventorySource(EvidenceSource):
    """Products from the cached WMI inventory, matched by extracted name tokens.

    Win32_Product only knows software installed through Windows Installer, so a
    miss here is not proof that the application is absent.
    """
    kind = SourceKind.INVENTORY

    def __init__(self, cache: Optional[InventoryCache] = None):
        self.cache = cache if cache is not None else InventoryCache()

    @staticmethod
    def _to_record(product: InventoryProduct) -> InstallationRecord:
        return InstallationRecord.normalized(
            SourceKind.INVENTORY,
            display_name=product.name,
            version=product.version,
            publisher=product.vendor,
            install_location=product.install_location,
            install_date=product.install_date_raw,
        )

    def _scan(self, tokens: Sequence[str]) -> List[InstallationRecord]:
        tokens = [t for t in (tokens or ()) if t]
        if not tokens:
            return []
        snapshot = self.cache.get()
        if snapshot.is_empty:
            return []

        # Pass 1: plain substring
        for token in tokens:
            needle = token.lower()
            for product in snapshot.records:
                if needle in product.name.lower():
                    logger.debug(f"Inventory substring match: token '{token}' in '{product.name}'")
                    return [self._to_record(product)]

        # Pass 2: token characters in order with anything in between
        for token in tokens:
            rx = _fuzzy_regex(token)
            for product in snapshot.records:
                if rx.search(product.name):
                    logger.debug(f"Inventory fuzzy match: token '{token}' in '{product.name}'")
                    return [self._to_record(product)]
        return []
